"""Go source parsing on top of tree-sitter.

Wraps the tree-sitter Go grammar and provides the small set of node
helpers every analysis pass shares: pre-order walking, literal decoding,
doc comments and rendering type expressions back to Go-like strings.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path

import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

from go_api_spec.errors import SourceParseError

GO_LANGUAGE = Language(tree_sitter_go.language())

_parser = Parser(GO_LANGUAGE)

_VERSION_SEGMENT = re.compile(r"v\d+")
_VERSION_SUFFIX = re.compile(r"\.v\d+$")


@dataclass
class GoFile:
    """A parsed Go source file."""

    path: Path
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def package_name(self) -> str:
        for child in self.root.named_children:
            if child.type == "package_clause":
                for sub in child.named_children:
                    if sub.type == "package_identifier":
                        return node_text(sub)
        return ""

    def imports(self) -> dict[str, str]:
        """Map every import alias in the file to its canonical package name."""
        result = {}
        for node in walk(self.root):
            if node.type != "import_spec":
                continue
            path_node = node.child_by_field_name("path")
            if path_node is None:
                continue
            import_path = string_value(path_node) or ""
            package = canonical_package(import_path)
            name_node = node.child_by_field_name("name")
            if name_node is None:
                result[package] = package
            elif name_node.type == "package_identifier":
                result[node_text(name_node)] = package
        return result


def parse_source(source: bytes | str, path: Path | None = None) -> GoFile:
    """Parse Go source text. Raises SourceParseError on syntax errors."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    path = path or Path("<memory>")
    tree = _parser.parse(source)
    if tree.root_node.has_error:
        error = _first_error(tree.root_node)
        row, column = error.start_point if error is not None else (0, 0)
        raise SourceParseError(path, "syntax error", line=row + 1, column=column + 1)
    return GoFile(path=path, source=source, tree=tree)


def parse_file(path: Path) -> GoFile:
    """Read and parse a Go file."""
    try:
        source = path.read_bytes()
    except OSError as e:
        raise SourceParseError(path, f"cannot read file: {e}") from e
    return parse_source(source, path)


def _first_error(root: Node) -> Node | None:
    for node in walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node
    return None


def walk(node: Node):
    """Yield ``node`` and all its descendants in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def node_text(node: Node | None) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def named_children(node: Node | None) -> list[Node]:
    """Named children without interleaved comments."""
    if node is None:
        return []
    return [c for c in node.named_children if c.type != "comment"]


def call_arguments(call: Node) -> list[Node]:
    return named_children(call.child_by_field_name("arguments"))


def unquote(literal: str) -> str:
    """Decode a Go string literal (interpreted or raw)."""
    if len(literal) >= 2 and literal[0] == literal[-1] == "`":
        return literal[1:-1]
    try:
        value = json.loads(literal)
    except ValueError:
        return literal[1:-1]
    return value if isinstance(value, str) else literal[1:-1]


def string_value(node: Node | None) -> str | None:
    """Value of a string literal node, or None for any other node."""
    if node is None or node.type not in ("interpreted_string_literal", "raw_string_literal"):
        return None
    return unquote(node_text(node))


def is_int_literal(node: Node | None) -> bool:
    return node is not None and node.type == "int_literal"


def canonical_package(import_path: str) -> str:
    """Package name implied by an import path.

    ``github.com/acme/app/pkg/models/deals_models`` -> ``deals_models``,
    ``github.com/acme/lib/v2`` -> ``lib``, ``gopkg.in/yaml.v3`` -> ``yaml``.
    """
    segments = [s for s in import_path.split("/") if s]
    if not segments:
        return ""
    last = segments[-1]
    if _VERSION_SEGMENT.fullmatch(last) and len(segments) > 1:
        last = segments[-2]
    return _VERSION_SUFFIX.sub("", last)


def comment_lines(comment: Node) -> list[str]:
    text = node_text(comment)
    if text.startswith("//"):
        stripped = text[2:].strip()
        return [stripped] if stripped else []
    body = text.removeprefix("/*").removesuffix("*/")
    lines = []
    for line in body.splitlines():
        line = line.strip().lstrip("*").strip()
        if line:
            lines.append(line)
    return lines


def doc_comments(node: Node) -> list[str]:
    """Comment lines directly above ``node``, top to bottom."""
    comments = []
    expected_row = node.start_point[0]
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        if sibling.end_point[0] != expected_row - 1:
            break
        before = sibling.prev_named_sibling
        # trailing comment of the previous line's code
        if before is not None and before.type != "comment" and before.end_point[0] == sibling.start_point[0]:
            break
        comments.insert(0, sibling)
        expected_row = sibling.start_point[0]
        sibling = before
    return [line for c in comments for line in comment_lines(c)]


def type_to_string(node: Node | None, imports: dict[str, str] | None = None) -> str:
    """Render a type expression as Go-like text.

    Package qualifiers are resolved through ``imports`` (alias -> package)
    when given. Unsupported shapes render as an empty string.
    """
    if node is None:
        return ""
    kind = node.type
    if kind in ("type_identifier", "identifier", "field_identifier", "package_identifier"):
        return node_text(node)
    if kind == "qualified_type":
        package = node_text(node.child_by_field_name("package"))
        name = node_text(node.child_by_field_name("name"))
        if imports:
            package = imports.get(package, package)
        return f"{package}.{name}"
    if kind == "selector_expression":
        operand = node.child_by_field_name("operand")
        name = node_text(node.child_by_field_name("field"))
        if operand is not None and operand.type == "identifier":
            package = node_text(operand)
            if imports:
                package = imports.get(package, package)
            return f"{package}.{name}"
        return name
    if kind == "pointer_type":
        inner = type_to_string(_first_named(node), imports)
        return f"*{inner}" if inner else ""
    if kind in ("slice_type", "array_type"):
        inner = type_to_string(node.child_by_field_name("element"), imports)
        return f"[]{inner}" if inner else ""
    if kind == "map_type":
        key = type_to_string(node.child_by_field_name("key"), imports)
        value = type_to_string(node.child_by_field_name("value"), imports)
        return f"map[{key}]{value}" if key and value else ""
    if kind == "generic_type":
        base = type_to_string(node.child_by_field_name("type"), imports)
        arguments = [type_to_string(a, imports) for a in type_arguments(node)]
        if base and arguments:
            return f"{base}[{', '.join(arguments)}]"
        return base
    if kind in ("type_elem", "parenthesized_type"):
        return type_to_string(_first_named(node), imports)
    if kind == "interface_type":
        return "interface{}"
    if kind == "struct_type":
        return "struct{}"
    if kind == "function_type":
        return "func"
    if kind == "channel_type":
        return "chan"
    return ""


def type_arguments(generic: Node) -> list[Node]:
    arguments = generic.child_by_field_name("type_arguments")
    result = []
    for child in named_children(arguments):
        result.append(_first_named(child) if child.type == "type_elem" else child)
    return [a for a in result if a is not None]


def expression_to_string(node: Node | None) -> str:
    """Symbolic dotted name of an expression: ``c.gates.IsAuthenticated``."""
    if node is None:
        return "?"
    kind = node.type
    if kind in ("identifier", "field_identifier", "type_identifier"):
        return node_text(node)
    if kind == "selector_expression":
        operand = expression_to_string(node.child_by_field_name("operand"))
        return f"{operand}.{node_text(node.child_by_field_name('field'))}"
    if kind == "call_expression":
        function = node.child_by_field_name("function")
        if function is not None and function.type in ("identifier", "selector_expression"):
            return expression_to_string(function) + "()"
    return "?"


def receiver_type_name(method: Node) -> str:
    """Receiver type of a method declaration, without pointer or type params."""
    receiver = method.child_by_field_name("receiver")
    for param in named_children(receiver):
        if param.type != "parameter_declaration":
            continue
        type_node = param.child_by_field_name("type")
        while type_node is not None and type_node.type in ("pointer_type", "parenthesized_type"):
            type_node = _first_named(type_node)
        if type_node is not None and type_node.type == "generic_type":
            type_node = type_node.child_by_field_name("type")
        if type_node is not None and type_node.type == "type_identifier":
            return node_text(type_node)
        return ""
    return ""


def receiver_variable(method: Node) -> str:
    """Name the receiver is bound to in a method declaration, "" if unnamed."""
    receiver = method.child_by_field_name("receiver")
    for param in named_children(receiver):
        if param.type == "parameter_declaration":
            return node_text(param.child_by_field_name("name"))
    return ""


def _first_named(node: Node) -> Node | None:
    children = named_children(node)
    return children[0] if children else None
