"""Per-directory symbol tables.

A controller directory is scanned once: every function and method
declaration, every import alias and every struct field type is recorded so
the enhancer can find handler bodies and the declared types of controller
fields without re-parsing anything.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node

from go_api_spec.errors import SourceParseError
from go_api_spec.parser.golang import (
    GoFile,
    doc_comments,
    named_children,
    node_text,
    parse_file,
    receiver_type_name,
    type_to_string,
)

logger = logging.getLogger(__name__)


@dataclass
class FunctionDecl:
    """A function or method declaration and the context it was declared in."""

    name: str
    receiver_type: str  # "" for plain functions
    node: Node
    file_path: Path
    imports: dict[str, str] = field(default_factory=dict)

    @property
    def body(self) -> Node | None:
        return self.node.child_by_field_name("body")

    @property
    def doc(self) -> list[str]:
        return doc_comments(self.node)


@dataclass
class SymbolTable:
    """Lookup tables for one directory. Read-only once collected."""

    directory: Path
    functions: dict[str, FunctionDecl] = field(default_factory=dict)
    methods: dict[tuple[str, str], FunctionDecl] = field(default_factory=dict)
    imports: dict[str, str] = field(default_factory=dict)
    fields: dict[tuple[str, str], str] = field(default_factory=dict)

    def function(self, name: str, receiver_type: str | None = None) -> FunctionDecl | None:
        if receiver_type:
            method = self.methods.get((receiver_type, name))
            if method is not None:
                return method
        return self.functions.get(name)

    def field_type(self, receiver_type: str, field_name: str) -> str | None:
        return self.fields.get((receiver_type, field_name))


class SymbolCollector:
    """Builds a SymbolTable from every Go file of a directory."""

    def collect(self, directory: Path) -> SymbolTable:
        table = SymbolTable(directory=directory)
        for path in sorted(directory.glob("*.go")):
            if path.name.endswith("_test.go") or not path.is_file():
                continue
            try:
                go_file = parse_file(path)
            except SourceParseError as e:
                logger.warning("Skipping %s: %s", path, e)
                continue
            self.add_file(table, go_file)

        logger.debug("Collected %d functions from directory %s", len(table.functions), directory)
        return table

    def add_file(self, table: SymbolTable, go_file: GoFile) -> None:
        imports = go_file.imports()
        table.imports.update(imports)

        for node in go_file.root.named_children:
            if node.type == "function_declaration":
                name = node_text(node.child_by_field_name("name"))
                table.functions[name] = FunctionDecl(name, "", node, go_file.path, imports)
            elif node.type == "method_declaration":
                name = node_text(node.child_by_field_name("name"))
                receiver = receiver_type_name(node)
                decl = FunctionDecl(name, receiver, node, go_file.path, imports)
                table.functions[name] = decl
                table.methods[(receiver, name)] = decl
            elif node.type == "type_declaration":
                for spec in named_children(node):
                    if spec.type == "type_spec":
                        self._add_struct_fields(table, spec, imports)

    def _add_struct_fields(self, table: SymbolTable, spec: Node, imports: dict[str, str]) -> None:
        struct = spec.child_by_field_name("type")
        if struct is None or struct.type != "struct_type":
            return
        type_name = node_text(spec.child_by_field_name("name"))
        for declaration in struct_fields(struct):
            field_type = type_to_string(declaration.child_by_field_name("type"), imports)
            if not field_type:
                continue
            names = [node_text(n) for n in declaration.children_by_field_name("name")]
            if not names:
                # embedded field, addressed by its type name
                names = [field_type.lstrip("*").split(".")[-1]]
            for name in names:
                table.fields[(type_name, name)] = field_type
                logger.debug("Struct field: %s.%s -> %s", type_name, name, field_type)


def struct_fields(struct: Node) -> list[Node]:
    """field_declaration nodes of a struct_type."""
    for child in named_children(struct):
        if child.type == "field_declaration_list":
            return [f for f in named_children(child) if f.type == "field_declaration"]
    return []
