"""Go type -> schema resolution.

A type name surfacing from handler analysis (``*deals_models.Deal``,
``[]Order``, ``operators.Page[[]orders_models.Order]``) is reduced to its
clean name, its declaration is located under the models root, and the
declaration is turned into a schema stored once in a shared table. Other
occurrences get a ``$ref`` to that entry.

A name is marked in progress before its fields are visited, so a struct
that refers to itself (directly or through a slice) yields a ``$ref``
instead of infinite descent.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from tree_sitter import Node

from go_api_spec.errors import SourceParseError
from go_api_spec.parser.base import SchemaSpec
from go_api_spec.parser.golang import (
    GoFile,
    doc_comments,
    named_children,
    node_text,
    parse_file,
    string_value,
    type_to_string,
    walk,
)
from go_api_spec.parser.symbols import struct_fields

logger = logging.getLogger(__name__)

ENUM_SUFFIX = "Enum"

MODELS_PACKAGE_SUFFIX = "_models"

_STRUCT_TAG = re.compile(r'([\w-]+):"((?:[^"\\]|\\.)*)"')

_INTEGER_TYPES = {"int", "int8", "int16", "int32", "int64", "rune"}
_UNSIGNED_TYPES = {"uint", "uint8", "uint16", "uint32", "uint64", "uintptr", "byte"}


def builtin_schema(type_name: str) -> SchemaSpec | None:
    """Schema for Go built-ins and a few well-known library types."""
    if type_name == "string":
        return SchemaSpec(type="string")
    if type_name in _INTEGER_TYPES:
        return SchemaSpec(type="integer", format="int64")
    if type_name in _UNSIGNED_TYPES:
        return SchemaSpec(type="integer", format="uint64")
    if type_name == "float32":
        return SchemaSpec(type="number", format="float")
    if type_name == "float64":
        return SchemaSpec(type="number", format="double")
    if type_name == "bool":
        return SchemaSpec(type="boolean")
    if type_name in ("object", "any", "interface{}", "json.RawMessage", "struct{}"):
        return SchemaSpec(type="object")
    if type_name in ("time.Time", "Time"):
        return SchemaSpec(type="string", format="date-time")
    if type_name == "time.Duration":
        return SchemaSpec(type="integer", format="int64")
    if type_name in ("uid.UID", "UID", "uuid.UUID"):
        return SchemaSpec(type="string", format="uuid")
    if type_name == "[]byte":
        return SchemaSpec(type="string", format="byte")
    return None


def openapi_primitive(go_type: str) -> str:
    """OpenAPI type keyword for a Go primitive; string for anything else."""
    if go_type in _INTEGER_TYPES or go_type in _UNSIGNED_TYPES:
        return "integer"
    if go_type in ("float32", "float64"):
        return "number"
    if go_type == "bool":
        return "boolean"
    return "string"


def clean_type_name(type_name: str) -> str:
    """Canonical schema-table key of a decorated type name.

    ``*pkg.Foo`` -> ``Foo``, ``[]Foo`` -> ``Foo``,
    ``operators.Page[[]pkg.Foo]`` -> ``Foo``.
    """
    name = type_name.strip()
    while name.startswith(("*", "[]")):
        name = name[1:] if name.startswith("*") else name[2:]
    if name.startswith("map["):
        _, value = split_map_type(name)
        return clean_type_name(value)
    argument = generic_argument(name)
    if argument is not None:
        return clean_type_name(argument)
    return name.split(".")[-1]


def generic_argument(type_name: str) -> str | None:
    """First type argument of ``Outer[Inner, ...]``, or None if not generic."""
    start = type_name.find("[")
    if start <= 0 or not type_name.endswith("]"):
        return None
    inner = type_name[start + 1:-1]
    depth = 0
    for index, char in enumerate(inner):
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        elif char == "," and depth == 0:
            return inner[:index].strip()
    return inner.strip()


def split_map_type(type_name: str) -> tuple[str, str]:
    """``map[K]V`` -> (K, V)."""
    depth = 0
    for index in range(3, len(type_name)):
        char = type_name[index]
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return type_name[4:index], type_name[index + 1:]
    return "", ""


def parse_struct_tag(tag: str) -> dict[str, str]:
    """Parse a Go struct tag: ``json:"name,omitempty" validate:"required"``."""
    return {key: value for key, value in _STRUCT_TAG.findall(tag)}


def package_directory_name(package: str) -> str:
    """Directory of a models package: ``deals_models`` -> ``deals``."""
    if package.endswith(MODELS_PACKAGE_SUFFIX) and len(package) > len(MODELS_PACKAGE_SUFFIX):
        return package[: -len(MODELS_PACKAGE_SUFFIX)]
    return package


@dataclass
class TypeDeclaration:
    name: str
    spec: Node  # type_spec or type_alias
    go_file: GoFile
    imports: dict[str, str]

    @property
    def directory(self) -> Path:
        return self.go_file.path.parent

    @property
    def doc(self) -> list[str]:
        lines = doc_comments(self.spec)
        parent = self.spec.parent
        if not lines and parent is not None and parent.type == "type_declaration":
            lines = doc_comments(parent)
        return lines


class TypeResolver:
    """Resolves Go type names into schemas stored in a shared table."""

    def __init__(self, models_root: Path):
        self.models_root = models_root
        self.schemas: dict[str, SchemaSpec] = {}
        self.in_progress: set[str] = set()
        self.unresolved: set[str] = set()
        # in-progress names a $ref was handed out for
        self.back_referenced: set[str] = set()
        self._declarations: dict[Path, dict[str, TypeDeclaration]] = {}

    def resolve_type(self, type_name: str) -> SchemaSpec:
        """Schema for ``type_name``; never raises.

        Built-ins resolve inline, named types to a ``$ref``, and names with
        no declaration under the models root to a generic object.
        """
        return self._resolve(type_name, None)

    def _resolve(self, type_name: str, context_dir: Path | None) -> SchemaSpec:
        type_name = type_name.strip()
        if not type_name:
            return SchemaSpec.generic_object()

        builtin = builtin_schema(type_name)
        if builtin is not None:
            return builtin
        if type_name.startswith("*"):
            return self._resolve(type_name[1:], context_dir)
        if type_name.startswith("[]"):
            return SchemaSpec(type="array", items=self._resolve(type_name[2:], context_dir))
        if type_name.startswith("map["):
            _, value = split_map_type(type_name)
            return SchemaSpec(type="object", additional_properties=self._resolve(value, context_dir))
        argument = generic_argument(type_name)
        if argument is not None:
            return self._resolve(argument.removeprefix("[]"), context_dir)

        clean_name = clean_type_name(type_name)
        if clean_name in self.schemas:
            return SchemaSpec.reference(clean_name)
        if clean_name in self.in_progress:
            self.back_referenced.add(clean_name)
            return SchemaSpec.reference(clean_name)
        if clean_name in self.unresolved:
            return SchemaSpec.generic_object()

        declaration = self.find_declaration(type_name, context_dir)
        if declaration is None:
            logger.debug("Could not resolve type %s, using generic object", type_name)
            self.unresolved.add(clean_name)
            return SchemaSpec.generic_object()

        self.in_progress.add(clean_name)
        try:
            schema, named = self._schema_for(declaration)
        finally:
            self.in_progress.discard(clean_name)

        # an alias reached again through its own target needs an entry for that $ref
        if not named and clean_name not in self.back_referenced:
            return schema
        self.schemas[clean_name] = schema
        return SchemaSpec.reference(clean_name)

    def find_declaration(self, type_name: str, context_dir: Path | None = None) -> TypeDeclaration | None:
        """Locate the declaration of a (possibly package-qualified) type name."""
        package, _, name = type_name.rpartition(".")

        if package:
            for directory in (self.models_root / package_directory_name(package), self.models_root / package):
                declaration = self.declarations_in(directory).get(name)
                if declaration is not None:
                    return declaration
            for declaration in self._all_declarations(name):
                if declaration.go_file.package_name == package:
                    return declaration
            return None

        if context_dir is not None:
            declaration = self.declarations_in(context_dir).get(name)
            if declaration is not None:
                return declaration
        return next(iter(self._all_declarations(name)), None)

    def declarations_in(self, directory: Path) -> dict[str, TypeDeclaration]:
        """All type declarations in the non-test Go files below ``directory``."""
        if directory in self._declarations:
            return self._declarations[directory]

        declarations: dict[str, TypeDeclaration] = {}
        if directory.is_dir():
            for path in sorted(directory.rglob("*.go")):
                if path.name.endswith("_test.go"):
                    continue
                try:
                    go_file = parse_file(path)
                except SourceParseError as e:
                    logger.warning("Skipping model file %s: %s", path, e)
                    continue
                imports = go_file.imports()
                for node in walk(go_file.root):
                    if node.type in ("type_spec", "type_alias"):
                        name = node_text(node.child_by_field_name("name"))
                        declarations.setdefault(name, TypeDeclaration(name, node, go_file, imports))
        self._declarations[directory] = declarations
        return declarations

    def _all_declarations(self, name: str) -> list[TypeDeclaration]:
        declaration = self.declarations_in(self.models_root).get(name)
        return [declaration] if declaration is not None else []

    def _schema_for(self, declaration: TypeDeclaration) -> tuple[SchemaSpec, bool]:
        """Schema of a declaration and whether it belongs in the shared table."""
        underlying = declaration.spec.child_by_field_name("type")
        if underlying is None:
            return SchemaSpec.generic_object(), False

        if underlying.type == "struct_type":
            return self._struct_schema(declaration, underlying), True

        underlying_name = type_to_string(underlying, declaration.imports)
        if declaration.name.endswith(ENUM_SUFFIX):
            schema = SchemaSpec(
                type=openapi_primitive(underlying_name),
                description=f"Enum type: {declaration.name}",
            )
            values = enum_values(declaration.go_file, declaration.name)
            if values:
                schema.enum = values
            return schema, True

        # transparent alias
        return self._resolve(underlying_name, declaration.directory), False

    def _struct_schema(self, declaration: TypeDeclaration, struct: Node) -> SchemaSpec:
        schema = SchemaSpec(type="object", properties={}, required=[])
        doc = declaration.doc
        if doc:
            schema.description = " ".join(doc)

        for field_node in struct_fields(struct):
            tag_node = field_node.child_by_field_name("tag")
            tags = parse_struct_tag(string_value(tag_node) or "") if tag_node is not None else {}
            json_tag = tags.get("json", "")
            options = json_tag.split(",")
            json_name = options[0]
            if not json_name or json_name == "-":
                continue

            omitempty = "omitempty" in options[1:]
            required = "required" in tags.get("validate", "").split(",")

            field_type = type_to_string(field_node.child_by_field_name("type"), declaration.imports)
            field_schema = self._resolve(field_type, declaration.directory)
            field_doc = doc_comments(field_node)
            if field_doc:
                field_schema = field_schema.model_copy(update={"description": " ".join(field_doc)})

            schema.properties[json_name] = field_schema
            if not omitempty or required:
                schema.required.append(json_name)

        return schema


def enum_values(go_file: GoFile, type_name: str) -> list[str | int]:
    """Values of typed constants declared as ``type_name`` in the same file.

    Untyped constants are ignored so unrelated string constants never leak
    into the enum.
    """
    values: list[str | int] = []
    for node in walk(go_file.root):
        if node.type != "const_spec":
            continue
        type_node = node.child_by_field_name("type")
        if type_node is None or type_node.type != "type_identifier" or node_text(type_node) != type_name:
            continue
        for value in named_children(node.child_by_field_name("value")):
            text = string_value(value)
            if text is not None:
                values.append(text)
            elif value.type == "int_literal":
                try:
                    values.append(int(node_text(value).replace("_", ""), 0))
                except ValueError:
                    continue
    return values
