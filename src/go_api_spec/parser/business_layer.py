"""Business-layer method signatures.

Handlers usually delegate to a business-layer struct held in a controller
field (``s.dealsBusinessLayer.GetDeal(...)``). The registry pre-scans the
business-layer directories once so the enhancer can map such a call to the
method's declared return type with a plain dictionary lookup.
"""

import logging
from pathlib import Path

from pydantic import BaseModel
from tree_sitter import Node

from go_api_spec.errors import SourceParseError
from go_api_spec.parser.golang import (
    GoFile,
    named_children,
    node_text,
    parse_file,
    receiver_type_name,
    type_to_string,
)

logger = logging.getLogger(__name__)

BUSINESS_LAYER_TYPE_SUFFIX = "BusinessLayer"


class BusinessLayerMethod(BaseModel):
    name: str
    return_types: list[str]  # declaration order, e.g. ["deals_models.DealDetails", "error"]


class BusinessLayerInfo(BaseModel):
    package: str
    type_name: str
    methods: dict[str, BusinessLayerMethod] = {}


def is_error_type(type_name: str) -> bool:
    return type_name == "error" or type_name.endswith(".error")


class BusinessLayerRegistry:
    """Index of business-layer methods keyed by (package, receiver type)."""

    def __init__(self):
        self.layers: dict[tuple[str, str], BusinessLayerInfo] = {}

    def scan(self, domain_dir: Path, suffix: str) -> None:
        """Register every business layer below ``domain_dir``."""
        if not domain_dir.is_dir():
            logger.warning("Business layer directory %s does not exist", domain_dir)
            return

        directories = sorted(p for p in domain_dir.rglob("*") if p.is_dir() and p.name.endswith(suffix))
        for directory in directories:
            logger.debug("Scanning business layer directory: %s", directory)
            self.scan_directory(directory)

        logger.debug("Total business layers registered: %d", len(self.layers))
        for (package, type_name), info in self.layers.items():
            logger.debug("  - %s.%s: %d methods", package, type_name, len(info.methods))

    def scan_directory(self, directory: Path) -> None:
        for path in sorted(directory.glob("*.go")):
            if path.name.endswith("_test.go"):
                continue
            try:
                go_file = parse_file(path)
            except SourceParseError as e:
                logger.warning("Skipping %s: %s", path, e)
                continue
            self.add_file(go_file)

    def add_file(self, go_file: GoFile) -> None:
        package = go_file.package_name
        imports = go_file.imports()

        layer_types = set()
        for node in go_file.root.named_children:
            if node.type != "type_declaration":
                continue
            for spec in named_children(node):
                if spec.type != "type_spec":
                    continue
                type_node = spec.child_by_field_name("type")
                name = node_text(spec.child_by_field_name("name"))
                if type_node is not None and type_node.type == "struct_type" and name.endswith(BUSINESS_LAYER_TYPE_SUFFIX):
                    layer_types.add(name)

        for node in go_file.root.named_children:
            if node.type != "method_declaration":
                continue
            receiver = receiver_type_name(node)
            if receiver not in layer_types:
                continue
            name = node_text(node.child_by_field_name("name"))
            info = self.layers.setdefault(
                (package, receiver), BusinessLayerInfo(package=package, type_name=receiver)
            )
            info.methods[name] = BusinessLayerMethod(name=name, return_types=return_types(node, imports))

    def method_return_type(self, package: str, type_name: str, method_name: str) -> str | None:
        """First non-error return type of a business-layer method."""
        info = self.layers.get((package, type_name))
        if info is None:
            # import alias and package clause may disagree; match on type name alone
            info = next((i for i in self.layers.values() if i.type_name == type_name), None)
        if info is None:
            return None

        method = info.methods.get(method_name)
        if method is None:
            return None
        for return_type in method.return_types:
            if not is_error_type(return_type):
                return return_type
        return None

    def lookup_field_method(self, field_type: str, method_name: str) -> str | None:
        """Return type of ``method_name`` on a field declared as ``*pkg.Type``."""
        parts = field_type.lstrip("*").split(".")
        if len(parts) != 2:
            return None
        package, type_name = parts
        return self.method_return_type(package, type_name, method_name)


def return_types(function: Node, imports: dict[str, str] | None = None) -> list[str]:
    """Declared result types of a function or method, one entry per value."""
    result = function.child_by_field_name("result")
    if result is None:
        return []
    if result.type != "parameter_list":
        type_name = type_to_string(result, imports)
        return [type_name] if type_name else []

    types = []
    for param in named_children(result):
        type_name = type_to_string(param.child_by_field_name("type"), imports)
        if not type_name:
            continue
        count = max(1, len(param.children_by_field_name("name")))
        types.extend([type_name] * count)
    return types
