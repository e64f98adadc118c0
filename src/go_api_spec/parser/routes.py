"""Route graph builder.

Walks one controller file in source order, tracking which variables hold
route groups (with their accumulated prefix and middleware) and turning
every ``<receiver>.<Verb>(path, mw..., handler)`` call into a RawEndpoint.
"""

import logging
from pathlib import Path

from tree_sitter import Node

from go_api_spec.parser.base import INLINE_HANDLER, RawEndpoint, RouteGroup
from go_api_spec.parser.golang import (
    GoFile,
    call_arguments,
    expression_to_string,
    named_children,
    node_text,
    parse_file,
    receiver_type_name,
    receiver_variable,
    string_value,
    walk,
)

logger = logging.getLogger(__name__)

HTTP_VERBS = {"Get", "Post", "Put", "Delete", "Patch", "Head", "Options"}

GROUP_METHOD = "Group"


def join_paths(prefix: str, path: str) -> str:
    """Concatenate a group prefix and a path suffix without doubling slashes.

    The result always starts with "/", including a first-level group
    declared as ``app.Group("v1")``.
    """
    if path and not path.startswith("/"):
        path = "/" + path
    if not prefix:
        return path or "/"
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    if not path:
        return prefix
    return prefix.rstrip("/") + path


class RouteGraphBuilder:
    """Single-file walk producing RawEndpoint records in declaration order."""

    def __init__(self, microservice: str):
        self.microservice = microservice
        self.groups: dict[str, RouteGroup] = {}
        # variable -> symbolic name, e.g. hasPermission -> c.gates.IsAuthenticated.AllFeaturesOf
        self.symbols: dict[str, str] = {}

    def build(self, go_file: GoFile) -> list[RawEndpoint]:
        endpoints = []
        for node in walk(go_file.root):
            if node.type in ("short_var_declaration", "assignment_statement"):
                self._handle_assignment(node)
            elif node.type == "call_expression":
                endpoint = self._parse_verb_call(node)
                if endpoint is not None:
                    endpoints.append(endpoint)
        return endpoints

    def _handle_assignment(self, node: Node) -> None:
        if node.type == "assignment_statement":
            operator = node.child_by_field_name("operator")
            if operator is not None and node_text(operator) != "=":
                return
        left = named_children(node.child_by_field_name("left"))
        right = named_children(node.child_by_field_name("right"))
        if len(left) != 1 or len(right) != 1 or left[0].type != "identifier":
            return

        name = node_text(left[0])
        value = right[0]

        if value.type == "call_expression":
            function = value.child_by_field_name("function")
            if function is None or function.type != "selector_expression":
                return
            if node_text(function.child_by_field_name("field")) == GROUP_METHOD:
                self._register_group(name, value, function)
            self.symbols[name] = expression_to_string(function)
        elif value.type == "selector_expression":
            self.symbols[name] = expression_to_string(value)

    def _register_group(self, name: str, call: Node, function: Node) -> None:
        args = call_arguments(call)
        if not args:
            return
        path = string_value(args[0])
        if path is None:
            return

        prefix = ""
        middleware: list[str] = []
        parent = self._group_of(function.child_by_field_name("operand"))
        if parent is not None:
            prefix = parent.full_path
            middleware.extend(parent.middleware)

        for arg in args[1:]:
            mw = self.middleware_name(arg)
            if mw:
                middleware.append(mw)

        full_path = join_paths(prefix, path)
        self.groups[name] = RouteGroup(variable_name=name, full_path=full_path, middleware=middleware)
        logger.debug("Tracked group: %s -> %s (middleware: %s)", name, full_path, middleware)

    def _group_of(self, receiver: Node | None) -> RouteGroup | None:
        if receiver is None or receiver.type != "identifier":
            return None
        return self.groups.get(node_text(receiver))

    def _parse_verb_call(self, call: Node) -> RawEndpoint | None:
        function = call.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            return None
        verb = node_text(function.child_by_field_name("field"))
        if verb not in HTTP_VERBS:
            return None

        args = call_arguments(call)
        if len(args) < 2:
            return None

        path = string_value(args[0]) or "/"

        handler = ""
        handler_index = -1
        for index in range(len(args) - 1, 0, -1):
            handler = handler_name(args[index])
            if handler:
                handler_index = index
                break
        if not handler:
            return None

        group = self._group_of(function.child_by_field_name("operand"))
        middleware = list(group.middleware) if group else []
        for arg in args[1:handler_index]:
            mw = self.middleware_name(arg)
            if mw:
                middleware.append(mw)

        full_path = join_paths(group.full_path if group else "", path)
        logger.debug("Found endpoint: %s %s -> %s (middleware: %s)", verb.upper(), full_path, handler, middleware)
        return RawEndpoint(
            path=full_path,
            method=verb.upper(),
            handler=handler,
            microservice=self.microservice,
            middleware=middleware,
            handler_receiver=controller_receiver(call, args[handler_index]),
        )

    def middleware_name(self, node: Node) -> str:
        """Render a middleware argument, e.g. ``hasPermission("orders:write")``."""
        if node.type == "identifier":
            name = node_text(node)
            return self.symbols.get(name, name)
        if node.type == "selector_expression":
            return expression_to_string(node)
        if node.type == "call_expression":
            function = node.child_by_field_name("function")
            if function is None or function.type not in ("identifier", "selector_expression"):
                return ""
            callee = node_text(function) if function.type == "identifier" else expression_to_string(function)
            rendered = ", ".join(_argument_text(a) for a in call_arguments(node))
            return f"{callee}({rendered})"
        return ""


def handler_name(node: Node) -> str:
    """Name of the handler an argument refers to, or "" if it does not look like one."""
    if node.type == "identifier":
        return node_text(node)
    if node.type == "selector_expression":
        return node_text(node.child_by_field_name("field"))
    if node.type == "call_expression":
        function = node.child_by_field_name("function")
        if function is not None and function.type == "identifier":
            return node_text(function)
        if function is not None and function.type == "selector_expression":
            return node_text(function.child_by_field_name("field"))
    if node.type == "func_literal":
        return INLINE_HANDLER
    return ""


def controller_receiver(call: Node, handler: Node) -> str:
    """Receiver type when ``handler`` is ``recv.Method`` on the method doing the registering.

    ``c.GetUser`` inside ``func (c *usersController) SetupRoutes`` names
    ``usersController.GetUser``, not some other type's ``GetUser``.
    """
    if handler.type != "selector_expression":
        return ""
    operand = handler.child_by_field_name("operand")
    if operand is None or operand.type != "identifier":
        return ""
    method = call.parent
    while method is not None and method.type not in ("method_declaration", "function_declaration"):
        method = method.parent
    if method is None or method.type != "method_declaration":
        return ""
    if receiver_variable(method) != node_text(operand):
        return ""
    return receiver_type_name(method)


def _argument_text(node: Node) -> str:
    if node.type in (
        "interpreted_string_literal",
        "raw_string_literal",
        "int_literal",
        "float_literal",
        "rune_literal",
        "true",
        "false",
    ):
        return node_text(node)
    if node.type == "identifier":
        return node_text(node)
    if node.type == "selector_expression":
        return expression_to_string(node)
    return "?"


def extract_endpoints_from_file(file_path: Path, microservice: str) -> list[RawEndpoint]:
    """Parse a controller file and extract its endpoints. Raises SourceParseError."""
    go_file = parse_file(file_path)
    return RouteGraphBuilder(microservice).build(go_file)
