"""Endpoint enhancement.

Turns a RawEndpoint into an EndpointSpec by reading its handler body:
path/query parameters, request body, responses per ``Response(...)`` call
site, security from the middleware chain and tags from the path.

Variable types inside a handler are inferred with an ordered list of
strategies, first hit wins:

1. declared type: explicit ``var x T``, composite literals, known
   extractor calls, functions and controller methods of the same package;
2. business layer: ``s.<field>.<Method>()`` where the controller field's
   type is a registered business layer;
3. naming convention: ``CreateOrder`` -> ``OrderResponse``,
   ``ListOrders`` -> ``OrdersListResponse``;
4. nothing: the payload is a generic object.
"""

import logging
import re
from dataclasses import dataclass, field
from http import HTTPStatus

from tree_sitter import Node

from go_api_spec.generator.schema import builtin_schema, clean_type_name
from go_api_spec.parser.base import (
    INLINE_HANDLER,
    EndpointSpec,
    ParameterSpec,
    RawEndpoint,
    RequestBodySpec,
    ResponseSpec,
    SchemaSpec,
    SecurityRequirement,
)
from go_api_spec.parser.business_layer import BusinessLayerRegistry, is_error_type, return_types
from go_api_spec.parser.golang import (
    call_arguments,
    is_int_literal,
    named_children,
    node_text,
    string_value,
    type_to_string,
    walk,
)
from go_api_spec.parser.symbols import FunctionDecl, SymbolTable

logger = logging.getLogger(__name__)

PERMISSION_CONSTANTS = {
    "session_manager_models.SuperadminRoleFeature": "superadmin",
}

NOT_AUTHENTICATED_MARKER = "NotAuthenticated"
AUTHENTICATED_MARKER = "Authenticated"

# (call prefix, takes several comma-separated values)
PERMISSION_PATTERNS = [
    ("hasPermission(", False),
    ("AllFeaturesOf(", True),
    ("AnyFeaturesOf(", True),
    ("RequirePermissions(", True),
    ("RequireAnyPermission(", True),
]

BEARER_SCHEME = "bearerAuth"
PERMISSIONS_SCHEME = "permissions"

# extractor name -> (index of the name argument, schema of the value)
PARAM_EXTRACTORS = {
    "Params": (0, lambda: SchemaSpec(type="string")),
    "ParamsUID": (1, lambda: SchemaSpec(type="string", format="uuid")),
    "ParamsUint64": (1, lambda: SchemaSpec(type="integer", format="uint64")),
    "ParamsInt": (1, lambda: SchemaSpec(type="integer", format="int64")),
}

# Go type produced by a known extractor call
EXTRACTOR_TYPES = {
    "Params": "string",
    "ParamsUID": "uid.UID",
    "ParamsUint64": "uint64",
    "ParamsInt": "int",
    "Query": "string",
}

_PATH_PARAM = re.compile(r"^:(\w+)\??$")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def format_tag_name(segment: str) -> str:
    """``user-profiles`` -> ``User Profiles``."""
    parts = [p for p in re.split(r"[-_]", segment) if p]
    return " ".join(p[0].upper() + p[1:].lower() for p in parts)


def tag_for_path(path: str, microservice: str) -> str:
    """Tag from the first path segment, or the microservice name."""
    first = path.strip("/").split("/")[0]
    if not first or first.startswith(":"):
        return microservice
    return format_tag_name(first) or microservice


def path_parameter_names(path: str) -> list[str]:
    names = []
    for segment in path.split("/"):
        match = _PATH_PARAM.match(segment)
        if match:
            names.append(match.group(1))
    return names


def clean_permission_argument(argument: str, constants: dict[str, str]) -> str:
    argument = argument.strip()
    if len(argument) >= 2 and argument[0] == argument[-1] and argument[0] in "\"'`":
        argument = argument[1:-1]
    return constants.get(argument, argument)


def permission_scopes(middleware: str, constants: dict[str, str]) -> list[str]:
    """Scopes named by permission-bearing calls inside one middleware string."""
    scopes = []
    for prefix, multi_value in PERMISSION_PATTERNS:
        index = middleware.find(prefix)
        if index == -1:
            continue
        start = index + len(prefix)
        depth = 1
        end = start
        for position in range(start, len(middleware)):
            char = middleware[position]
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    end = position
                    break
        arguments = middleware[start:end]
        values = arguments.split(",") if multi_value else [arguments]
        for value in values:
            cleaned = clean_permission_argument(value, constants)
            if cleaned:
                scopes.append(cleaned)
    return scopes


def derive_security(middleware: list[str], constants: dict[str, str] | None = None) -> list[SecurityRequirement]:
    """Security requirements implied by a middleware chain.

    A "not authenticated" marker anywhere makes the endpoint anonymous.
    Without an authentication check there is no requirement at all; with
    one, permission scopes upgrade ``bearerAuth`` to a single
    ``permissions`` requirement.
    """
    if any(NOT_AUTHENTICATED_MARKER in mw for mw in middleware):
        return []
    if not any(AUTHENTICATED_MARKER in mw for mw in middleware):
        return []

    constants = PERMISSION_CONSTANTS if constants is None else constants
    scopes: list[str] = []
    for mw in middleware:
        for scope in permission_scopes(mw, constants):
            if scope not in scopes:
                scopes.append(scope)

    if scopes:
        return [SecurityRequirement(name=PERMISSIONS_SCHEME, scopes=scopes)]
    return [SecurityRequirement(name=BEARER_SCHEME)]


def status_code(node: Node | None) -> str | None:
    """Status of an int literal or a ``<pkg>.Status<Name>`` constant."""
    if node is None:
        return None
    if is_int_literal(node):
        return node_text(node)
    if node.type == "selector_expression":
        name = node_text(node.child_by_field_name("field"))
        if not name.startswith("Status") or len(name) == len("Status"):
            return None
        member = _CAMEL_BOUNDARY.sub("_", name[len("Status"):]).upper()
        try:
            return str(HTTPStatus[member].value)
        except KeyError:
            return None
    return None


def naming_convention_type(method_name: str) -> str:
    """Response type name guessed from a business method name."""
    for prefix in ("Create", "Update", "Get"):
        if method_name.startswith(prefix):
            return method_name[len(prefix):] + "Response"
    if method_name.startswith("List"):
        return method_name[len("List"):] + "ListResponse"
    return method_name + "Response"


def is_error_payload(node: Node) -> bool:
    if node.type != "identifier":
        return False
    name = node_text(node)
    return name == "err" or name.endswith("Err")


def schema_for_type(type_name: str | None) -> SchemaSpec:
    """``$ref`` placeholder for an inferred Go type, resolved at assembly."""
    if not type_name:
        return SchemaSpec.generic_object()
    builtin = builtin_schema(type_name)
    if builtin is not None:
        return builtin
    clean_name = clean_type_name(type_name)
    if not clean_name or clean_name == "object":
        return SchemaSpec.generic_object()
    return SchemaSpec.reference(clean_name, type_name=type_name)


def error_response(description: str = "Error response") -> ResponseSpec:
    return ResponseSpec(description=description, schema=SchemaSpec.error_object())


@dataclass
class HandlerScope:
    """What is known while reading one handler body."""

    spec: EndpointSpec
    receiver_type: str
    imports: dict[str, str]
    variables: dict[str, str] = field(default_factory=dict)


class EndpointEnhancer:
    """Enriches raw endpoints of one controller directory."""

    def __init__(
        self,
        symbols: SymbolTable,
        registry: BusinessLayerRegistry,
        permission_constants: dict[str, str] | None = None,
    ):
        self.symbols = symbols
        self.registry = registry
        self.permission_constants = {**PERMISSION_CONSTANTS, **(permission_constants or {})}
        self.call_patterns = {
            "Params": self._on_path_parameter,
            "ParamsUID": self._on_path_parameter,
            "ParamsUint64": self._on_path_parameter,
            "ParamsInt": self._on_path_parameter,
            "Query": self._on_query_parameter,
            "DeserializeFromFn": self._on_deserialize,
            "BodyParser": self._on_deserialize,
            "Response": self._on_response,
            "ParseQueryParameters": self._on_parse_query_parameters,
            "APIError": self._on_api_error,
        }
        self.type_strategies = [
            ("declared type", self.declared_type),
            ("business layer", self.business_layer_type),
            ("naming convention", self.naming_convention_type),
        ]

    def enhance(self, raw: RawEndpoint) -> EndpointSpec:
        spec = EndpointSpec(
            path=raw.path,
            method=raw.method.upper(),
            handler=raw.handler,
            microservice=raw.microservice,
            middleware=list(raw.middleware),
            tags=[tag_for_path(raw.path, raw.microservice)],
            security=derive_security(raw.middleware, self.permission_constants),
        )

        handler = None
        if raw.handler != INLINE_HANDLER:
            handler = self.symbols.function(raw.handler, raw.handler_receiver or None)
        if handler is None:
            logger.debug("Handler function %s not found", raw.handler)
        else:
            spec.controller_file = str(handler.file_path)
            doc = handler.doc
            if doc:
                spec.summary = doc[0]
                spec.description = "\n".join(doc[1:])
            if handler.body is not None:
                self.analyze_body(handler, spec)

        for name in path_parameter_names(spec.path):
            if not spec.has_parameter(name, "path"):
                spec.parameters.append(
                    ParameterSpec(name=name, location="path", required=True, description=f"Path parameter: {name}")
                )

        if not spec.responses:
            spec.responses["200"] = ResponseSpec(description="Successful response", schema=SchemaSpec.generic_object())
        return spec

    def analyze_body(self, handler: FunctionDecl, spec: EndpointSpec) -> None:
        scope = HandlerScope(spec=spec, receiver_type=handler.receiver_type, imports=handler.imports)

        for node in walk(handler.body):
            if node.type == "var_spec":
                self._type_var_spec(node, scope)
            elif node.type == "short_var_declaration":
                self._type_short_var(node, scope)

        for node in walk(handler.body):
            if node.type != "call_expression":
                continue
            function = node.child_by_field_name("function")
            if function is None or function.type != "selector_expression":
                continue
            handle = self.call_patterns.get(node_text(function.child_by_field_name("field")))
            if handle is not None:
                handle(node, scope)

    # variable typing

    def _type_var_spec(self, node: Node, scope: HandlerScope) -> None:
        names = [node_text(n) for n in node.children_by_field_name("name")]
        type_node = node.child_by_field_name("type")
        if type_node is not None:
            declared = type_to_string(type_node, scope.imports)
            for name in names:
                if declared:
                    scope.variables[name] = declared
            return
        values = named_children(node.child_by_field_name("value"))
        for name, value in zip(names, values):
            self._assign(scope, name, self.expression_type(value, scope))

    def _type_short_var(self, node: Node, scope: HandlerScope) -> None:
        left = named_children(node.child_by_field_name("left"))
        right = named_children(node.child_by_field_name("right"))
        if len(right) == 1 and right[0].type == "call_expression":
            inferred = self.call_type(right[0], scope)
            for target in left:
                name = node_text(target)
                if target.type == "identifier" and name not in ("err", "_"):
                    self._assign(scope, name, inferred)
                    break
            return
        for target, value in zip(left, right):
            if target.type == "identifier":
                self._assign(scope, node_text(target), self.expression_type(value, scope))

    @staticmethod
    def _assign(scope: HandlerScope, name: str, type_name: str | None) -> None:
        if type_name:
            scope.variables[name] = type_name

    def expression_type(self, node: Node, scope: HandlerScope) -> str | None:
        """Go type of an expression inside the handler, if it can be told."""
        if node.type == "composite_literal":
            return type_to_string(node.child_by_field_name("type"), scope.imports) or None
        if node.type == "unary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and node_text(operator) == "&":
                return self.expression_type(node.child_by_field_name("operand"), scope)
            return None
        if node.type == "identifier":
            return scope.variables.get(node_text(node))
        if node.type == "call_expression":
            return self.call_type(node, scope)
        return None

    def call_type(self, call: Node, scope: HandlerScope) -> str | None:
        for name, strategy in self.type_strategies:
            type_name = strategy(call, scope)
            if type_name:
                logger.debug("Inferred %s for %s via %s", type_name, node_text(call.child_by_field_name("function")), name)
                return type_name
        return None

    def declared_type(self, call: Node, scope: HandlerScope) -> str | None:
        """Declared result of a known extractor or a same-package function/method."""
        function = call.child_by_field_name("function")
        if function is None:
            return None

        decl = None
        if function.type == "identifier":
            decl = self.symbols.functions.get(node_text(function))
            if decl is not None and decl.receiver_type:
                decl = None
        elif function.type == "selector_expression":
            method = node_text(function.child_by_field_name("field"))
            if method in EXTRACTOR_TYPES:
                return EXTRACTOR_TYPES[method]
            operand = function.child_by_field_name("operand")
            if operand is not None and operand.type == "identifier" and scope.receiver_type:
                decl = self.symbols.methods.get((scope.receiver_type, method))
        if decl is None:
            return None

        for type_name in return_types(decl.node, decl.imports):
            if not is_error_type(type_name):
                return type_name
        return None

    def business_layer_type(self, call: Node, scope: HandlerScope) -> str | None:
        """``s.<field>.<Method>()`` on a business-layer field."""
        function = call.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            return None
        operand = function.child_by_field_name("operand")
        if operand is None or operand.type != "selector_expression":
            return None
        field_type = self.symbols.field_type(scope.receiver_type, node_text(operand.child_by_field_name("field")))
        if field_type is None:
            return None
        return self.registry.lookup_field_method(field_type, node_text(function.child_by_field_name("field")))

    def naming_convention_type(self, call: Node, scope: HandlerScope) -> str | None:
        function = call.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            return None
        return naming_convention_type(node_text(function.child_by_field_name("field")))

    # call patterns

    def _on_path_parameter(self, call: Node, scope: HandlerScope) -> None:
        method = node_text(call.child_by_field_name("function").child_by_field_name("field"))
        index, schema = PARAM_EXTRACTORS[method]
        args = call_arguments(call)
        if index >= len(args):
            return
        name = string_value(args[index])
        if not name or scope.spec.has_parameter(name, "path"):
            return
        scope.spec.parameters.append(
            ParameterSpec(
                name=name,
                location="path",
                required=True,
                description=f"Path parameter: {name}",
                schema=schema(),
            )
        )

    def _on_query_parameter(self, call: Node, scope: HandlerScope) -> None:
        args = call_arguments(call)
        name = string_value(args[0]) if args else None
        if not name or scope.spec.has_parameter(name, "query"):
            return
        scope.spec.parameters.append(
            ParameterSpec(name=name, location="query", required=False, description=f"Query parameter: {name}")
        )

    def _on_parse_query_parameters(self, call: Node, scope: HandlerScope) -> None:
        if scope.spec.has_parameter("query", "query"):
            return
        scope.spec.parameters.append(
            ParameterSpec(
                name="query",
                location="query",
                required=False,
                description="Query parameters for filtering, sorting, and pagination",
                schema=SchemaSpec.generic_object(),
            )
        )

    def _on_deserialize(self, call: Node, scope: HandlerScope) -> None:
        # serializer.DeserializeFromFn(ctx.BodyParser, &req) / ctx.BodyParser(&req)
        args = call_arguments(call)
        target = args[-1] if args else None
        if target is None or target.type != "unary_expression":
            return
        operator = target.child_by_field_name("operator")
        if operator is None or node_text(operator) != "&":
            return
        type_name = self.expression_type(target, scope)
        scope.spec.request_body = RequestBodySpec(schema=schema_for_type(type_name))

    def _on_response(self, call: Node, scope: HandlerScope) -> None:
        # http.Response(ctx) / (ctx, code) / (ctx, data) / (ctx, code, data)
        args = call_arguments(call)
        responses = scope.spec.responses
        if len(args) < 2:
            responses["204"] = ResponseSpec(description="No content", content_type=None)
            return

        status = status_code(args[1])
        if len(args) == 2 and status is not None:
            responses[status] = ResponseSpec(
                description="Successful response",
                schema=SchemaSpec(type="string", description='Returns "Ok"'),
            )
            return

        payload = args[1]
        if len(args) >= 3 and status is not None:
            payload = args[2]
        else:
            status = "200"

        if is_error_payload(payload):
            responses[status] = error_response()
            return
        type_name = self.expression_type(payload, scope)
        responses[status] = ResponseSpec(description="Successful response", schema=schema_for_type(type_name))

    def _on_api_error(self, call: Node, scope: HandlerScope) -> None:
        if "400" not in scope.spec.responses:
            scope.spec.responses["400"] = error_response("Bad request or error response")
