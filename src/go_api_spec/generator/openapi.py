"""OpenAPI 3.0 document assembly."""

import logging
import re

from go_api_spec.generator.enhancer import BEARER_SCHEME, PERMISSIONS_SCHEME
from go_api_spec.generator.schema import TypeResolver
from go_api_spec.parser.base import INLINE_HANDLER, EndpointSpec, ResponseSpec, SchemaSpec

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"

DEFAULT_DESCRIPTION = "Auto-generated API documentation"

METHOD_ORDER = ["get", "put", "post", "delete", "options", "head", "patch"]

_PATH_PARAM = re.compile(r"^:(\w+)\??$")


def normalize_path(path: str) -> str:
    """``/orders/:id`` -> ``/orders/{id}``."""
    segments = []
    for segment in path.split("/"):
        match = _PATH_PARAM.match(segment)
        segments.append("{" + match.group(1) + "}" if match else segment)
    return "/".join(segments)


def operation_id(endpoint: EndpointSpec) -> str:
    method = endpoint.method.lower()
    if endpoint.handler == INLINE_HANDLER:
        words = [re.sub(r"\W", "", s) for s in endpoint.path.split("/")]
        return f"{method}_{'_'.join(w for w in words if w) or 'root'}"
    handler = endpoint.handler.removeprefix("*").removesuffix("Controller")
    return f"{method}_{handler}"


def wrap_response_schema(schema: SchemaSpec, status: str) -> SchemaSpec:
    """Success payloads go under a ``data`` property; errors stay as they are."""
    if status.startswith(("4", "5")):
        return schema
    return SchemaSpec(type="object", properties={"data": schema})


def format_microservice_title(name: str) -> str:
    """``ms_order_history`` -> ``MS Order History API``."""
    name = name.removeprefix("ms_")
    words = [w[0].upper() + w[1:] for w in name.split("_") if w]
    return f"MS {' '.join(words)} API"


class OpenApiDocument:
    """Accumulates endpoints into one document.

    Call ``add_endpoint`` once per endpoint, then ``finalize_security_schemes``
    once before serializing with ``to_dict``.
    """

    def __init__(
        self,
        title: str,
        version: str = "1.0.0",
        description: str = DEFAULT_DESCRIPTION,
        servers: list[str] | None = None,
        resolver: TypeResolver | None = None,
    ):
        self.info = {"title": title, "version": version}
        if description:
            self.info["description"] = description
        self.servers = [{"url": url} for url in servers or []]
        self.resolver = resolver
        self.paths: dict[str, dict[str, dict]] = {}
        self.tags: list[dict] = []
        self.security_schemes: dict[str, dict] = {
            BEARER_SCHEME: {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "JWT Bearer token authentication",
            },
        }
        self.collected_scopes: list[str] = []

    @property
    def schemas(self) -> dict[str, SchemaSpec]:
        return self.resolver.schemas if self.resolver is not None else {}

    def add_endpoint(self, endpoint: EndpointSpec) -> None:
        path = normalize_path(endpoint.path)
        self.paths.setdefault(path, {})[endpoint.method.lower()] = self.create_operation(endpoint)

        for tag in endpoint.tags:
            if not any(t["name"] == tag for t in self.tags):
                self.tags.append({"name": tag, "description": f"{tag} related endpoints"})

        for requirement in endpoint.security:
            for scope in requirement.scopes:
                if scope not in self.collected_scopes:
                    self.collected_scopes.append(scope)

    def resolve_schema(self, schema: SchemaSpec) -> SchemaSpec:
        """Replace an inferred-type placeholder with the resolver's answer."""
        if schema.type_name is None:
            return schema
        if self.resolver is None:
            return SchemaSpec.generic_object()
        return self.resolver.resolve_type(schema.type_name)

    def create_operation(self, endpoint: EndpointSpec) -> dict:
        operation: dict = {"tags": list(endpoint.tags)}
        if endpoint.summary:
            operation["summary"] = endpoint.summary
        if endpoint.description:
            operation["description"] = endpoint.description
        operation["operationId"] = operation_id(endpoint)

        if endpoint.parameters:
            operation["parameters"] = [
                {
                    "name": p.name,
                    "in": p.location,
                    "description": p.description,
                    "required": p.required,
                    "schema": self.resolve_schema(p.schema_).to_openapi(),
                }
                for p in endpoint.parameters
            ]

        body = endpoint.request_body
        if body is not None:
            operation["requestBody"] = {
                "description": body.description,
                "required": body.required,
                "content": {body.content_type: {"schema": self.resolve_schema(body.schema_).to_openapi()}},
            }

        responses = dict(endpoint.responses)
        if "400" not in responses:
            responses["400"] = ResponseSpec(description="Bad Request", schema=SchemaSpec.error_object())
        operation["responses"] = {status: self._response(status, responses[status]) for status in sorted(responses)}

        if endpoint.security:
            operation["security"] = [{r.name: list(r.scopes)} for r in endpoint.security]
        return operation

    def _response(self, status: str, response: ResponseSpec) -> dict:
        result: dict = {"description": response.description}
        if response.content_type:
            schema = self.resolve_schema(response.schema_ or SchemaSpec.generic_object())
            result["content"] = {response.content_type: {"schema": wrap_response_schema(schema, status).to_openapi()}}
        return result

    def finalize_security_schemes(self, authorize_url: str = "", token_url: str = "") -> None:
        """Add the ``permissions`` scheme holding every collected scope, if any."""
        if not self.collected_scopes:
            return
        self.security_schemes[PERMISSIONS_SCHEME] = {
            "type": "oauth2",
            "description": "OAuth2 with permission scopes extracted from middleware",
            "flows": {
                "authorizationCode": {
                    "authorizationUrl": authorize_url,
                    "tokenUrl": token_url,
                    "scopes": {scope: f"Permission: {scope}" for scope in sorted(self.collected_scopes)},
                },
            },
        }

    def operations(self):
        """Yield (path, method, operation) in output order."""
        for path in sorted(self.paths):
            item = self.paths[path]
            for method in sorted(item, key=METHOD_ORDER.index):
                yield path, method, item[method]

    def to_dict(self) -> dict:
        paths: dict[str, dict] = {}
        for path, method, operation in self.operations():
            paths.setdefault(path, {})[method] = operation

        document = {"openapi": OPENAPI_VERSION, "info": dict(self.info)}
        if self.servers:
            document["servers"] = list(self.servers)
        document["paths"] = paths
        document["components"] = {
            "schemas": {name: self.schemas[name].to_openapi() for name in sorted(self.schemas)},
            "securitySchemes": dict(self.security_schemes),
        }
        if self.tags:
            document["tags"] = list(self.tags)
        return document
