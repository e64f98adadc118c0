"""Data models shared by the analysis passes.

Route extraction produces RawEndpoint records; the enhancer turns each into
an EndpointSpec whose schemas are SchemaSpec trees, later resolved and
assembled into the OpenAPI document.
"""

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_REF_PREFIX = "#/components/schemas/"

INLINE_HANDLER = "<inline>"


class SchemaSpec(BaseModel):
    """A JSON-Schema-like node. Named types are referenced via ``$ref``."""

    model_config = ConfigDict(populate_by_name=True)

    type: str | None = None
    format: str | None = None
    description: str | None = None
    ref: str | None = Field(default=None, alias="$ref")
    properties: dict[str, "SchemaSpec"] | None = None
    required: list[str] | None = None
    items: "SchemaSpec | None" = None
    enum: list[str | int] | None = None
    additional_properties: "SchemaSpec | None" = Field(default=None, alias="additionalProperties")
    # Go type the reference was inferred from; resolved at assembly time
    type_name: str | None = Field(default=None, exclude=True)

    @classmethod
    def reference(cls, clean_name: str, type_name: str | None = None) -> "SchemaSpec":
        return cls(ref=SCHEMA_REF_PREFIX + clean_name, type_name=type_name)

    @classmethod
    def generic_object(cls) -> "SchemaSpec":
        return cls(type="object")

    @classmethod
    def error_object(cls) -> "SchemaSpec":
        return cls(type="object", properties={"error": cls(type="string")})

    @property
    def ref_name(self) -> str | None:
        if self.ref is None:
            return None
        return self.ref.removeprefix(SCHEMA_REF_PREFIX)

    @property
    def kind(self) -> str:
        """primitive / object / array / ref / enum"""
        if self.ref is not None:
            return "ref"
        if self.enum:
            return "enum"
        if self.type == "array":
            return "array"
        if self.type == "object" or self.type is None:
            return "object"
        return "primitive"

    def to_openapi(self) -> dict:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return _drop_empty_required(data)


def _drop_empty_required(data: dict) -> dict:
    if data.get("required") == []:
        del data["required"]
    for key in ("items", "additionalProperties"):
        if isinstance(data.get(key), dict):
            _drop_empty_required(data[key])
    for prop in (data.get("properties") or {}).values():
        _drop_empty_required(prop)
    return data


class RouteGroup(BaseModel):
    """A variable bound to a path prefix and inherited middleware."""

    variable_name: str
    full_path: str
    middleware: list[str] = []


class RawEndpoint(BaseModel):
    """One HTTP-verb registration found in a controller file."""

    path: str  # /v1/orders/:id
    method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS
    handler: str
    microservice: str
    middleware: list[str] = []
    # receiver type when the handler is a method on the registering controller
    handler_receiver: str = Field(default="", exclude=True)


class ParameterSpec(BaseModel):
    """A single path or query parameter."""

    name: str
    location: str  # path / query / header
    required: bool
    description: str = ""
    schema_: SchemaSpec = Field(default_factory=lambda: SchemaSpec(type="string"), alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class RequestBodySpec(BaseModel):
    description: str = "Request body"
    required: bool = True
    content_type: str = "application/json"
    schema_: SchemaSpec = Field(alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class ResponseSpec(BaseModel):
    description: str
    content_type: str | None = "application/json"  # None: no body
    schema_: SchemaSpec | None = Field(default=None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class SecurityRequirement(BaseModel):
    name: str  # bearerAuth / permissions
    scopes: list[str] = []


class EndpointSpec(BaseModel):
    """A RawEndpoint enriched with handler-derived request/response details."""

    path: str
    method: str
    handler: str
    microservice: str
    middleware: list[str] = []
    summary: str = ""
    description: str = ""
    tags: list[str] = []
    parameters: list[ParameterSpec] = []
    request_body: RequestBodySpec | None = None
    responses: dict[str, ResponseSpec] = {}  # {status_code: ResponseSpec}
    security: list[SecurityRequirement] = []
    controller_file: str = ""

    def has_parameter(self, name: str, location: str) -> bool:
        return any(p.name == name and p.location == location for p in self.parameters)
