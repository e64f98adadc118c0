from go_api_spec.parser.base import (
    EndpointSpec,
    ParameterSpec,
    RequestBodySpec,
    ResponseSpec,
    SchemaSpec,
)


class TestSchemaSpec:
    def test_reference(self):
        schema = SchemaSpec.reference("Order", type_name="*orders_models.Order")
        assert schema.ref_name == "Order"
        assert schema.kind == "ref"
        # the inferred Go type never leaks into the document
        assert schema.to_openapi() == {"$ref": "#/components/schemas/Order"}

    def test_kinds(self):
        assert SchemaSpec(type="string").kind == "primitive"
        assert SchemaSpec(type="string", enum=["a"]).kind == "enum"
        assert SchemaSpec(type="array", items=SchemaSpec(type="string")).kind == "array"
        assert SchemaSpec.generic_object().kind == "object"
        assert SchemaSpec().kind == "object"
        assert SchemaSpec(type="string").ref_name is None

    def test_aliases_in_output(self):
        schema = SchemaSpec(type="object", additional_properties=SchemaSpec(type="integer"))
        assert schema.to_openapi() == {"type": "object", "additionalProperties": {"type": "integer"}}

    def test_empty_required_dropped(self):
        schema = SchemaSpec(
            type="object",
            properties={"inner": SchemaSpec(type="object", properties={}, required=[])},
            required=[],
        )
        assert schema.to_openapi() == {"type": "object", "properties": {"inner": {"type": "object", "properties": {}}}}

    def test_error_object(self):
        assert SchemaSpec.error_object().to_openapi() == {
            "type": "object",
            "properties": {"error": {"type": "string"}},
        }


class TestParameterSpec:
    def test_defaults(self):
        param = ParameterSpec(name="id", location="path", required=True)
        assert param.description == ""
        assert param.schema_.to_openapi() == {"type": "string"}

    def test_schema_alias(self):
        param = ParameterSpec(name="n", location="query", required=False, schema=SchemaSpec(type="integer"))
        assert param.schema_.type == "integer"


class TestBodiesAndResponses:
    def test_request_body_defaults(self):
        body = RequestBodySpec(schema=SchemaSpec.generic_object())
        assert body.required is True
        assert body.content_type == "application/json"

    def test_response_without_body(self):
        response = ResponseSpec(description="No content", content_type=None)
        assert response.schema_ is None


class TestEndpointSpec:
    def test_has_parameter(self):
        spec = EndpointSpec(
            path="/orders/:id",
            method="GET",
            handler="GetOrder",
            microservice="ms_orders",
            parameters=[ParameterSpec(name="id", location="path", required=True)],
        )
        assert spec.has_parameter("id", "path")
        assert not spec.has_parameter("id", "query")

    def test_mutable_defaults_not_shared(self):
        a = EndpointSpec(path="/", method="GET", handler="A", microservice="ms_a")
        b = EndpointSpec(path="/", method="GET", handler="B", microservice="ms_a")
        a.responses["200"] = ResponseSpec(description="ok")
        assert b.responses == {}
