import logging

from go_api_spec.generator.validator import collect_refs, validate_document, validate_refs


def _document(schemas=None, paths=None):
    return {
        "openapi": "3.0.0",
        "paths": paths or {},
        "components": {"schemas": schemas or {}},
    }


class TestCollectRefs:
    def test_nested_dicts_and_lists(self):
        node = {
            "a": {"$ref": "#/components/schemas/A"},
            "list": [{"x": {"$ref": "#/components/schemas/B"}}],
        }
        assert collect_refs(node) == {
            "#/a/$ref": "#/components/schemas/A",
            "#/list/0/x/$ref": "#/components/schemas/B",
        }

    def test_pointer_escaping(self):
        node = {"paths": {"/orders/{id}": {"get": {"$ref": "#/components/schemas/Order"}}}}
        assert list(collect_refs(node)) == ["#/paths/~1orders~1{id}/get/$ref"]

    def test_non_string_ref_ignored(self):
        assert collect_refs({"$ref": {"nested": 1}}) == {}


class TestValidateRefs:
    def test_valid_document(self):
        document = _document(
            schemas={"Order": {"type": "object", "properties": {"item": {"$ref": "#/components/schemas/Item"}}}, "Item": {}},
            paths={"/orders": {"get": {"responses": {"200": {"$ref": "#/components/schemas/Order"}}}}},
        )
        assert validate_refs(document) == {}

    def test_missing_schema(self):
        document = _document(paths={"/orders": {"get": {"schema": {"$ref": "#/components/schemas/Order"}}}})
        assert validate_refs(document) == {
            "#/paths/~1orders/get/schema/$ref": "Missing schema: #/components/schemas/Order",
        }

    def test_unsupported_reference(self):
        document = _document(paths={"/x": {"$ref": "other.yaml#/Thing"}})
        errors = validate_refs(document)
        assert list(errors.values()) == ["Unsupported reference: other.yaml#/Thing"]

    def test_without_components(self):
        assert validate_refs({"paths": {}}) == {}


class TestValidateDocument:
    def test_logs_each_problem(self, caplog):
        document = _document(paths={"/a": {"$ref": "#/components/schemas/Gone"}})
        with caplog.at_level(logging.WARNING, logger="go_api_spec.generator.validator"):
            errors = validate_document(document)
        assert len(errors) == 1
        assert "Missing schema: #/components/schemas/Gone" in caplog.text
