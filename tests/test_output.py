import json
from pathlib import Path

import pytest
import yaml

from go_api_spec.output import detect_output_format, render_document, render_endpoints
from go_api_spec.parser.base import RawEndpoint

ENDPOINTS = [
    RawEndpoint(
        path="/orders/:id",
        method="GET",
        handler="GetOrder",
        microservice="ms_orders",
        middleware=["c.gates.IsAuthenticated"],
    ),
    RawEndpoint(path="/health", method="GET", handler="<inline>", microservice="ms_orders"),
]

DOCUMENT = {
    "openapi": "3.0.0",
    "info": {"title": "Orders API", "version": "1.0.0"},
    "paths": {
        "/orders/{id}": {
            "get": {
                "tags": ["Orders"],
                "operationId": "get_GetOrder",
                "responses": {"200": {"description": "ok"}, "400": {"description": "bad"}},
                "security": [{"permissions": ["orders:read"]}],
            }
        }
    },
}


class TestDetectOutputFormat:
    def test_by_suffix(self):
        assert detect_output_format(Path("out.json"), "yaml") == "json"
        assert detect_output_format(Path("out.YML"), "json") == "yaml"
        assert detect_output_format(Path("out.yaml"), "json") == "yaml"
        assert detect_output_format(Path("out.txt"), "json") == "table"

    def test_default(self):
        assert detect_output_format(None, "yaml") == "yaml"
        assert detect_output_format(Path("out.dat"), "json") == "json"


class TestRenderEndpoints:
    def test_json(self):
        text = render_endpoints(ENDPOINTS, "json")
        assert text.endswith("\n")
        data = json.loads(text)
        assert data[0] == {
            "path": "/orders/:id",
            "method": "GET",
            "handler": "GetOrder",
            "microservice": "ms_orders",
            "middleware": ["c.gates.IsAuthenticated"],
        }
        assert data[1]["middleware"] == []

    def test_yaml(self):
        data = yaml.safe_load(render_endpoints(ENDPOINTS, "yaml"))
        assert [e["handler"] for e in data] == ["GetOrder", "<inline>"]

    def test_table(self):
        text = render_endpoints(ENDPOINTS, "table")
        assert "Discovered API Endpoints" in text
        assert "/orders/:id" in text
        assert "c.gates.IsAuthenticated" in text

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unsupported output format"):
            render_endpoints(ENDPOINTS, "xml")


class TestRenderDocument:
    def test_yaml_keeps_key_order(self):
        text = render_document(DOCUMENT, "yaml")
        assert text.startswith("openapi: 3.0.0\ninfo:")
        assert yaml.safe_load(text) == DOCUMENT

    def test_json(self):
        assert json.loads(render_document(DOCUMENT, "json")) == DOCUMENT

    def test_table(self):
        text = render_document(DOCUMENT, "table")
        assert "Orders API" in text
        assert "get_GetOrder" in text
        assert "permissions(orders:read)" in text
        assert "200, 400" in text
