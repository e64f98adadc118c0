from pathlib import Path

import pytest

from go_api_spec.errors import SourceParseError
from go_api_spec.parser.golang import (
    canonical_package,
    doc_comments,
    expression_to_string,
    parse_source,
    receiver_type_name,
    type_to_string,
    unquote,
    walk,
)


def _first(go_file, node_type):
    return next(n for n in walk(go_file.root) if n.type == node_type)


def _field_types(source: str) -> list[str]:
    go_file = parse_source(source)
    imports = go_file.imports()
    return [
        type_to_string(n.child_by_field_name("type"), imports)
        for n in walk(go_file.root)
        if n.type == "field_declaration"
    ]


class TestParseSource:
    def test_package_name(self):
        go_file = parse_source("package orders_http\n")
        assert go_file.package_name == "orders_http"

    def test_syntax_error_reports_position(self):
        with pytest.raises(SourceParseError) as exc:
            parse_source("package p\n\nfunc broken( {\n", path=Path("broken.go"))
        assert exc.value.line is not None
        assert exc.value.line >= 3
        assert "broken.go" in str(exc.value)

    def test_accepts_str_and_bytes(self):
        assert parse_source(b"package p\n").package_name == "p"
        assert parse_source("package p\n").package_name == "p"


class TestImports:
    def test_aliases_resolve_to_canonical_package(self):
        go_file = parse_source(
            'package p\n\nimport (\n'
            '\t"github.com/acme/shop/pkg/http"\n'
            '\tmodels "github.com/acme/shop/pkg/models/orders_models"\n'
            '\t"github.com/gofiber/fiber/v2"\n'
            '\t_ "github.com/lib/pq"\n'
            ')\n'
        )
        imports = go_file.imports()
        assert imports["http"] == "http"
        assert imports["models"] == "orders_models"
        assert imports["fiber"] == "fiber"
        assert "_" not in imports

    def test_canonical_package(self):
        assert canonical_package("github.com/acme/app/pkg/models/deals_models") == "deals_models"
        assert canonical_package("github.com/gofiber/fiber/v2") == "fiber"
        assert canonical_package("gopkg.in/yaml.v3") == "yaml"
        assert canonical_package("") == ""


class TestLiterals:
    def test_unquote_interpreted(self):
        assert unquote('"orders:write"') == "orders:write"
        assert unquote('"a\\"b"') == 'a"b'

    def test_unquote_raw(self):
        assert unquote('`json:"id"`') == 'json:"id"'


class TestTypeToString:
    def test_decorated_types(self):
        types = _field_types(
            'package p\n\nimport m "github.com/acme/pkg/models/orders_models"\n\n'
            "type T struct {\n"
            "\tA *m.Order\n"
            "\tB []string\n"
            "\tC map[string][]int\n"
            "\tD interface{}\n"
            "}\n"
        )
        assert types == ["*orders_models.Order", "[]string", "map[string][]int", "interface{}"]

    def test_generic_type(self):
        types = _field_types(
            "package p\n\ntype T struct {\n\tPage operators.PaginatedResult[[]orders_models.OrderSummary]\n}\n"
        )
        assert types == ["operators.PaginatedResult[[]orders_models.OrderSummary]"]


class TestDocComments:
    def test_leading_comment_block(self):
        go_file = parse_source(
            "package p\n\n"
            "var x = 1 // trailing\n"
            "// GetOrder returns one order.\n"
            "// It fails when the order does not exist.\n"
            "func GetOrder() {}\n"
        )
        func = _first(go_file, "function_declaration")
        assert doc_comments(func) == [
            "GetOrder returns one order.",
            "It fails when the order does not exist.",
        ]

    def test_blank_line_breaks_block(self):
        go_file = parse_source("package p\n\n// Detached.\n\nfunc F() {}\n")
        assert doc_comments(_first(go_file, "function_declaration")) == []

    def test_block_comment(self):
        go_file = parse_source("package p\n\n/* Summary line\n * more */\nfunc F() {}\n")
        assert doc_comments(_first(go_file, "function_declaration")) == ["Summary line", "more"]


class TestExpressions:
    def test_selector_chain(self):
        go_file = parse_source("package p\n\nfunc f() { x := c.gates.IsAuthenticated.AllFeaturesOf }\n")
        selector = _first(go_file, "selector_expression")
        assert expression_to_string(selector) == "c.gates.IsAuthenticated.AllFeaturesOf"

    def test_receiver_type(self):
        go_file = parse_source("package p\n\nfunc (s *ordersController) GetOrder() {}\n")
        assert receiver_type_name(_first(go_file, "method_declaration")) == "ordersController"
