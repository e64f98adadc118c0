"""Serialization of endpoint inventories and OpenAPI documents."""

import io
import json
from pathlib import Path

import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from go_api_spec.parser.base import RawEndpoint

FORMATS = ("json", "yaml", "table")

_SUFFIX_FORMATS = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".txt": "table",
    ".table": "table",
}

TABLE_WIDTH = 160


def detect_output_format(output: Path | None, default: str) -> str:
    """Pick the output format from the file suffix.

    Returns: 'json', 'yaml' or 'table'; ``default`` when the suffix says nothing.
    """
    if output is None:
        return default
    return _SUFFIX_FORMATS.get(output.suffix.lower(), default)


def _dump(data, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(data, indent=2) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported output format: {fmt}")


def _render_table(table: Table) -> str:
    console = Console(file=io.StringIO(), record=True, width=TABLE_WIDTH)
    console.print(table)
    return console.export_text()


def endpoints_table(endpoints: list[RawEndpoint]) -> Table:
    t = Table(title="Discovered API Endpoints", box=box.ROUNDED, header_style="bold magenta")
    t.add_column("Microservice", style="cyan")
    t.add_column("Method", width=8)
    t.add_column("Path")
    t.add_column("Handler")
    t.add_column("Middleware", style="dim")
    for ep in endpoints:
        t.add_row(*(Text(cell) for cell in (ep.microservice, ep.method, ep.path, ep.handler, ", ".join(ep.middleware))))
    return t


def operations_table(document: dict) -> Table:
    t = Table(title=document.get("info", {}).get("title", ""), box=box.ROUNDED, header_style="bold magenta")
    t.add_column("Method", width=8)
    t.add_column("Path")
    t.add_column("Operation ID")
    t.add_column("Tags", style="cyan")
    t.add_column("Security", style="green")
    t.add_column("Responses", style="dim")
    for path, item in document.get("paths", {}).items():
        for method, operation in item.items():
            security = []
            for requirement in operation.get("security", []):
                for name, scopes in requirement.items():
                    security.append(f"{name}({', '.join(scopes)})" if scopes else name)
            cells = (
                method.upper(),
                path,
                operation.get("operationId", ""),
                ", ".join(operation.get("tags", [])),
                ", ".join(security),
                ", ".join(operation.get("responses", {})),
            )
            t.add_row(*(Text(cell) for cell in cells))
    return t


def render_endpoints(endpoints: list[RawEndpoint], fmt: str) -> str:
    if fmt == "table":
        return _render_table(endpoints_table(endpoints))
    return _dump([ep.model_dump() for ep in endpoints], fmt)


def render_document(document: dict, fmt: str) -> str:
    if fmt == "table":
        return _render_table(operations_table(document))
    return _dump(document, fmt)
