"""CLI entry point for go-api-spec."""

import logging
from pathlib import Path

import click

from go_api_spec.config import GeneratorConfig, load_config
from go_api_spec.errors import AnalyzerError
from go_api_spec.generator.openapi import DEFAULT_DESCRIPTION
from go_api_spec.generator.pipeline import extract_endpoints, generate_openapi_spec
from go_api_spec.output import FORMATS, detect_output_format, render_document, render_endpoints

FORMAT_CHOICES = ["auto", *FORMATS]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s", force=True)
    logging.getLogger("go_api_spec").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load(root: Path, config_path: Path | None) -> GeneratorConfig:
    if not root.is_dir():
        raise click.ClickException(f"cannot read project directory {root}")
    try:
        return load_config(root, config_path)
    except AnalyzerError as e:
        raise click.ClickException(str(e)) from e


def _write(text: str, output: Path | None, what: str) -> None:
    """Write to ``output`` or stdout."""
    if output is None:
        click.echo(text, nl=False)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"failed to write {output}: {e}") from e
    click.echo(f"{what} written to {output}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log analysis progress to stderr.")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Project root (default: current directory).")
@click.pass_context
def main(ctx: click.Context, verbose: bool, root: Path | None):
    """go-api-spec: derive an OpenAPI document from Go HTTP controllers."""
    _setup_logging(verbose)
    if root is None:
        try:
            root = Path.cwd()
        except OSError as e:
            raise click.ClickException(f"cannot determine working directory: {e}") from e
    ctx.obj = {"root": root}


@main.command("extract-endpoints")
@click.option("--ms", "ms_filter", multiple=True, help="Only microservices whose name contains this (repeatable).")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Output file (default: stdout).")
@click.option("--format", "fmt", default="auto", type=click.Choice(FORMAT_CHOICES), help="Output format.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Config file.")
@click.pass_obj
def extract_endpoints_cmd(obj: dict, ms_filter: tuple[str, ...], output: Path | None, fmt: str, config_path: Path | None):
    """List every HTTP endpoint registered by the controllers."""
    root = obj["root"]
    config = _load(root, config_path)
    endpoints = extract_endpoints(root, config, list(ms_filter))

    if fmt == "auto":
        fmt = detect_output_format(output, "json")
    _write(render_endpoints(endpoints, fmt), output, f"{len(endpoints)} endpoints")


@main.command("openapi-spec")
@click.option("--ms", "ms_filter", multiple=True, help="Only microservices whose name contains this (repeatable).")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Output file (default: stdout).")
@click.option("--format", "fmt", default="auto", type=click.Choice(FORMAT_CHOICES), help="Output format.")
@click.option("--title", default=None, help="API title (default: from config).")
@click.option("--api-version", default="1.0.0", show_default=True, help="API version.")
@click.option("--description", default=DEFAULT_DESCRIPTION, show_default=True, help="API description.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Config file.")
@click.pass_obj
def openapi_spec_cmd(
    obj: dict,
    ms_filter: tuple[str, ...],
    output: Path | None,
    fmt: str,
    title: str | None,
    api_version: str,
    description: str,
    config_path: Path | None,
):
    """Generate an OpenAPI 3.0 document from the controllers."""
    root = obj["root"]
    config = _load(root, config_path)
    document = generate_openapi_spec(
        root,
        config,
        list(ms_filter),
        title=title,
        version=api_version,
        description=description,
    )

    if fmt == "auto":
        fmt = detect_output_format(output, "yaml")
    _write(render_document(document.to_dict(), fmt), output, "OpenAPI spec")
