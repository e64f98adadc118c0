"""End-to-end analysis: project directory -> endpoints / OpenAPI document."""

import logging
from pathlib import Path

from go_api_spec.config import GeneratorConfig
from go_api_spec.errors import SourceParseError
from go_api_spec.generator.enhancer import EndpointEnhancer
from go_api_spec.generator.openapi import DEFAULT_DESCRIPTION, OpenApiDocument, format_microservice_title
from go_api_spec.generator.schema import TypeResolver
from go_api_spec.generator.validator import validate_document
from go_api_spec.parser.base import EndpointSpec, RawEndpoint
from go_api_spec.parser.business_layer import BusinessLayerRegistry
from go_api_spec.parser.routes import extract_endpoints_from_file
from go_api_spec.parser.symbols import SymbolCollector, SymbolTable

logger = logging.getLogger(__name__)


def discover_microservices(project_root: Path, config: GeneratorConfig, ms_filter: list[str] | None = None) -> list[Path]:
    """Service directories, sorted, optionally filtered by substring."""
    ms_dir = project_root / config.microservice_dir
    logger.debug("Scanning microservices directory: %s", ms_dir)
    if not ms_dir.is_dir():
        logger.warning("Microservices directory %s does not exist", ms_dir)
        return []

    services = sorted(p for p in ms_dir.glob(f"{config.microservice_prefix}*") if p.is_dir())
    if ms_filter:
        services = [p for p in services if any(f in p.name for f in ms_filter)]
    return services


def find_controller_files(service_dir: Path, markers: list[str]) -> list[Path]:
    """Non-test ``.go`` files whose basename contains a controller marker."""
    files = []
    for path in sorted(service_dir.rglob("*.go")):
        name = path.name.lower()
        if name.endswith("_test.go") or not path.is_file():
            continue
        if any(marker in name for marker in markers):
            files.append(path)
    return files


def _service_endpoints(service_dir: Path, config: GeneratorConfig) -> list[tuple[Path, list[RawEndpoint]]]:
    results = []
    for path in find_controller_files(service_dir, config.controller_file_markers):
        logger.debug("Analyzing file: %s", path)
        try:
            endpoints = extract_endpoints_from_file(path, service_dir.name)
        except SourceParseError as e:
            logger.warning("Failed to analyze %s: %s", path, e)
            continue
        results.append((path, endpoints))
    return results


def extract_endpoints(project_root: Path, config: GeneratorConfig, ms_filter: list[str] | None = None) -> list[RawEndpoint]:
    """Raw endpoint inventory, sorted by microservice then path."""
    endpoints = []
    for service_dir in discover_microservices(project_root, config, ms_filter):
        logger.debug("Processing microservice: %s", service_dir.name)
        for _, found in _service_endpoints(service_dir, config):
            endpoints.extend(found)

    logger.debug("Total endpoints found: %d", len(endpoints))
    # stable sort keeps declaration order for identical paths
    return sorted(endpoints, key=lambda e: (e.microservice, e.path))


def analyze_endpoints(
    project_root: Path,
    config: GeneratorConfig,
    ms_filter: list[str] | None = None,
) -> list[EndpointSpec]:
    """Enhanced endpoints of every selected service."""
    logger.debug("Scanning business layers for method signatures...")
    registry = BusinessLayerRegistry()
    registry.scan(project_root / config.domain_dir, config.business_layer_suffix)

    collector = SymbolCollector()
    tables: dict[Path, SymbolTable] = {}
    specs = []
    for service_dir in discover_microservices(project_root, config, ms_filter):
        logger.debug("Processing microservice: %s", service_dir.name)
        for path, raw_endpoints in _service_endpoints(service_dir, config):
            directory = path.parent
            if directory not in tables:
                tables[directory] = collector.collect(directory)
            enhancer = EndpointEnhancer(tables[directory], registry, config.permission_constants)
            for raw in raw_endpoints:
                spec = enhancer.enhance(raw)
                if not spec.controller_file:
                    spec.controller_file = str(path)
                specs.append(spec)
    return specs


def generate_openapi_spec(
    project_root: Path,
    config: GeneratorConfig,
    ms_filter: list[str] | None = None,
    title: str | None = None,
    version: str = "1.0.0",
    description: str = DEFAULT_DESCRIPTION,
) -> OpenApiDocument:
    """Analyze the project and assemble its OpenAPI document."""
    title = title or config.openapi_title
    if ms_filter and len(ms_filter) == 1 and title == config.openapi_title:
        title = format_microservice_title(ms_filter[0])

    resolver = TypeResolver(project_root / config.models_dir)
    document = OpenApiDocument(
        title=title,
        version=version,
        description=description,
        servers=config.openapi_servers,
        resolver=resolver,
    )

    for spec in analyze_endpoints(project_root, config, ms_filter):
        document.add_endpoint(spec)
    document.finalize_security_schemes(config.oauth_authorize, config.oauth_token)

    logger.debug("Total paths processed: %d", len(document.paths))
    logger.debug("Total schemas generated: %d", len(document.schemas))
    validate_document(document.to_dict())
    return document
