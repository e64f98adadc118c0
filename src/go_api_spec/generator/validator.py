"""Consistency checks for an assembled OpenAPI document."""

import logging

from go_api_spec.parser.base import SCHEMA_REF_PREFIX

logger = logging.getLogger(__name__)


def collect_refs(node, location: str = "#") -> dict[str, str]:
    """Every ``$ref`` below ``node``.

    Returns dict of {json_pointer_of_the_ref: ref_target}.
    """
    refs = {}
    if isinstance(node, dict):
        for key, value in node.items():
            child = f"{location}/{str(key).replace('~', '~0').replace('/', '~1')}"
            if key == "$ref" and isinstance(value, str):
                refs[child] = value
            else:
                refs.update(collect_refs(value, child))
    elif isinstance(node, list):
        for index, value in enumerate(node):
            refs.update(collect_refs(value, f"{location}/{index}"))
    return refs


def validate_refs(document: dict) -> dict[str, str]:
    """Check that every schema ``$ref`` has a ``components.schemas`` entry.

    Returns dict of {json_pointer_of_the_ref: error_message} for dangling refs.
    """
    schemas = document.get("components", {}).get("schemas", {})
    errors = {}
    for location, target in collect_refs(document).items():
        if not target.startswith(SCHEMA_REF_PREFIX):
            errors[location] = f"Unsupported reference: {target}"
        elif target.removeprefix(SCHEMA_REF_PREFIX) not in schemas:
            errors[location] = f"Missing schema: {target}"
    return errors


def validate_document(document: dict) -> dict[str, str]:
    """Run all document checks and log what they find.

    Returns dict of {location: error_message}.
    """
    errors = validate_refs(document)
    for location, message in errors.items():
        logger.warning("%s at %s", message, location)
    return errors
