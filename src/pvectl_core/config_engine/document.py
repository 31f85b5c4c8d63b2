"""Editable YAML documents for resource configuration.

Renders a flat config map as a commented, section-grouped YAML document an
operator can edit, and parses the edited document back into a flat map.
Identity fields and the concurrency token are never rendered.
"""
from typing import Any, Mapping, Optional

import yaml

from ..errors import MalformedDocumentError
from .profiles import ResourceProfile

READONLY_MARKER = "# read-only"


def project_config(config: Mapping[str, Any], profile: ResourceProfile) -> dict[str, Any]:
    """Return the editable subset of a config, as rendered in a document."""
    return {
        str(k): v for k, v in config.items()
        if v is not None and profile.is_editable(str(k))
    }


def guest_header(
    profile: ResourceProfile,
    resource_id: Any,
    node: Optional[str] = None,
    status: Optional[str] = None,
) -> str:
    """Standard header for guest documents."""
    return "\n".join([
        f"Editing {profile.label} {resource_id} on node {node} (status: {status or 'unknown'})",
        'Fields marked "# read-only" cannot be changed.',
        "Save and close to apply changes. Empty file to cancel.",
    ])


def _dump_key(key: str, value: Any, section: Optional[str]) -> list[str]:
    """Render one key as YAML lines, nested under section when given."""
    data = {section: {key: value}} if section else {key: value}
    text = yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )
    lines = text.rstrip("\n").split("\n")
    # drop the "section:" line, the nested lines keep their indentation
    return lines[1:] if section else lines


def _mark_readonly(lines: list[str]) -> list[str]:
    if len(lines) == 1:
        return [f"{lines[0]}  {READONLY_MARKER}"]
    indent = lines[0][: len(lines[0]) - len(lines[0].lstrip())]
    return [f"{indent}{READONLY_MARKER}"] + lines


def to_editable_document(
    config: Mapping[str, Any],
    profile: ResourceProfile,
    header: Optional[str] = None,
) -> str:
    """
    Render a config map as an editable YAML document.

    Args:
        config: Flat config map as returned by the control plane
        profile: Capability descriptor of the resource kind
        header: Text rendered as leading comment lines

    Returns:
        YAML text. Parsing it with from_editable_document yields exactly
        project_config(config, profile).
    """
    editable = project_config(config, profile)
    out: list[str] = []

    if header:
        out.extend(f"# {line}" if line else "#" for line in header.splitlines())
        out.append("")

    if not profile.sectioned:
        for key, value in editable.items():
            lines = _dump_key(key, value, None)
            out.extend(_mark_readonly(lines) if profile.is_readonly(key) else lines)
        return "\n".join(out) + "\n"

    for name, spec in profile.sections.items():
        keys = [k for k in editable if spec.contains(k)]
        if not keys:
            continue
        out.append(f"{name}:")
        for key in keys:
            lines = _dump_key(key, editable[key], name)
            out.extend(_mark_readonly(lines) if profile.is_readonly(key) else lines)
        out.append("")

    return "\n".join(out).rstrip("\n") + "\n"


def _load(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedDocumentError(f"YAML syntax error: {e}") from e


def from_editable_document(text: str, profile: ResourceProfile) -> dict[str, Any]:
    """
    Parse an edited document back into a flat config map.

    Raises:
        MalformedDocumentError: On YAML syntax errors or a structure that is not
            a mapping (of mappings, for sectioned profiles)
    """
    data = _load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedDocumentError(
            f"Document must be a mapping, got {type(data).__name__}"
        )

    if not profile.sectioned:
        return {str(k): v for k, v in data.items()}

    flat: dict[str, Any] = {}
    for section, values in data.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise MalformedDocumentError(
                f"Section '{section}' must be a mapping, got {type(values).__name__}"
            )
        for key, value in values.items():
            flat[str(key)] = value
    return flat


def validate_document(text: str, profile: ResourceProfile) -> list[str]:
    """Check an edited document against the profile's known sections and keys.

    Returns a list of error messages, empty when the document is valid.
    """
    try:
        data = _load(text)
    except MalformedDocumentError as e:
        return [str(e)]

    if data is None:
        return []
    if not isinstance(data, dict):
        return [f"Document must be a mapping, got {type(data).__name__}"]
    if not profile.sectioned:
        return []

    errors = []
    for section, values in data.items():
        spec = profile.sections.get(str(section))
        if spec is None:
            errors.append(f"Unknown section '{section}'")
            continue
        if not isinstance(values, dict):
            continue
        for key in values:
            if not spec.contains(str(key)):
                errors.append(f"Unknown key '{key}' in section '{section}'")
    return errors
