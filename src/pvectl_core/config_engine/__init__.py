"""Config Engine: editable documents, diffs and update parameters.

Workflow:
1. Render the live config with to_editable_document()
2. Parse the edited text with from_editable_document()
3. compute_diff() against the projected original
4. Reject read-only violations
5. build_update_params() with the original concurrency token
"""
from .schema import ConfigDiff, UpdateParams
from .profiles import (
    ResourceProfile,
    SectionSpec,
    VM_PROFILE,
    CONTAINER_PROFILE,
    NODE_PROFILE,
    VOLUME_PROFILE,
)
from .document import (
    to_editable_document,
    from_editable_document,
    validate_document,
    project_config,
    guest_header,
)
from .diff import compute_diff, readonly_violations, normalize_value, summarize_diff
from .params import build_update_params
from .properties import parse_property_string, rebuild_property_string

__all__ = [
    "ConfigDiff",
    "UpdateParams",
    "ResourceProfile",
    "SectionSpec",
    "VM_PROFILE",
    "CONTAINER_PROFILE",
    "NODE_PROFILE",
    "VOLUME_PROFILE",
    "to_editable_document",
    "from_editable_document",
    "validate_document",
    "project_config",
    "guest_header",
    "compute_diff",
    "readonly_violations",
    "normalize_value",
    "summarize_diff",
    "build_update_params",
    "parse_property_string",
    "rebuild_property_string",
]
