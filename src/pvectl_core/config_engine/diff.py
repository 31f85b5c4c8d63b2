"""Diff engine for flat resource configuration maps.

Values are compared after normalizing to a canonical string form, so that
8192 and "8192" are equal and booleans match the control plane's 1/0.
"""
from typing import Any, Mapping, Optional

from .profiles import ResourceProfile
from .schema import ConfigDiff


def normalize_value(value: Any) -> str:
    """Canonical string form used for value equality."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _present(config: Mapping[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None; they count as absent."""
    return {str(k): v for k, v in config.items() if v is not None}


def compute_diff(original: Mapping[str, Any], edited: Mapping[str, Any]) -> ConfigDiff:
    """
    Calculate the diff between two flat config maps.

    Args:
        original: Config as observed before the edit
        edited: Config as the operator wants it

    Returns:
        ConfigDiff with changed, added and removed keys
    """
    before = _present(original)
    after = _present(edited)

    diff = ConfigDiff()
    for key in sorted(after):
        new = after[key]
        if key not in before:
            diff.added[key] = new
        elif normalize_value(before[key]) != normalize_value(new):
            diff.changed[key] = (before[key], new)

    diff.removed = sorted(k for k in before if k not in after)
    return diff


def readonly_violations(
    original: Mapping[str, Any],
    edited: Mapping[str, Any],
    profile: ResourceProfile,
    diff: Optional[ConfigDiff] = None,
) -> list[str]:
    """Return the sorted changed/added keys that are read-only for the profile."""
    if diff is None:
        diff = compute_diff(original, edited)
    return sorted(k for k in diff.touched_keys if profile.is_readonly(k))


def summarize_diff(diff: ConfigDiff) -> str:
    """Generate human-readable summary of a diff."""
    if diff.is_empty:
        return "No changes"

    lines = [f"{diff.total_changes} change(s):"]
    for key, (old, new) in diff.changed.items():
        lines.append(f"  ~ {key}: {old} -> {new}")
    for key, value in diff.added.items():
        lines.append(f"  + {key}: {value}")
    for key in diff.removed:
        lines.append(f"  - {key}")
    return "\n".join(lines)
