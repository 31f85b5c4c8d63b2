"""Device property strings such as ``local-lvm:vm-100-disk-0,size=32G,cache=none``.

The leading element (storage and volume) is the base and is never editable.
"""
from typing import Any, Iterable, Mapping


def parse_property_string(value: str) -> tuple[str, dict[str, str]]:
    """Split a property string into its base and key=value properties."""
    parts = [p for p in str(value).split(",") if p]
    if not parts:
        return "", {}

    base, rest = parts[0], parts[1:]
    props: dict[str, str] = {}
    for part in rest:
        key, _, val = part.partition("=")
        props[key.strip()] = val
    return base, props


def format_property_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def rebuild_property_string(
    current: str,
    updates: Mapping[str, Any],
    removed: Iterable[str] = (),
) -> str:
    """Apply updates and removals to a property string, keeping key order."""
    base, props = parse_property_string(current)
    for key, val in updates.items():
        props[str(key)] = format_property_value(val)
    for key in removed:
        props.pop(str(key), None)
    return ",".join([base] + [f"{k}={v}" for k, v in props.items()])
