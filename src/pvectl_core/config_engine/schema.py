"""Data types produced by the config engine."""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ConfigDiff:
    """Structural difference between two flat config maps.

    The three collections are disjoint. An empty diff means there is nothing
    to apply.
    """
    changed: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    added: dict[str, Any] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.changed or self.added or self.removed)

    @property
    def total_changes(self) -> int:
        return len(self.changed) + len(self.added) + len(self.removed)

    @property
    def touched_keys(self) -> set[str]:
        """Keys that receive a new value (changed or added)."""
        return set(self.changed) | set(self.added)

    def to_dict(self) -> dict:
        return {
            "changed": {k: [old, new] for k, (old, new) in self.changed.items()},
            "added": dict(self.added),
            "removed": list(self.removed),
        }


class UpdateParams(dict):
    """Control-plane mutation payload built from a ConfigDiff.

    A plain dict, so repositories can pass it straight to the API client.
    """

    DELETE_KEY = "delete"

    @property
    def deleted_keys(self) -> list[str]:
        raw = self.get(self.DELETE_KEY)
        return raw.split(",") if raw else []
