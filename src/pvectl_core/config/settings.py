"""Pipeline settings: operation timeouts, task polling and the editor.

Environment variables:
- PVECTL_TIMEOUT_<CLASS>: Override a timeout class (LIFECYCLE, CLONE, CREATE,
  START, MIGRATE, BACKUP, SNAPSHOT, DELETE), in seconds
- PVECTL_POLL_INTERVAL: Seconds between task status polls (default: 2)
- PVECTL_MIN_ID: Lowest identifier handed out by next-id lookups (default: 100)
- PVECTL_EDITOR: Editor command, takes precedence over $EDITOR/$VISUAL
- PVECTL_EDIT_ATTEMPTS: Rejected edit rounds before giving up (default: unlimited)
"""
import os
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MIN_ID = 100


def _optional_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class Timeouts:
    """Default wait deadlines per operation class, in seconds."""
    lifecycle: float = 60
    clone: float = 300
    create: float = 300
    start: float = 60
    migrate: float = 600
    backup: float = 300
    snapshot: float = 60
    delete: float = 60


@dataclass
class PipelineSettings:
    """Settings injected into services and the dispatcher."""
    timeouts: Timeouts = field(default_factory=Timeouts)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    min_id: int = DEFAULT_MIN_ID
    editor: Optional[str] = None
    edit_attempts: Optional[int] = None

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Load settings from environment variables."""
        timeouts = Timeouts()
        for f in fields(Timeouts):
            raw = os.environ.get(f"PVECTL_TIMEOUT_{f.name.upper()}")
            if raw:
                setattr(timeouts, f.name, float(raw))

        return cls(
            timeouts=timeouts,
            poll_interval=float(os.environ.get("PVECTL_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))),
            min_id=int(os.environ.get("PVECTL_MIN_ID", str(DEFAULT_MIN_ID))),
            editor=os.environ.get("PVECTL_EDITOR") or None,
            edit_attempts=_optional_int(os.environ.get("PVECTL_EDIT_ATTEMPTS")),
        )

    @classmethod
    def from_file(cls, path: Path) -> "PipelineSettings":
        """Load settings from a YAML file.

        Expected format:
            timeouts:
              clone: 600
            poll_interval: 1
            min_id: 1000
            editor: nano
            edit_attempts: 3
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Settings file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")

        timeouts = Timeouts()
        known = {f.name for f in fields(Timeouts)}
        for name, value in (data.get("timeouts") or {}).items():
            if name not in known:
                logger.warning(f"Ignoring unknown timeout class in {path}: {name}")
                continue
            setattr(timeouts, name, float(value))

        for key in data:
            if key not in ("timeouts", "poll_interval", "min_id", "editor", "edit_attempts"):
                logger.warning(f"Ignoring unknown settings key in {path}: {key}")

        return cls(
            timeouts=timeouts,
            poll_interval=float(data.get("poll_interval", DEFAULT_POLL_INTERVAL)),
            min_id=int(data.get("min_id", DEFAULT_MIN_ID)),
            editor=data.get("editor"),
            edit_attempts=_optional_int(data.get("edit_attempts")),
        )
