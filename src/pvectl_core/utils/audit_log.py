"""Audit logging for resource mutations.

Every applied (or dry-run) edit, set and lifecycle operation is written as
one JSON line to the ``pvectl.audit`` logger. File output is configured with
setup_audit_logging(); until then records only reach whatever handlers the
application attached.
"""
import json
import logging
import os
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

if TYPE_CHECKING:
    from ..operations.results import OperationResult

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("pvectl.audit")

DEFAULT_AUDIT_DIR = "~/.pvectl"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to a rotating file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.pvectl/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of one mutation attempt."""
    timestamp: str
    resource_kind: str
    resource_id: str
    operation: str
    user: str
    dry_run: bool
    status: str
    parameters: dict
    diff: Optional[dict] = None
    task_upid: Optional[str] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))

    def matches(
        self,
        resource: Any = None,
        kind: Optional[str] = None,
        operation: Optional[str] = None,
        include_dry_run: bool = True,
    ) -> bool:
        if resource is not None and self.resource_id != str(resource):
            return False
        if kind is not None and self.resource_kind != kind:
            return False
        if operation is not None and self.operation != operation:
            return False
        return include_dry_run or not self.dry_run


class AuditTrail:
    """Write ChangeRecords for operation results."""

    def __init__(self, user: Optional[str] = None):
        self.user = user or os.environ.get("USER", "unknown")

    def record(
        self,
        result: "OperationResult",
        parameters: Optional[dict[str, Any]] = None,
        dry_run: bool = False,
    ) -> ChangeRecord:
        """Log a result and return the record that was written."""
        upid = result.task.upid if result.task else result.task_upid
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            resource_kind=result.resource.kind,
            resource_id=str(result.resource.id),
            operation=result.operation,
            user=self.user,
            dry_run=dry_run,
            status=result.status.value,
            parameters=dict(parameters or {}),
            diff=result.diff.to_dict() if result.diff else None,
            task_upid=upid,
            error=result.error,
        )
        audit_logger.info(record.to_json())
        return record


def read_records(log_file: Path) -> Iterator[ChangeRecord]:
    """Yield records from an audit file, skipping lines that do not parse."""
    with open(log_file, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                yield ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                logger.debug(f"Skipping malformed audit line {lineno} in {log_file}")


def get_recent_changes(
    log_file: Optional[str] = None,
    resource: Any = None,
    kind: Optional[str] = None,
    operation: Optional[str] = None,
    include_dry_run: bool = True,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Most recent matching records first.

    Args:
        log_file: Audit file, defaults to ~/.pvectl/audit.log
        resource: Resource id (guest id, node name or volume)
        kind: Resource kind such as ``qemu`` or ``lxc``
        operation: Operation name such as ``edit`` or ``migrate``
        include_dry_run: Whether dry-run records are returned
        limit: Maximum number of records
    """
    path = Path(log_file) if log_file else Path(DEFAULT_AUDIT_DIR).expanduser() / "audit.log"
    if not path.exists():
        return []

    wanted = deque(maxlen=limit)
    for record in read_records(path):
        if record.matches(resource, kind, operation, include_dry_run):
            wanted.append(record)
    return list(reversed(wanted))
