"""Operation result model shared by every mutating service.

An OperationResult is one of four outcomes: successful, failed, pending
(async call issued, task handle only) or partial (primary call succeeded, a
required follow-up failed; the primary effect is not rolled back).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..config_engine.schema import ConfigDiff
from ..repositories.base import ResourceRef


class ResultStatus(str, Enum):
    """Outcome of one operation on one resource."""
    SUCCESSFUL = "successful"
    FAILED = "failed"
    PENDING = "pending"
    PARTIAL = "partial"


STATUS_TEXT = {
    ResultStatus.SUCCESSFUL: "Success",
    ResultStatus.FAILED: "Failed",
    ResultStatus.PENDING: "Pending",
    ResultStatus.PARTIAL: "Partial",
}


def node_from_upid(upid: str) -> Optional[str]:
    """Extract the node name from a UPID (``UPID:<node>:...``)."""
    parts = upid.split(":")
    if len(parts) > 1 and parts[0] == "UPID":
        return parts[1] or None
    return None


@dataclass
class Task:
    """A control-plane task snapshot."""
    upid: str
    status: str = "running"
    exitstatus: Optional[str] = None
    node: Optional[str] = None
    type: Optional[str] = None
    starttime: Optional[int] = None
    endtime: Optional[int] = None
    user: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        upid = data["upid"]
        return cls(
            upid=upid,
            status=data.get("status", "running"),
            exitstatus=data.get("exitstatus"),
            node=data.get("node") or node_from_upid(upid),
            type=data.get("type"),
            starttime=data.get("starttime"),
            endtime=data.get("endtime"),
            user=data.get("user"),
        )

    @property
    def pending(self) -> bool:
        return self.status == "running"

    @property
    def completed(self) -> bool:
        return not self.pending

    @property
    def successful(self) -> bool:
        return self.completed and self.exitstatus == "OK"

    @property
    def failed(self) -> bool:
        return self.completed and self.exitstatus != "OK"

    @property
    def duration(self) -> Optional[int]:
        if self.starttime is None or self.endtime is None:
            return None
        return self.endtime - self.starttime

    def to_dict(self) -> dict:
        return {
            "upid": self.upid,
            "node": self.node,
            "type": self.type,
            "status": self.status,
            "exitstatus": self.exitstatus,
            "starttime": self.starttime,
            "endtime": self.endtime,
            "user": self.user,
        }


@dataclass
class OperationResult:
    """Uniform outcome of one operation on one resource."""
    status: ResultStatus
    operation: str
    resource: ResourceRef
    task: Optional[Task] = None
    task_upid: Optional[str] = None
    diff: Optional[ConfigDiff] = None
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def successful(cls, operation: str, resource: ResourceRef, **kwargs) -> "OperationResult":
        return cls(ResultStatus.SUCCESSFUL, operation, resource, **kwargs)

    @classmethod
    def failed(cls, operation: str, resource: ResourceRef, error: str, **kwargs) -> "OperationResult":
        return cls(ResultStatus.FAILED, operation, resource, error=error, **kwargs)

    @classmethod
    def pending(cls, operation: str, resource: ResourceRef, task_upid: str, **kwargs) -> "OperationResult":
        return cls(ResultStatus.PENDING, operation, resource, task_upid=task_upid, **kwargs)

    @classmethod
    def partial(cls, operation: str, resource: ResourceRef, error: str, **kwargs) -> "OperationResult":
        return cls(ResultStatus.PARTIAL, operation, resource, error=error, **kwargs)

    @property
    def is_successful(self) -> bool:
        return self.status is ResultStatus.SUCCESSFUL

    @property
    def is_failed(self) -> bool:
        return self.status is ResultStatus.FAILED

    @property
    def is_pending(self) -> bool:
        return self.status is ResultStatus.PENDING

    @property
    def is_partial(self) -> bool:
        return self.status is ResultStatus.PARTIAL

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.status]

    @property
    def message(self) -> str:
        """Display message: error, task exit status, task handle, status text."""
        if self.error:
            return self.error
        if self.task is not None and self.task.exitstatus:
            return self.task.exitstatus
        if self.task_upid:
            return f"Task: {self.task_upid}"
        return self.status_text

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "operation": self.operation,
            "resource": {
                "kind": self.resource.kind,
                "id": self.resource.id,
                "node": self.resource.node,
                "name": self.resource.name,
                **self.resource.details,
            },
            "task": self.task.to_dict() if self.task else None,
            "task_upid": self.task_upid,
            "diff": self.diff.to_dict() if self.diff else None,
            "error": self.error,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass
class BatchSummary:
    """Aggregated counts over a batch of results."""
    results: list[OperationResult] = field(default_factory=list)

    def _count(self, status: ResultStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count(ResultStatus.SUCCESSFUL)

    @property
    def failed(self) -> int:
        return self._count(ResultStatus.FAILED)

    @property
    def pending(self) -> int:
        return self._count(ResultStatus.PENDING)

    @property
    def partial(self) -> int:
        return self._count(ResultStatus.PARTIAL)

    @property
    def all_succeeded(self) -> bool:
        return self.total > 0 and self.failed == 0 and self.partial == 0

    def format_summary(self) -> str:
        parts = [f"{self.succeeded} succeeded"]
        if self.pending:
            parts.append(f"{self.pending} pending")
        if self.partial:
            parts.append(f"{self.partial} partial")
        if self.failed:
            parts.append(f"{self.failed} failed")
        return f"{self.total} operation(s): " + ", ".join(parts)
