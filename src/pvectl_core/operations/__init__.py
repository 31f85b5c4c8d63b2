"""Operation results, task polling and batch dispatch."""
from .results import (
    ResultStatus,
    Task,
    ResourceRef,
    OperationResult,
    BatchSummary,
    node_from_upid,
)
from .tasks import TaskPoller, PollingTaskPoller
from .dispatcher import (
    LIFECYCLE_OPERATIONS,
    DispatchOptions,
    LifecycleDispatcher,
    run_batch,
    run_task_call,
    wait_for_task,
)

__all__ = [
    "ResultStatus",
    "Task",
    "ResourceRef",
    "OperationResult",
    "BatchSummary",
    "node_from_upid",
    "TaskPoller",
    "PollingTaskPoller",
    "LIFECYCLE_OPERATIONS",
    "DispatchOptions",
    "LifecycleDispatcher",
    "run_batch",
    "run_task_call",
    "wait_for_task",
]
