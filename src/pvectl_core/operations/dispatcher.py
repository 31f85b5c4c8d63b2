"""Batch lifecycle dispatcher.

Runs one operation across many resources, strictly sequentially and in input
order. Each operation has a default posture: sync operations wait for the
task to finish, async operations return as soon as a task handle exists.

Usage:
    dispatcher = LifecycleDispatcher({ResourceKind.VM: vm_repo}, poller)
    results = await dispatcher.execute("start", [vm100, vm101])
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, TypeVar

from ..config.settings import PipelineSettings
from ..errors import InvalidOptionsError, TaskTimeoutError, UnsupportedOperationError
from ..repositories.base import GuestRepository, Resource, ResourceKind
from ..utils.audit_log import AuditTrail
from ..utils.logging_config import timed_section
from .results import OperationResult, ResourceRef, Task, node_from_upid
from .tasks import TaskPoller

logger = logging.getLogger(__name__)

T = TypeVar("T")

# operation -> runs async by default
LIFECYCLE_OPERATIONS: dict[ResourceKind, dict[str, bool]] = {
    ResourceKind.VM: {
        "start": False,
        "stop": False,
        "reset": False,
        "resume": False,
        "shutdown": True,
        "restart": True,
        "suspend": True,
    },
    ResourceKind.CONTAINER: {
        "start": False,
        "stop": False,
        "shutdown": True,
        "restart": True,
    },
}


@dataclass
class DispatchOptions:
    """Execution policy for one batch."""
    force_async: bool = False
    force_sync: bool = False
    fail_fast: bool = False
    timeout: Optional[float] = None

    def validate(self) -> None:
        if self.force_async and self.force_sync:
            raise InvalidOptionsError("force_async and force_sync are mutually exclusive")

    def run_async(self, default_async: bool) -> bool:
        """Resolve sync/async for an operation given its default."""
        if self.force_async:
            return True
        if self.force_sync:
            return False
        return default_async


async def _task_snapshot(poller: TaskPoller, upid: str) -> Task:
    """Best-effort task state after a failed wait."""
    try:
        return await poller.find(upid)
    except Exception as e:
        logger.warning(f"Could not fetch status of task {upid}: {e}")
        return Task(upid=upid, status="running", node=node_from_upid(upid))


async def wait_for_task(
    upid: str,
    operation: str,
    resource: ResourceRef,
    poller: TaskPoller,
    timeout: float,
) -> OperationResult:
    """Wait for a task and convert its terminal state into a result.

    The returned result always carries a Task, even on timeout.
    """
    try:
        task = await poller.wait(upid, timeout)
    except TaskTimeoutError as e:
        task = await _task_snapshot(poller, upid)
        logger.error(f"{operation} {resource}: {e}")
        return OperationResult.failed(operation, resource, str(e), task=task, task_upid=upid)
    except Exception as e:
        task = await _task_snapshot(poller, upid)
        logger.error(f"{operation} {resource}: waiting for task failed: {e}")
        return OperationResult.failed(operation, resource, str(e), task=task, task_upid=upid)

    if task.successful:
        return OperationResult.successful(operation, resource, task=task, task_upid=upid)

    error = task.exitstatus or "Task failed"
    logger.error(f"{operation} {resource}: task {upid} failed: {error}")
    return OperationResult.failed(operation, resource, error, task=task, task_upid=upid)


async def run_task_call(
    call: Callable[[], Awaitable[str]],
    operation: str,
    resource: ResourceRef,
    poller: TaskPoller,
    run_async: bool,
    timeout: float,
    **timing: Any,
) -> OperationResult:
    """
    Issue one mutating call and turn its outcome into a result.

    Async mode returns pending with the task handle and never polls. Sync mode
    waits for the task. Exceptions from the call become failed results.
    """
    try:
        async with timed_section(operation, resource=f"{resource.kind}/{resource.id}", **timing):
            upid = await call()
    except Exception as e:
        logger.error(f"{operation} {resource} failed: {e}")
        return OperationResult.failed(operation, resource, str(e))

    if run_async:
        logger.info(f"{operation} {resource}: task {upid} started")
        return OperationResult.pending(operation, resource, task_upid=upid)

    return await wait_for_task(upid, operation, resource, poller, timeout)


async def run_batch(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[OperationResult]],
    fail_fast: bool = False,
) -> list[OperationResult]:
    """Run fn over items in order, collecting one result per item.

    With fail_fast the batch stops after the first failed or partial result,
    which is included.
    """
    results: list[OperationResult] = []
    for item in items:
        result = await fn(item)
        results.append(result)
        if fail_fast and (result.is_failed or result.is_partial):
            logger.warning(f"Stopping batch after failure on {result.resource}")
            break
    return results


class LifecycleDispatcher:
    """Run lifecycle operations (start, stop, shutdown...) across resources."""

    def __init__(
        self,
        repositories: Mapping[ResourceKind, GuestRepository],
        poller: TaskPoller,
        settings: Optional[PipelineSettings] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.repositories = dict(repositories)
        self.poller = poller
        self.settings = settings or PipelineSettings()
        self.audit = audit

    def _check(self, operation: str, resource: Resource) -> None:
        allowed = LIFECYCLE_OPERATIONS.get(resource.kind, {})
        if operation not in allowed:
            raise UnsupportedOperationError(
                f"Unknown operation: {operation}. Valid: {', '.join(allowed)}"
            )
        if resource.kind not in self.repositories:
            raise UnsupportedOperationError(
                f"No repository configured for {resource.kind.label} resources"
            )

    async def execute(
        self,
        operation: str,
        resources: list[Resource],
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        """
        Execute operation on every resource.

        Raises:
            UnsupportedOperationError: Operation not allowed for a resource's
                kind; raised before any resource is touched
            InvalidOptionsError: Conflicting sync/async overrides
        """
        options = options or DispatchOptions()
        options.validate()
        for resource in resources:
            self._check(operation, resource)

        timeout = options.timeout or self.settings.timeouts.lifecycle
        logger.info(f"Dispatching {operation} to {len(resources)} resource(s)")

        async def run_one(resource: Resource) -> OperationResult:
            repo = self.repositories[resource.kind]
            run_async = options.run_async(LIFECYCLE_OPERATIONS[resource.kind][operation])
            action = getattr(repo, operation)
            result = await run_task_call(
                lambda: action(resource.id, resource.node),
                operation,
                resource.ref(),
                self.poller,
                run_async,
                timeout,
            )
            if self.audit:
                self.audit.record(result, {"async": run_async})
            return result

        return await run_batch(resources, run_one, options.fail_fast)
