"""Delete guests, stopping them first when forced."""
import logging
from typing import Mapping, Optional

from ..config.settings import PipelineSettings
from ..operations.dispatcher import DispatchOptions, run_batch, run_task_call
from ..operations.results import OperationResult
from ..operations.tasks import TaskPoller
from ..repositories.base import GuestRepository, Resource, ResourceKind
from ..utils.audit_log import AuditTrail

logger = logging.getLogger(__name__)


class DeleteService:
    """Delete a batch of guests. Running guests are refused unless forced."""

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

    async def execute(
        self,
        resources: list[Resource],
        force: bool = False,
        keep_disks: bool = False,
        purge: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        options = options or DispatchOptions()
        options.validate()
        timeout = options.timeout or self.settings.timeouts.delete
        run_async = options.run_async(False)

        async def run_one(resource: Resource) -> OperationResult:
            ref = resource.ref()
            repo = self.repositories.get(resource.kind)
            if repo is None:
                return OperationResult.failed(
                    "delete", ref, f"No repository configured for {resource.kind.label} resources"
                )

            try:
                current = await repo.get(resource.id)
            except Exception as e:
                return OperationResult.failed("delete", ref, str(e))
            if current is None:
                return OperationResult.failed("delete", ref, f"{resource.kind.label} {resource.id} not found")

            if current.running:
                if not force:
                    return OperationResult.failed(
                        "delete",
                        ref,
                        f"{resource.kind.label} {resource.id} is running. Stop it first or use force",
                    )
                logger.info(f"Stopping {ref} before delete")
                stopped = await run_task_call(
                    lambda: repo.stop(current.id, current.node), "stop", ref, self.poller, False, timeout
                )
                if not stopped.is_successful:
                    return OperationResult.failed(
                        "delete", ref, f"Failed to stop: {stopped.message}", task=stopped.task
                    )

            result = await run_task_call(
                lambda: repo.delete(current.id, current.node, destroy_disks=not keep_disks, purge=purge),
                "delete",
                ref,
                self.poller,
                run_async,
                timeout,
            )
            if self.audit:
                self.audit.record(result, {"force": force, "keep_disks": keep_disks, "purge": purge})
            return result

        return await run_batch(resources, run_one, options.fail_fast)
