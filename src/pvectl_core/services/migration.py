"""Migrate guests to another node."""
import logging
from typing import Callable, Mapping, Optional

from ..config.settings import PipelineSettings
from ..operations.dispatcher import DispatchOptions, run_batch, run_task_call
from ..operations.results import OperationResult
from ..operations.tasks import TaskPoller
from ..repositories.base import GuestRepository, Resource, ResourceKind
from ..utils.audit_log import AuditTrail

logger = logging.getLogger(__name__)


def partition_by_target(resources: list[Resource], target: str) -> tuple[list[Resource], list[Resource]]:
    """Split resources into (needs migration, already on target), keeping order."""
    pending = [r for r in resources if r.node != target]
    in_place = [r for r in resources if r.node == target]
    return pending, in_place


class MigrationService:
    """Migrate a batch of guests. Runs async by default."""

    def __init__(
        self,
        repositories: Mapping[ResourceKind, GuestRepository],
        poller: TaskPoller,
        settings: Optional[PipelineSettings] = None,
        notify: Optional[Callable[[str], None]] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.repositories = dict(repositories)
        self.poller = poller
        self.settings = settings or PipelineSettings()
        self.notify = notify
        self.audit = audit

    @staticmethod
    def build_params(
        resource: Resource,
        target: str,
        online: bool = False,
        restart: bool = False,
        target_storage: Optional[str] = None,
    ) -> dict:
        params: dict = {"target": target}
        if online:
            params["online"] = 1
            if resource.kind is ResourceKind.VM:
                params["with-local-disks"] = 1
        if restart and resource.kind is ResourceKind.CONTAINER:
            params["restart"] = 1
        if target_storage:
            params["targetstorage"] = target_storage
        return params

    async def execute(
        self,
        resources: list[Resource],
        target: str,
        online: bool = False,
        restart: bool = False,
        target_storage: Optional[str] = None,
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        """
        Migrate every resource not already on target.

        Resources already on target are reported through logging and the
        notify callback, and are left out of the results.
        """
        options = options or DispatchOptions()
        options.validate()

        pending, in_place = partition_by_target(resources, target)
        for resource in in_place:
            message = f"Skipping {resource.kind.label} {resource.id} (already on {target})"
            logger.warning(message)
            if self.notify:
                self.notify(message)

        timeout = options.timeout or self.settings.timeouts.migrate
        run_async = options.run_async(True)

        async def run_one(resource: Resource) -> OperationResult:
            ref = resource.ref(target=target)
            repo = self.repositories.get(resource.kind)
            if repo is None:
                return OperationResult.failed(
                    "migrate", ref, f"No repository configured for {resource.kind.label} resources"
                )
            params = self.build_params(resource, target, online, restart, target_storage)
            result = await run_task_call(
                lambda: repo.migrate(resource.id, resource.node, params),
                "migrate",
                ref,
                self.poller,
                run_async,
                timeout,
                target=target,
            )
            if self.audit:
                self.audit.record(result, params)
            return result

        return await run_batch(pending, run_one, options.fail_fast)
