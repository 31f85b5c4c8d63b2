"""Snapshot create, delete and rollback across resources."""
import logging
from typing import Awaitable, Callable, Optional

from ..config.settings import PipelineSettings
from ..operations.dispatcher import DispatchOptions, run_batch, run_task_call
from ..operations.results import OperationResult
from ..operations.tasks import TaskPoller
from ..repositories.base import Resource, ResourceResolver, SnapshotRepository
from ..utils.audit_log import AuditTrail
from .targets import Target, not_found, resolution_failed, resolve_targets

logger = logging.getLogger(__name__)


class SnapshotService:
    """Snapshot operations. Sync by default."""

    def __init__(
        self,
        repository: SnapshotRepository,
        resolver: ResourceResolver,
        poller: TaskPoller,
        settings: Optional[PipelineSettings] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.repository = repository
        self.resolver = resolver
        self.poller = poller
        self.settings = settings or PipelineSettings()
        self.audit = audit

    async def _run(
        self,
        operation: str,
        ids: Optional[list[int]],
        call: Callable[[Resource], Awaitable[str]],
        options: Optional[DispatchOptions],
        params: dict,
    ) -> list[OperationResult]:
        options = options or DispatchOptions()
        options.validate()
        try:
            targets = await resolve_targets(self.resolver, ids)
        except Exception as e:
            return resolution_failed(operation, ids, e)
        logger.info(f"Running {operation} on {len(targets)} resource(s)")
        timeout = options.timeout or self.settings.timeouts.snapshot
        run_async = options.run_async(False)

        async def run_one(target: Target) -> OperationResult:
            if not isinstance(target, Resource):
                return not_found(operation, target)
            result = await run_task_call(
                lambda: call(target),
                operation,
                target.ref(snapshot=params.get("name")),
                self.poller,
                run_async,
                timeout,
            )
            if self.audit:
                self.audit.record(result, params)
            return result

        return await run_batch(targets, run_one, options.fail_fast)

    async def create(
        self,
        ids: Optional[list[int]],
        name: str,
        description: Optional[str] = None,
        vmstate: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        return await self._run(
            "snapshot_create",
            ids,
            lambda r: self.repository.create(r, name, description=description, vmstate=vmstate),
            options,
            {"name": name, "description": description, "vmstate": vmstate},
        )

    async def delete(
        self,
        ids: Optional[list[int]],
        name: str,
        force: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        return await self._run(
            "snapshot_delete",
            ids,
            lambda r: self.repository.delete(r, name, force=force),
            options,
            {"name": name, "force": force},
        )

    async def rollback(
        self,
        vmid: int,
        name: str,
        start: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> OperationResult:
        results = await self._run(
            "snapshot_rollback",
            [vmid],
            lambda r: self.repository.rollback(r, name, start=start),
            options,
            {"name": name, "start": start},
        )
        return results[0]
