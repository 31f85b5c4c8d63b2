"""Backup create, delete and restore."""
import logging
import re
from typing import Any, Optional

from ..config.settings import PipelineSettings
from ..errors import ResourceNotFoundError
from ..operations.dispatcher import DispatchOptions, run_batch, run_task_call
from ..operations.results import OperationResult, ResourceRef
from ..operations.tasks import TaskPoller
from ..repositories.base import BackupRepository, BackupVolume, Resource, ResourceKind, ResourceResolver
from ..utils.audit_log import AuditTrail
from .targets import Target, not_found, resolution_failed, resolve_targets

logger = logging.getLogger(__name__)

VZDUMP_PATTERN = re.compile(r"vzdump-(qemu|lxc)-(\d+)-")


def backup_kind(backup: BackupVolume) -> Optional[ResourceKind]:
    """Guest kind of a backup, from its metadata or archive name."""
    if backup.kind is not None:
        return backup.kind
    match = VZDUMP_PATTERN.search(backup.volid)
    return ResourceKind(match.group(1)) if match else None


class BackupService:
    """Backup operations. Sync by default."""

    def __init__(
        self,
        repository: BackupRepository,
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

    def _timeout(self, options: DispatchOptions) -> float:
        return options.timeout or self.settings.timeouts.backup

    async def _find(self, volid: str) -> BackupVolume:
        for backup in await self.repository.list():
            if backup.volid == volid:
                return backup
        raise ResourceNotFoundError(f"Backup {volid} not found")

    async def create(
        self,
        ids: Optional[list[int]],
        storage: str,
        mode: str = "snapshot",
        compress: str = "zstd",
        notes: Optional[str] = None,
        protected: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> list[OperationResult]:
        """Back up each resolved resource; no ids means every resource."""
        options = options or DispatchOptions()
        options.validate()
        try:
            targets = await resolve_targets(self.resolver, ids)
        except Exception as e:
            return resolution_failed("backup_create", ids, e)
        params: dict[str, Any] = {"mode": mode, "compress": compress}
        if notes:
            params["notes-template"] = notes
        if protected:
            params["protected"] = 1
        logger.info(f"Backing up {len(targets)} resource(s) to {storage}")
        run_async = options.run_async(False)

        async def run_one(target: Target) -> OperationResult:
            if not isinstance(target, Resource):
                return not_found("backup_create", target)
            result = await run_task_call(
                lambda: self.repository.create(target, storage, params),
                "backup_create",
                target.ref(storage=storage),
                self.poller,
                run_async,
                self._timeout(options),
            )
            if self.audit:
                self.audit.record(result, {"storage": storage, **params})
            return result

        return await run_batch(targets, run_one, options.fail_fast)

    async def delete(self, volid: str, options: Optional[DispatchOptions] = None) -> OperationResult:
        """Delete a backup archive; its node is looked up from the backup list."""
        options = options or DispatchOptions()
        options.validate()
        ref = ResourceRef(kind="backup", id=volid)
        try:
            backup = await self._find(volid)
        except Exception as e:
            return OperationResult.failed("backup_delete", ref, str(e))

        ref = ResourceRef(kind="backup", id=volid, node=backup.node, details={"storage": backup.storage})
        result = await run_task_call(
            lambda: self.repository.delete(backup),
            "backup_delete",
            ref,
            self.poller,
            options.run_async(False),
            self._timeout(options),
        )
        if self.audit:
            self.audit.record(result, {"volid": volid})
        return result

    async def restore(
        self,
        volid: str,
        vmid: int,
        storage: Optional[str] = None,
        force: bool = False,
        start: bool = False,
        unique: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> OperationResult:
        """Restore a backup archive into guest vmid."""
        options = options or DispatchOptions()
        options.validate()
        ref = ResourceRef(kind="backup", id=volid, details={"target_id": vmid})
        try:
            backup = await self._find(volid)
            kind = backup_kind(backup)
            if kind is None:
                raise ResourceNotFoundError(f"Cannot determine guest type of backup {volid}")
        except Exception as e:
            return OperationResult.failed("backup_restore", ref, str(e))

        params: dict[str, Any] = {}
        if storage:
            params["storage"] = storage
        if force:
            params["force"] = 1
        if start:
            params["start"] = 1
        if unique:
            params["unique"] = 1

        logger.info(f"Restoring {volid} as {kind.label} {vmid} on {backup.node}")
        ref = ResourceRef(kind=kind.value, id=vmid, node=backup.node, details={"volid": volid})
        result = await run_task_call(
            lambda: self.repository.restore(backup, vmid, kind, params),
            "backup_restore",
            ref,
            self.poller,
            options.run_async(False),
            self._timeout(options),
        )
        if self.audit:
            self.audit.record(result, {"volid": volid, **params})
        return result
