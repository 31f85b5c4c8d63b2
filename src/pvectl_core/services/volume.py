"""Edit and Set services for guest volumes.

A volume's editable properties live in its owning device's property string
(``local-lvm:vm-100-disk-0,size=32G,cache=none``). A ``size`` change goes
through the resize call; every other change is folded back into the property
string and sent as a regular config update.
"""
import asyncio
import logging
from typing import Any, Iterable, Mapping, Optional

from ..config.settings import PipelineSettings
from ..config_engine import (
    VOLUME_PROFILE,
    ConfigDiff,
    compute_diff,
    from_editable_document,
    parse_property_string,
    rebuild_property_string,
    summarize_diff,
    to_editable_document,
    validate_document,
)
from ..editor.session import EditorSession
from ..errors import ResourceNotFoundError
from ..operations.results import OperationResult, ResourceRef
from ..repositories.base import GuestRepository, ResourceKind
from ..utils.audit_log import AuditTrail
from ..utils.logging_config import timed_section
from .resize import (
    ParsedSize,
    ResizeVolumeService,
    VolumeRef,
    calculate_new_size,
    disk_size,
    locate_volume,
    parse_size,
)

logger = logging.getLogger(__name__)

SIZE_KEY = "size"


class _VolumeService:
    operation = ""

    def __init__(
        self,
        repositories: Mapping[ResourceKind, GuestRepository],
        dry_run: bool = False,
        audit: Optional[AuditTrail] = None,
    ):
        self.repositories = dict(repositories)
        self.resizer = ResizeVolumeService(self.repositories)
        self.dry_run = dry_run
        self.audit = audit

    async def _load(self, volume: VolumeRef) -> tuple[VolumeRef, dict[str, Any], str]:
        repo = self.repositories.get(volume.kind)
        if repo is None:
            raise ResourceNotFoundError(f"No repository configured for {volume.kind.label} resources")
        volume = await locate_volume(repo, volume)
        config = await repo.fetch_config(volume.node, volume.resource_id)
        disk_value = config.get(volume.disk)
        if not disk_value:
            raise ResourceNotFoundError(
                f"Volume '{volume.disk}' not found in config for resource {volume.resource_id}"
            )
        return volume, config, str(disk_value)

    async def _apply(
        self,
        volume: VolumeRef,
        config: Mapping[str, Any],
        disk_value: str,
        diff: ConfigDiff,
    ) -> Optional[OperationResult]:
        """Validate the size change up front, then run the update and the resize."""
        ref = volume.ref()

        updates = {k: new for k, (_old, new) in diff.changed.items() if k != SIZE_KEY}
        updates.update({k: v for k, v in diff.added.items() if k != SIZE_KEY})
        removed = [k for k in diff.removed if k != SIZE_KEY]
        if SIZE_KEY in diff.removed:
            logger.warning(f"Ignoring removal of '{SIZE_KEY}' on {ref.id}: disks cannot lose their size")

        new_size = diff.changed[SIZE_KEY][1] if SIZE_KEY in diff.changed else diff.added.get(SIZE_KEY)
        parsed: Optional[ParsedSize] = None
        details: dict[str, Any] = {}
        try:
            if new_size is not None:
                parsed = parse_size(str(new_size))
                current = disk_size(config, volume.disk, volume.resource_id)
                details = {"current_size": current, "new_size": calculate_new_size(current, parsed)}
        except Exception as e:
            return OperationResult.failed(self.operation, ref, str(e), diff=diff)

        if parsed is None and not updates and not removed:
            return None

        logger.info(f"{self.operation} {ref}: {summarize_diff(diff)}")
        if self.dry_run:
            details["dry_run"] = True
            result = OperationResult.successful(self.operation, ref, diff=diff, details=details)
            self._record(result, updates, removed, parsed)
            return result

        errors = []
        if updates or removed:
            params = {volume.disk: rebuild_property_string(disk_value, updates, removed)}
            if config.get("digest"):
                params["digest"] = config["digest"]
            try:
                async with timed_section("volume_update", resource=f"{volume.kind.value}/{volume.resource_id}",
                                         disk=volume.disk):
                    await self.repositories[volume.kind].update(volume.resource_id, volume.node, params)
            except Exception as e:
                logger.error(f"Config update of {ref.id} failed: {e}")
                errors.append(f"config update failed: {e}")

        if parsed is not None:
            try:
                await self.resizer.perform(volume, parsed)
            except Exception as e:
                logger.error(f"Resize of {ref.id} failed: {e}")
                errors.append(f"resize failed: {e}")

        if errors:
            result = OperationResult.failed(self.operation, ref, "; ".join(errors), diff=diff, details=details)
        else:
            result = OperationResult.successful(self.operation, ref, diff=diff, details=details)
        self._record(result, updates, removed, parsed)
        return result

    def _record(self, result, updates, removed, parsed) -> None:
        if not self.audit:
            return
        params = dict(updates)
        if removed:
            params["delete"] = ",".join(removed)
        if parsed is not None:
            params[SIZE_KEY] = parsed.raw
        self.audit.record(result, params, dry_run=self.dry_run)


class EditVolumeService(_VolumeService):
    """Interactive volume property edit."""

    operation = "edit"

    def __init__(
        self,
        repositories: Mapping[ResourceKind, GuestRepository],
        editor_session: Optional[EditorSession] = None,
        dry_run: bool = False,
        audit: Optional[AuditTrail] = None,
        settings: Optional[PipelineSettings] = None,
    ):
        super().__init__(repositories, dry_run=dry_run, audit=audit)
        settings = settings or PipelineSettings()
        self.editor_session = editor_session or EditorSession(
            validator=lambda text: validate_document(text, VOLUME_PROFILE),
            editor=settings.editor,
            max_attempts=settings.edit_attempts,
        )

    async def execute(self, volume: VolumeRef) -> Optional[OperationResult]:
        ref: ResourceRef = volume.ref()
        try:
            volume, config, disk_value = await self._load(volume)
            ref = volume.ref()
            _base, props = parse_property_string(disk_value)
            header = (
                f"Volume: {volume.disk} (resource {volume.resource_id} on {volume.node})\n"
                "Edit properties below. Save and close to apply. Empty file to cancel."
            )
            document = to_editable_document(props, VOLUME_PROFILE, header)
            loop = asyncio.get_running_loop()
            edited_text = await loop.run_in_executor(None, self.editor_session.edit, document)
            if edited_text is None:
                return None

            edited = from_editable_document(edited_text, VOLUME_PROFILE)
            diff = compute_diff(props, edited)
            if diff.is_empty:
                return None
        except Exception as e:
            logger.error(f"Edit of {ref.id} failed: {e}")
            return OperationResult.failed(self.operation, ref, str(e))

        return await self._apply(volume, config, disk_value, diff)


class SetVolumeService(_VolumeService):
    """Non-interactive volume property update."""

    operation = "set"

    async def execute(
        self,
        volume: VolumeRef,
        params: Mapping[str, Any],
        remove: Iterable[str] = (),
    ) -> Optional[OperationResult]:
        ref: ResourceRef = volume.ref()
        try:
            volume, config, disk_value = await self._load(volume)
            ref = volume.ref()
            _base, props = parse_property_string(disk_value)
            edited: dict[str, Any] = dict(props)
            edited.update({str(k): v for k, v in params.items()})
            for key in remove:
                edited.pop(key, None)

            diff = compute_diff(props, edited)
            if diff.is_empty:
                return None
        except Exception as e:
            logger.error(f"Set on {ref.id} failed: {e}")
            return OperationResult.failed(self.operation, ref, str(e))

        return await self._apply(volume, config, disk_value, diff)
