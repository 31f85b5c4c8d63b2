"""Edit and Set services: fetch, diff, validate and apply configuration.

One generic pipeline serves every resource kind. A binding adapts a
repository to it and carries the kind's ResourceProfile.

Usage:
    service = edit_vm_service(vm_repo)
    result = await service.execute(100)
    if result is None:
        print("No changes")
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from ..config.settings import PipelineSettings
from ..config_engine import (
    CONTAINER_PROFILE,
    NODE_PROFILE,
    VM_PROFILE,
    ConfigDiff,
    ResourceProfile,
    build_update_params,
    compute_diff,
    from_editable_document,
    guest_header,
    project_config,
    readonly_violations,
    summarize_diff,
    to_editable_document,
    validate_document,
)
from ..editor.session import EditorSession
from ..errors import ReadOnlyViolationError
from ..operations.results import OperationResult, ResourceRef
from ..repositories.base import GuestRepository, NodeRepository
from ..utils.audit_log import AuditTrail
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)


class ConfigBinding(ABC):
    """Adapts one repository to the generic edit pipeline."""

    profile: ResourceProfile

    @abstractmethod
    async def locate(self, identity: Any) -> Optional[Any]:
        """Return the target resource or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_config(self, target: Any) -> dict[str, Any]:
        pass

    @abstractmethod
    async def update(self, target: Any, params: dict[str, Any]) -> None:
        pass

    @abstractmethod
    def ref(self, target: Any) -> ResourceRef:
        pass

    @abstractmethod
    def header(self, target: Any) -> str:
        pass

    def unresolved(self, identity: Any) -> ResourceRef:
        return ResourceRef(kind=self.profile.kind, id=identity)

    def not_found_message(self, identity: Any) -> str:
        return f"{self.profile.label} {identity} not found"


class GuestBinding(ConfigBinding):
    """Binding for VMs and containers."""

    def __init__(self, repository: GuestRepository, profile: ResourceProfile):
        self.repository = repository
        self.profile = profile

    async def locate(self, identity):
        return await self.repository.get(int(identity))

    async def fetch_config(self, target):
        return await self.repository.fetch_config(target.node, target.id)

    async def update(self, target, params):
        await self.repository.update(target.id, target.node, params)

    def ref(self, target):
        return target.ref()

    def header(self, target):
        return guest_header(self.profile, target.id, target.node, target.status)

    def unresolved(self, identity):
        return ResourceRef(kind=self.repository.kind.value, id=identity)


class NodeBinding(ConfigBinding):
    """Binding for cluster nodes. Node documents are flat."""

    profile = NODE_PROFILE

    def __init__(self, repository: NodeRepository):
        self.repository = repository

    async def locate(self, identity):
        return await self.repository.get(str(identity))

    async def fetch_config(self, target):
        return await self.repository.fetch_config(target.name)

    async def update(self, target, params):
        await self.repository.update(target.name, params)

    def ref(self, target):
        return target.ref()

    def header(self, target):
        return (
            f"Node: {target.name}\n"
            "Edit configuration below. Save and close to apply. Empty file to cancel."
        )


class _ConfigService:
    operation = ""

    def __init__(
        self,
        binding: ConfigBinding,
        dry_run: bool = False,
        audit: Optional[AuditTrail] = None,
    ):
        self.binding = binding
        self.profile = binding.profile
        self.dry_run = dry_run
        self.audit = audit

    async def _apply(
        self,
        target: Any,
        ref: ResourceRef,
        config: Mapping[str, Any],
        diff: ConfigDiff,
    ) -> OperationResult:
        """Build update params and send them, unless in dry-run mode."""
        params = build_update_params(diff, config, self.profile.token_field)
        logger.info(f"{self.operation} {ref}: {summarize_diff(diff)}")

        if self.dry_run:
            result = OperationResult.successful(self.operation, ref, diff=diff, details={"dry_run": True})
        else:
            try:
                async with timed_section(self.operation, resource=f"{ref.kind}/{ref.id}",
                                         changes=diff.total_changes):
                    await self.binding.update(target, params)
            except Exception as e:
                logger.error(f"{self.operation} {ref} failed: {e}")
                result = OperationResult.failed(self.operation, ref, str(e), diff=diff)
            else:
                result = OperationResult.successful(self.operation, ref, diff=diff)

        if self.audit:
            self.audit.record(result, dict(params), dry_run=self.dry_run)
        return result


class EditConfigService(_ConfigService):
    """Interactive edit through an editor round trip."""

    operation = "edit"

    def __init__(
        self,
        binding: ConfigBinding,
        editor_session: Optional[EditorSession] = None,
        dry_run: bool = False,
        audit: Optional[AuditTrail] = None,
        settings: Optional[PipelineSettings] = None,
    ):
        super().__init__(binding, dry_run=dry_run, audit=audit)
        settings = settings or PipelineSettings()
        self.editor_session = editor_session or EditorSession(
            validator=lambda text: validate_document(text, self.profile),
            editor=settings.editor,
            max_attempts=settings.edit_attempts,
        )

    async def execute(self, identity: Any) -> Optional[OperationResult]:
        """
        Edit one resource.

        Returns:
            None if the operator cancelled or nothing changed, otherwise a
            successful or failed result
        """
        ref = self.binding.unresolved(identity)
        try:
            target = await self.binding.locate(identity)
            if target is None:
                return OperationResult.failed(self.operation, ref, self.binding.not_found_message(identity))
            ref = self.binding.ref(target)

            config = await self.binding.fetch_config(target)
            original = project_config(config, self.profile)
            document = to_editable_document(config, self.profile, self.binding.header(target))

            loop = asyncio.get_running_loop()
            edited_text = await loop.run_in_executor(None, self.editor_session.edit, document)
            if edited_text is None:
                return None

            edited = from_editable_document(edited_text, self.profile)
            diff = compute_diff(original, edited)
            if diff.is_empty:
                logger.info(f"No changes for {ref}")
                return None

            violations = readonly_violations(original, edited, self.profile, diff=diff)
            if violations:
                return OperationResult.failed(
                    self.operation,
                    ref,
                    str(ReadOnlyViolationError(violations)),
                    diff=diff,
                    details={"readonly_fields": violations},
                )
        except Exception as e:
            logger.error(f"Edit of {ref} failed: {e}")
            return OperationResult.failed(self.operation, ref, str(e))

        return await self._apply(target, ref, config, diff)


class SetConfigService(_ConfigService):
    """Non-interactive update from key/value parameters."""

    operation = "set"

    async def execute(
        self,
        identity: Any,
        params: Mapping[str, Any],
        remove: Iterable[str] = (),
    ) -> Optional[OperationResult]:
        """
        Set (and optionally remove) config keys on one resource.

        Returns:
            None if the values already match, otherwise a result
        """
        ref = self.binding.unresolved(identity)
        try:
            target = await self.binding.locate(identity)
            if target is None:
                return OperationResult.failed(self.operation, ref, self.binding.not_found_message(identity))
            ref = self.binding.ref(target)

            config = await self.binding.fetch_config(target)
            token = self.profile.token_field
            original = {k: v for k, v in config.items() if k != token}
            edited = dict(original)
            edited.update({str(k): v for k, v in params.items()})
            for key in remove:
                edited.pop(key, None)

            diff = compute_diff(original, edited)
            if diff.is_empty:
                logger.info(f"No changes for {ref}")
                return None
        except Exception as e:
            logger.error(f"Set on {ref} failed: {e}")
            return OperationResult.failed(self.operation, ref, str(e))

        return await self._apply(target, ref, config, diff)


def edit_vm_service(repository: GuestRepository, **kwargs) -> EditConfigService:
    return EditConfigService(GuestBinding(repository, VM_PROFILE), **kwargs)


def edit_container_service(repository: GuestRepository, **kwargs) -> EditConfigService:
    return EditConfigService(GuestBinding(repository, CONTAINER_PROFILE), **kwargs)


def edit_node_service(repository: NodeRepository, **kwargs) -> EditConfigService:
    return EditConfigService(NodeBinding(repository), **kwargs)


def set_vm_service(repository: GuestRepository, **kwargs) -> SetConfigService:
    return SetConfigService(GuestBinding(repository, VM_PROFILE), **kwargs)


def set_container_service(repository: GuestRepository, **kwargs) -> SetConfigService:
    return SetConfigService(GuestBinding(repository, CONTAINER_PROFILE), **kwargs)


def set_node_service(repository: NodeRepository, **kwargs) -> SetConfigService:
    return SetConfigService(NodeBinding(repository), **kwargs)
