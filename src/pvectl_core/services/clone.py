"""Clone a VM or container, then optionally reconfigure and start the copy."""
import logging
from typing import Any, Mapping, Optional

from ..config.settings import PipelineSettings
from ..operations.dispatcher import DispatchOptions, run_task_call
from ..operations.results import OperationResult, ResourceRef
from ..operations.tasks import TaskPoller
from ..repositories.base import GuestRepository, Resource, ResourceKind
from ..utils.audit_log import AuditTrail

logger = logging.getLogger(__name__)


def default_clone_name(source: Resource) -> str:
    """``<name>-clone``, or ``vm-<id>-clone`` / ``ct-<id>-clone`` for unnamed sources."""
    if source.name:
        return f"{source.name}-clone"
    return f"{source.kind.short}-{source.id}-clone"


class CloneService:
    """Clone guests of one kind.

    Sequence: clone task, then an update with the config overrides, then a
    start. A failed follow-up yields partial; the clone itself is kept.
    """

    def __init__(
        self,
        repository: GuestRepository,
        poller: TaskPoller,
        settings: Optional[PipelineSettings] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.repository = repository
        self.poller = poller
        self.settings = settings or PipelineSettings()
        self.audit = audit

    async def execute(
        self,
        source_id: int,
        new_id: Optional[int] = None,
        name: Optional[str] = None,
        target_node: Optional[str] = None,
        storage: Optional[str] = None,
        linked: bool = False,
        pool: Optional[str] = None,
        description: Optional[str] = None,
        config: Optional[Mapping[str, Any]] = None,
        start: bool = False,
        options: Optional[DispatchOptions] = None,
    ) -> OperationResult:
        options = options or DispatchOptions()
        options.validate()
        kind = self.repository.kind
        ref = ResourceRef(kind.value, source_id)

        try:
            source = await self.repository.get(source_id)
            if source is None:
                return OperationResult.failed("clone", ref, f"{kind.label} {source_id} not found")
            ref = source.ref()
            if linked and not source.template:
                return OperationResult.failed(
                    "clone",
                    ref,
                    f"Linked clone requires {kind.label} to be a template. "
                    f"{kind.label} {source_id} is not a template",
                )

            new_id = new_id or await self.repository.next_available_id(self.settings.min_id)
        except Exception as e:
            logger.error(f"Clone of {ref} failed: {e}")
            return OperationResult.failed("clone", ref, str(e))

        name = name or default_clone_name(source)
        dest_node = target_node or source.node
        clone_options = self._clone_options(kind, name, linked, target_node, storage, pool, description)

        ref = ResourceRef(kind.value, new_id, dest_node, name, details={"source_id": source.id})
        result = await run_task_call(
            lambda: self.repository.clone(source.id, source.node, new_id, clone_options),
            "clone",
            ref,
            self.poller,
            options.run_async(False),
            options.timeout or self.settings.timeouts.clone,
            new_id=new_id,
        )

        if result.is_pending:
            skipped = [step for step, wanted in (("update", bool(config)), ("start", start)) if wanted]
            if skipped:
                logger.warning(f"Clone of {source.id} runs asynchronously, skipping: {', '.join(skipped)}")
                result.details["followups_skipped"] = skipped
        elif result.is_successful:
            result = await self._follow_up(result, dest_node, new_id, config, start)

        if self.audit:
            self.audit.record(result, {**clone_options, "config": dict(config or {})})
        return result

    @staticmethod
    def _clone_options(kind, name, linked, target_node, storage, pool, description) -> dict[str, Any]:
        name_key = "name" if kind is ResourceKind.VM else "hostname"
        opts: dict[str, Any] = {name_key: name, "full": not linked}
        if target_node:
            opts["target"] = target_node
        if storage:
            opts["storage"] = storage
        if pool:
            opts["pool"] = pool
        if description:
            opts["description"] = description
        return opts

    async def _follow_up(
        self,
        cloned: OperationResult,
        node: str,
        new_id: int,
        config: Optional[Mapping[str, Any]],
        start: bool,
    ) -> OperationResult:
        if config:
            try:
                await self.repository.update(new_id, node, dict(config))
            except Exception as e:
                logger.error(f"Clone {new_id} created but config update failed: {e}")
                return OperationResult.partial(
                    "clone",
                    cloned.resource,
                    f"Cloned, but config update failed: {e}",
                    task=cloned.task,
                    task_upid=cloned.task_upid,
                    details={"started": False},
                )

        if start:
            started = await run_task_call(
                lambda: self.repository.start(new_id, node),
                "start",
                cloned.resource,
                self.poller,
                False,
                self.settings.timeouts.start,
            )
            if not started.is_successful:
                logger.error(f"Clone {new_id} created but start failed: {started.message}")
                return OperationResult.partial(
                    "clone",
                    cloned.resource,
                    f"Cloned, but start failed: {started.message}",
                    task=cloned.task,
                    task_upid=cloned.task_upid,
                    details={"started": False},
                )
            cloned.details["started"] = True

        return cloned
