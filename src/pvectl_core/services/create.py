"""Create a VM or container, optionally starting it afterwards."""
import logging
from typing import Optional, Union

from ..config.settings import PipelineSettings
from ..operations.dispatcher import DispatchOptions, run_task_call
from ..operations.results import OperationResult, ResourceRef
from ..operations.tasks import TaskPoller
from ..repositories.base import GuestRepository
from ..utils.audit_log import AuditTrail
from .specs import ContainerCreateRequest, VmCreateRequest

logger = logging.getLogger(__name__)

CreateRequest = Union[VmCreateRequest, ContainerCreateRequest]


class CreateService:
    """Create guests of one kind."""

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
        request: CreateRequest,
        options: Optional[DispatchOptions] = None,
        start: bool = False,
    ) -> OperationResult:
        """
        Create one guest.

        The id is taken from the request or looked up. Auto-start only happens
        after a successful, waited-for creation; a failed start yields partial.
        """
        options = options or DispatchOptions()
        options.validate()
        kind = self.repository.kind
        ref = ResourceRef(kind.value, request.vmid, request.node, request.display_name)

        try:
            vmid = request.vmid or await self.repository.next_available_id(self.settings.min_id)
            params = request.to_params()
        except Exception as e:
            logger.error(f"Create of {request.display_name} failed: {e}")
            return OperationResult.failed("create", ref, str(e))

        ref = ResourceRef(kind.value, vmid, request.node, request.display_name)
        run_async = options.run_async(False)
        result = await run_task_call(
            lambda: self.repository.create(request.node, vmid, params),
            "create",
            ref,
            self.poller,
            run_async,
            options.timeout or self.settings.timeouts.create,
        )

        if result.is_pending and start:
            logger.warning(f"Not starting {ref}: creation runs asynchronously")
            result.details["followups_skipped"] = ["start"]
        elif result.is_successful and start:
            result = await self._start(result, request.node, vmid)

        if self.audit:
            self.audit.record(result, params)
        return result

    async def _start(self, created: OperationResult, node: str, vmid: int) -> OperationResult:
        started = await run_task_call(
            lambda: self.repository.start(vmid, node),
            "start",
            created.resource,
            self.poller,
            False,
            self.settings.timeouts.start,
        )
        if started.is_successful:
            created.details["started"] = True
            return created

        logger.error(f"Created {created.resource} but start failed: {started.message}")
        return OperationResult.partial(
            "create",
            created.resource,
            f"Created, but start failed: {started.message}",
            task=created.task,
            task_upid=created.task_upid,
            details={"started": False},
        )
