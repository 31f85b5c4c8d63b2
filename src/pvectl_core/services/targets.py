"""Resolve bare ids into resources for batch operations."""
import logging
from typing import Any, Optional, Union

from ..operations.results import OperationResult, ResourceRef
from ..repositories.base import Resource, ResourceResolver

logger = logging.getLogger(__name__)

Target = Union[Resource, int]


async def resolve_targets(resolver: ResourceResolver, ids: Optional[list[int]]) -> list[Target]:
    """Resolve ids with one lookup, keeping input order; no ids means every resource.

    Unknown ids are kept as bare ints so callers can report them.
    """
    if not ids:
        return list(await resolver.resolve_all())

    found = {resource.id: resource for resource in await resolver.resolve_multiple(list(ids))}
    targets: list[Target] = []
    for vmid in ids:
        resource = found.get(vmid)
        if resource is None:
            logger.warning(f"Resource {vmid} not found")
            targets.append(vmid)
        else:
            targets.append(resource)
    return targets


def not_found(operation: str, vmid: Any) -> OperationResult:
    return OperationResult.failed(operation, ResourceRef(kind="unknown", id=vmid), f"Resource {vmid} not found")


def resolution_failed(operation: str, ids: Optional[list[int]], error: Exception) -> list[OperationResult]:
    """Results for a batch whose ids could not be resolved at all."""
    logger.error(f"Resolving resources for {operation} failed: {error}")
    if not ids:
        return [OperationResult.failed(operation, ResourceRef(kind="unknown", id="all"), str(error))]
    return [OperationResult.failed(operation, ResourceRef(kind="unknown", id=vmid), str(error)) for vmid in ids]
