"""Volume resize: size token parsing, pre-flight validation and the resize call."""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..errors import InvalidSizeFormatError, ResourceNotFoundError, SizeTooSmallError
from ..operations.results import OperationResult, ResourceRef
from ..repositories.base import GuestRepository, ResourceKind
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)

SIZE_PATTERN = re.compile(r"^(\+)?(\d+(?:\.\d+)?)([TGMK])?$", re.IGNORECASE)
DISK_SIZE_PATTERN = re.compile(r"size=(\d+(?:\.\d+)?[TGMK]?)", re.IGNORECASE)

# Unit multipliers relative to MB
UNIT_MULTIPLIERS = {
    "T": 1024 * 1024,
    "G": 1024,
    "M": 1,
    "K": 1 / 1024,
}
DEFAULT_UNIT = "G"


@dataclass
class ParsedSize:
    """A validated size token."""
    relative: bool
    value: str  # without the leading "+", unit upper-cased
    raw: str    # as sent to the control plane


@dataclass
class VolumeRef:
    """A disk attached to a guest."""
    kind: ResourceKind
    resource_id: int
    disk: str
    node: Optional[str] = None

    def ref(self, **details: Any) -> ResourceRef:
        return ResourceRef(
            kind="volume",
            id=f"{self.resource_id}/{self.disk}",
            node=self.node,
            name=self.disk,
            details={"resource_kind": self.kind.value, "resource_id": self.resource_id, **details},
        )


@dataclass
class ResizePlan:
    """Outcome of resize pre-flight checks."""
    disk: str
    current_size: str
    new_size: str
    extra: dict[str, Any] = field(default_factory=dict)


def parse_size(token: Optional[str]) -> ParsedSize:
    """Parse ``[+]<number>[K|M|G|T]``.

    Raises:
        InvalidSizeFormatError: Empty, malformed, or non-positive size
    """
    if token is None or not str(token).strip():
        raise InvalidSizeFormatError("Size cannot be empty")

    text = str(token).strip()
    match = SIZE_PATTERN.match(text)
    if not match:
        raise InvalidSizeFormatError(f"Invalid size format: {text}")

    plus, number, unit = match.groups()
    unit = (unit or "").upper()
    if float(number) <= 0:
        raise InvalidSizeFormatError(f"Size must be positive: {text}")

    return ParsedSize(
        relative=plus is not None,
        value=f"{number}{unit}",
        raw=f"{plus or ''}{number}{unit}",
    )


def split_size(size: str) -> tuple[float, str]:
    """Split a size into number and unit; unitless sizes are gigabytes."""
    match = re.match(r"^(\d+(?:\.\d+)?)([TGMK])?$", str(size), re.IGNORECASE)
    if not match:
        return 0.0, DEFAULT_UNIT
    return float(match.group(1)), (match.group(2) or DEFAULT_UNIT).upper()


def size_in_mb(size: str) -> float:
    number, unit = split_size(size)
    return number * UNIT_MULTIPLIERS[unit]


def format_size(number: float, unit: str) -> str:
    text = str(int(number)) if float(number).is_integer() else f"{number:.1f}"
    return f"{text}{unit}"


def calculate_new_size(current: str, parsed: ParsedSize) -> str:
    """Resulting size after applying parsed to current.

    Relative sizes are converted into the current size's unit before summing.
    Absolute sizes replace the current size and must be strictly larger.

    Raises:
        SizeTooSmallError: Absolute size not larger than current
    """
    if parsed.relative:
        number, unit = split_size(current)
        added_mb = size_in_mb(parsed.value)
        return format_size(number + added_mb / UNIT_MULTIPLIERS[unit], unit)

    if size_in_mb(parsed.value) <= size_in_mb(current):
        raise SizeTooSmallError(parsed.value, current)
    return parsed.value


def disk_size(config: Mapping[str, Any], disk: str, resource_id: Any) -> str:
    """Current size of a disk from its property string."""
    value = config.get(disk)
    if not value:
        raise ResourceNotFoundError(f"Disk '{disk}' not found in config for resource {resource_id}")
    match = DISK_SIZE_PATTERN.search(str(value))
    if not match:
        raise ResourceNotFoundError(
            f"Cannot determine size for disk '{disk}' on resource {resource_id}"
        )
    return match.group(1)


async def locate_volume(repository: GuestRepository, volume: VolumeRef) -> VolumeRef:
    """Fill in the node of a volume reference from its owning resource."""
    if volume.node:
        return volume
    resource = await repository.get(volume.resource_id)
    if resource is None:
        raise ResourceNotFoundError(f"{volume.kind.label} {volume.resource_id} not found")
    return VolumeRef(volume.kind, volume.resource_id, volume.disk, resource.node)


class ResizeVolumeService:
    """Resize a guest disk after validating the requested size."""

    def __init__(self, repositories: Mapping[ResourceKind, GuestRepository]):
        self.repositories = dict(repositories)

    def _repository(self, kind: ResourceKind) -> GuestRepository:
        try:
            return self.repositories[kind]
        except KeyError:
            raise ResourceNotFoundError(f"No repository configured for {kind.label} resources") from None

    async def preflight(self, volume: VolumeRef, parsed: ParsedSize) -> ResizePlan:
        """Validate a resize without side effects."""
        repo = self._repository(volume.kind)
        volume = await locate_volume(repo, volume)
        config = await repo.fetch_config(volume.node, volume.resource_id)
        current = disk_size(config, volume.disk, volume.resource_id)
        return ResizePlan(volume.disk, current, calculate_new_size(current, parsed))

    async def perform(self, volume: VolumeRef, parsed: ParsedSize) -> Optional[str]:
        """Issue the resize call. Errors propagate."""
        repo = self._repository(volume.kind)
        volume = await locate_volume(repo, volume)
        async with timed_section("resize", resource=f"{volume.kind.value}/{volume.resource_id}",
                                 disk=volume.disk, size=parsed.raw):
            return await repo.resize(volume.resource_id, volume.node, volume.disk, parsed.raw)

    async def execute(self, volume: VolumeRef, size: str) -> OperationResult:
        """Validate and resize, returning a result instead of raising."""
        ref = volume.ref()
        try:
            repo = self._repository(volume.kind)
            volume = await locate_volume(repo, volume)
            ref = volume.ref()
            parsed = parse_size(size)
            plan = await self.preflight(volume, parsed)
            upid = await self.perform(volume, parsed)
        except Exception as e:
            logger.error(f"Resize of {ref.id} failed: {e}")
            return OperationResult.failed("resize", ref, str(e))

        logger.info(f"Resized {ref.id}: {plan.current_size} -> {plan.new_size}")
        return OperationResult.successful(
            "resize",
            ref,
            task_upid=upid,
            details={"current_size": plan.current_size, "new_size": plan.new_size},
        )
