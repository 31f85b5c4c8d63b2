"""Abstract collaborator contracts for the control plane.

The pipeline never performs I/O itself. Concrete repositories (an API client
wrapper, or in-memory fakes in tests) implement these interfaces. Every
mutating call returns an opaque task handle (UPID) or raises.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import UnsupportedOperationError


@dataclass
class ResourceRef:
    """Identity of the resource an operation targeted."""
    kind: str
    id: Any
    node: Optional[str] = None
    name: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        label = f"{self.kind} {self.id}"
        return f"{label} ({self.name})" if self.name else label


class ResourceKind(str, Enum):
    """Guest resource kinds, matching the control plane's type names."""
    VM = "qemu"
    CONTAINER = "lxc"

    @property
    def label(self) -> str:
        return "VM" if self is ResourceKind.VM else "Container"

    @property
    def short(self) -> str:
        """Prefix used for generated names."""
        return "vm" if self is ResourceKind.VM else "ct"


@dataclass
class Resource:
    """A guest (VM or container) as seen by the control plane."""
    id: int
    node: str
    kind: ResourceKind = ResourceKind.VM
    name: Optional[str] = None
    status: Optional[str] = None
    template: bool = False

    @property
    def running(self) -> bool:
        return self.status == "running"

    def ref(self, **details: Any) -> ResourceRef:
        return ResourceRef(
            kind=self.kind.value, id=self.id, node=self.node, name=self.name, details=details
        )


@dataclass
class Node:
    """A cluster node."""
    name: str
    status: Optional[str] = None

    def ref(self) -> ResourceRef:
        return ResourceRef(kind="node", id=self.name, node=self.name, name=self.name)


@dataclass
class BackupVolume:
    """A backup archive stored on a storage."""
    volid: str
    node: str
    storage: str
    vmid: Optional[int] = None
    kind: Optional[ResourceKind] = None


class GuestRepository(ABC):
    """Repository for one guest kind (VMs or containers)."""

    kind: ResourceKind = ResourceKind.VM

    @abstractmethod
    async def get(self, vmid: int) -> Optional[Resource]:
        """Return the resource or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_config(self, node: str, vmid: int) -> dict[str, Any]:
        """Fetch the live flat configuration, including the digest."""
        pass

    @abstractmethod
    async def update(self, vmid: int, node: str, params: dict[str, Any]) -> Optional[str]:
        """Apply configuration parameters."""
        pass

    @abstractmethod
    async def resize(self, vmid: int, node: str, disk: str, size: str) -> Optional[str]:
        """Resize a disk. size is absolute (``64G``) or relative (``+10G``)."""
        pass

    @abstractmethod
    async def next_available_id(self, min_id: int = 100) -> int:
        """Lowest unused guest identifier at or above min_id."""
        pass

    @abstractmethod
    async def clone(self, vmid: int, node: str, new_id: int, options: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def create(self, node: str, vmid: int, params: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def migrate(self, vmid: int, node: str, params: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def start(self, vmid: int, node: str) -> str:
        pass

    @abstractmethod
    async def stop(self, vmid: int, node: str) -> str:
        pass

    @abstractmethod
    async def shutdown(self, vmid: int, node: str) -> str:
        pass

    @abstractmethod
    async def restart(self, vmid: int, node: str) -> str:
        pass

    async def reset(self, vmid: int, node: str) -> str:
        raise UnsupportedOperationError(f"reset is not supported for {self.kind.label}")

    async def suspend(self, vmid: int, node: str) -> str:
        raise UnsupportedOperationError(f"suspend is not supported for {self.kind.label}")

    async def resume(self, vmid: int, node: str) -> str:
        raise UnsupportedOperationError(f"resume is not supported for {self.kind.label}")

    @abstractmethod
    async def delete(self, vmid: int, node: str, destroy_disks: bool = True, purge: bool = False) -> str:
        pass


class NodeRepository(ABC):
    """Repository for cluster nodes."""

    @abstractmethod
    async def get(self, name: str) -> Optional[Node]:
        pass

    @abstractmethod
    async def fetch_config(self, name: str) -> dict[str, Any]:
        pass

    @abstractmethod
    async def update(self, name: str, params: dict[str, Any]) -> Optional[str]:
        pass


class SnapshotRepository(ABC):
    """Repository for guest snapshots."""

    @abstractmethod
    async def create(
        self,
        resource: Resource,
        name: str,
        description: Optional[str] = None,
        vmstate: bool = False,
    ) -> str:
        pass

    @abstractmethod
    async def delete(self, resource: Resource, name: str, force: bool = False) -> str:
        pass

    @abstractmethod
    async def rollback(self, resource: Resource, name: str, start: bool = False) -> str:
        pass


class BackupRepository(ABC):
    """Repository for backup archives."""

    @abstractmethod
    async def list(self) -> list[BackupVolume]:
        pass

    @abstractmethod
    async def create(self, resource: Resource, storage: str, params: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def delete(self, backup: BackupVolume) -> str:
        pass

    @abstractmethod
    async def restore(
        self,
        backup: BackupVolume,
        vmid: int,
        kind: ResourceKind,
        params: dict[str, Any],
    ) -> str:
        pass


class ResourceResolver(ABC):
    """Map bare identifiers to resource descriptors."""

    @abstractmethod
    async def resolve(self, vmid: int) -> Optional[Resource]:
        pass

    @abstractmethod
    async def resolve_multiple(self, ids: list[int]) -> list[Resource]:
        """Resources for the ids that exist, in one lookup; unknown ids are omitted."""
        pass

    @abstractmethod
    async def resolve_all(self) -> list[Resource]:
        pass
