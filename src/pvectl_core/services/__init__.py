"""Mutating services: edit/set pipelines and specialized orchestrators."""
from .edit import (
    ConfigBinding,
    GuestBinding,
    NodeBinding,
    EditConfigService,
    SetConfigService,
    edit_vm_service,
    edit_container_service,
    edit_node_service,
    set_vm_service,
    set_container_service,
    set_node_service,
)
from .resize import (
    ParsedSize,
    ResizePlan,
    ResizeVolumeService,
    VolumeRef,
    calculate_new_size,
    parse_size,
)
from .volume import EditVolumeService, SetVolumeService
from .specs import (
    DiskSpec,
    NetSpec,
    LxcNetSpec,
    MountSpec,
    VmCreateRequest,
    ContainerCreateRequest,
)
from .create import CreateService
from .clone import CloneService, default_clone_name
from .migration import MigrationService, partition_by_target
from .delete import DeleteService
from .snapshot import SnapshotService
from .backup import BackupService

__all__ = [
    "ConfigBinding",
    "GuestBinding",
    "NodeBinding",
    "EditConfigService",
    "SetConfigService",
    "edit_vm_service",
    "edit_container_service",
    "edit_node_service",
    "set_vm_service",
    "set_container_service",
    "set_node_service",
    "ParsedSize",
    "ResizePlan",
    "ResizeVolumeService",
    "VolumeRef",
    "calculate_new_size",
    "parse_size",
    "EditVolumeService",
    "SetVolumeService",
    "DiskSpec",
    "NetSpec",
    "LxcNetSpec",
    "MountSpec",
    "VmCreateRequest",
    "ContainerCreateRequest",
    "CreateService",
    "CloneService",
    "default_clone_name",
    "MigrationService",
    "partition_by_target",
    "DeleteService",
    "SnapshotService",
    "BackupService",
]
