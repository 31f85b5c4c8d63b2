"""Collaborator contracts implemented outside the pipeline."""
from .base import (
    ResourceKind,
    ResourceRef,
    Resource,
    Node,
    BackupVolume,
    GuestRepository,
    NodeRepository,
    SnapshotRepository,
    BackupRepository,
    ResourceResolver,
)

__all__ = [
    "ResourceKind",
    "ResourceRef",
    "Resource",
    "Node",
    "BackupVolume",
    "GuestRepository",
    "NodeRepository",
    "SnapshotRepository",
    "BackupRepository",
    "ResourceResolver",
]
