"""Shared fixtures."""
import pytest

from pvectl_core.config import PipelineSettings, Timeouts
from pvectl_core.repositories.base import Resource, ResourceKind

from fakes import FakeGuestRepository, FakePoller


@pytest.fixture
def settings():
    """Settings with short timeouts for tests."""
    return PipelineSettings(timeouts=Timeouts(), poll_interval=0)


@pytest.fixture
def poller():
    return FakePoller()


@pytest.fixture
def vm100():
    return Resource(id=100, node="pve1", kind=ResourceKind.VM, name="web", status="running")


@pytest.fixture
def vm_config():
    return {
        "vmid": 100,
        "name": "web",
        "description": "Web frontend",
        "cores": 4,
        "memory": "8192",
        "scsi0": "local-lvm:vm-100-disk-0,size=32G,cache=none",
        "net0": "virtio=BC:24:11:00:00:01,bridge=vmbr0",
        "template": 0,
        "digest": "abc123",
    }


@pytest.fixture
def vm_repo(vm100, vm_config):
    return FakeGuestRepository(ResourceKind.VM, [vm100], {100: vm_config})
