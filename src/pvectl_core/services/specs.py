"""Validated inputs for guest creation.

Each spec renders itself in the control plane's property-string format with
to_proxmox(). Requests map their specs onto indexed parameter names.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# New volumes are sized in whole gigabytes; the unit suffix is optional.
SIZE_PATTERN = r"^\d+[Gg]?$"


def _size_number(size: str) -> str:
    return size.rstrip("Gg")


def _flag(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _append_flags(parts: list[str], spec: BaseModel, names: tuple[str, ...]) -> None:
    for name in names:
        value = getattr(spec, name)
        if value is not None:
            parts.append(f"{name}={_flag(value)}")


class DiskSpec(BaseModel):
    """A VM disk: ``storage:size`` plus options."""

    model_config = ConfigDict(extra="forbid")

    storage: str = Field(min_length=1)
    size: str = Field(pattern=SIZE_PATTERN)
    bus: str = Field(default="scsi", pattern=r"^(scsi|virtio|sata|ide)$")
    format: Optional[str] = None
    cache: Optional[str] = None
    discard: Optional[str] = None
    ssd: Optional[bool] = None
    iothread: Optional[bool] = None
    backup: Optional[bool] = None

    def to_proxmox(self) -> str:
        parts = [f"{self.storage}:{_size_number(self.size)}", f"format={self.format or 'raw'}"]
        _append_flags(parts, self, ("cache", "discard", "ssd", "iothread", "backup"))
        return ",".join(parts)


class NetSpec(BaseModel):
    """A VM network interface."""

    model_config = ConfigDict(extra="forbid")

    bridge: str = Field(min_length=1)
    model: str = "virtio"
    tag: Optional[int] = Field(default=None, ge=1, le=4094)
    firewall: Optional[bool] = None
    mtu: Optional[int] = None
    queues: Optional[int] = None

    def to_proxmox(self) -> str:
        parts = [self.model, f"bridge={self.bridge}"]
        _append_flags(parts, self, ("tag", "firewall", "mtu", "queues"))
        return ",".join(parts)


class LxcNetSpec(BaseModel):
    """A container network interface."""

    model_config = ConfigDict(extra="forbid")

    bridge: str = Field(min_length=1)
    name: str = "eth0"
    ip: Optional[str] = None
    gw: Optional[str] = None
    ip6: Optional[str] = None
    gw6: Optional[str] = None
    tag: Optional[int] = Field(default=None, ge=1, le=4094)
    firewall: Optional[bool] = None
    mtu: Optional[int] = None
    rate: Optional[str] = None
    type: str = "veth"

    def to_proxmox(self) -> str:
        parts = [f"name={self.name}", f"bridge={self.bridge}"]
        _append_flags(parts, self, ("ip", "gw", "ip6", "gw6", "tag", "firewall", "mtu", "rate"))
        parts.append(f"type={self.type}")
        return ",".join(parts)


class MountSpec(BaseModel):
    """A container root filesystem or mount point."""

    model_config = ConfigDict(extra="forbid")

    storage: str = Field(min_length=1)
    size: str = Field(pattern=SIZE_PATTERN)
    mp: Optional[str] = None
    acl: Optional[bool] = None
    backup: Optional[bool] = None
    quota: Optional[bool] = None
    replicate: Optional[bool] = None
    ro: Optional[bool] = None
    shared: Optional[bool] = None

    def to_proxmox(self) -> str:
        parts = [f"{self.storage}:{_size_number(self.size)}"]
        _append_flags(parts, self, ("mp", "acl", "backup", "quota", "replicate", "ro", "shared"))
        return ",".join(parts)


def _put(params: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        params[key] = value


class VmCreateRequest(BaseModel):
    """Everything needed to create a VM."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    node: str = Field(min_length=1)
    vmid: Optional[int] = Field(default=None, ge=100)
    cores: Optional[int] = Field(default=None, ge=1)
    sockets: Optional[int] = Field(default=None, ge=1)
    cpu: Optional[str] = None
    numa: Optional[bool] = None
    memory: Optional[int] = Field(default=None, ge=16)
    balloon: Optional[int] = Field(default=None, ge=0)
    disks: list[DiskSpec] = Field(default_factory=list)
    nets: list[NetSpec] = Field(default_factory=list)
    scsihw: Optional[str] = None
    cdrom: Optional[str] = None
    bios: Optional[str] = None
    boot_order: Optional[str] = None
    machine: Optional[str] = None
    efidisk: Optional[str] = None
    agent: Optional[bool] = None
    ostype: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    pool: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name

    def to_params(self) -> dict[str, Any]:
        """Control-plane parameters; disks are numbered per bus, NICs as net<N>."""
        params: dict[str, Any] = {"name": self.name}
        _put(params, "cores", self.cores)
        _put(params, "sockets", self.sockets)
        _put(params, "cpu", self.cpu)
        if self.numa is not None:
            params["numa"] = 1 if self.numa else 0
        _put(params, "memory", self.memory)
        _put(params, "balloon", self.balloon)

        counters: dict[str, int] = {}
        for disk in self.disks:
            index = counters.get(disk.bus, 0)
            counters[disk.bus] = index + 1
            params[f"{disk.bus}{index}"] = disk.to_proxmox()
        for index, net in enumerate(self.nets):
            params[f"net{index}"] = net.to_proxmox()

        _put(params, "scsihw", self.scsihw)
        _put(params, "cdrom", self.cdrom)
        _put(params, "bios", self.bios)
        if self.boot_order:
            params["boot"] = f"order={self.boot_order}"
        _put(params, "machine", self.machine)
        _put(params, "efidisk0", self.efidisk)
        if self.agent is not None:
            params["agent"] = "1" if self.agent else "0"
        _put(params, "ostype", self.ostype)
        _put(params, "description", self.description)
        _put(params, "tags", self.tags)
        _put(params, "pool", self.pool)
        params.update(self.extra)
        return params


class ContainerCreateRequest(BaseModel):
    """Everything needed to create a container."""

    model_config = ConfigDict(extra="forbid")

    hostname: str = Field(min_length=1)
    node: str = Field(min_length=1)
    ostemplate: str = Field(min_length=1)
    vmid: Optional[int] = Field(default=None, ge=100)
    cores: Optional[int] = Field(default=None, ge=1)
    memory: Optional[int] = Field(default=None, ge=16)
    swap: Optional[int] = Field(default=None, ge=0)
    rootfs: Optional[MountSpec] = None
    mountpoints: list[MountSpec] = Field(default_factory=list)
    nets: list[LxcNetSpec] = Field(default_factory=list)
    privileged: Optional[bool] = None
    features: Optional[str] = None
    password: Optional[str] = None
    ssh_public_keys: Optional[str] = None
    onboot: Optional[bool] = None
    startup: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    pool: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.hostname

    def to_params(self) -> dict[str, Any]:
        """Control-plane parameters; mount points as mp<N>, NICs as net<N>."""
        params: dict[str, Any] = {"hostname": self.hostname, "ostemplate": self.ostemplate}
        _put(params, "cores", self.cores)
        _put(params, "memory", self.memory)
        _put(params, "swap", self.swap)
        if self.privileged is not None:
            params["unprivileged"] = 0 if self.privileged else 1
        if self.rootfs is not None:
            params["rootfs"] = self.rootfs.to_proxmox()
        for index, mount in enumerate(self.mountpoints):
            params[f"mp{index}"] = mount.to_proxmox()
        for index, net in enumerate(self.nets):
            params[f"net{index}"] = net.to_proxmox()
        _put(params, "features", self.features)
        _put(params, "password", self.password)
        _put(params, "ssh-public-keys", self.ssh_public_keys)
        if self.onboot is not None:
            params["onboot"] = 1 if self.onboot else 0
        _put(params, "startup", self.startup)
        _put(params, "description", self.description)
        _put(params, "tags", self.tags)
        _put(params, "pool", self.pool)
        return params
