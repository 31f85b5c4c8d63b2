"""Per-resource-kind capability descriptors.

A ResourceProfile tells the generic edit pipeline which fields are editable,
how they are grouped into document sections, which fields are read-only, and
which identity fields never appear in the editable document.
"""
import re
from dataclasses import dataclass, field
from typing import Pattern


def _patterns(*exprs: str) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(rf"^{e}$") for e in exprs)


@dataclass(frozen=True)
class SectionSpec:
    """Keys belonging to one document section."""
    static: tuple[str, ...] = ()
    dynamic: tuple[Pattern[str], ...] = ()
    readonly: tuple[str, ...] = ()
    readonly_dynamic: tuple[Pattern[str], ...] = ()

    def contains(self, key: str) -> bool:
        if key in self.static:
            return True
        return any(p.match(key) for p in self.dynamic)

    def is_readonly(self, key: str) -> bool:
        if key in self.readonly:
            return True
        return any(p.match(key) for p in self.readonly_dynamic)


@dataclass(frozen=True)
class ResourceProfile:
    """Capability descriptor for one resource kind.

    Flat profiles (no sections) render every non-hidden key at the top level.
    """
    kind: str
    label: str
    sections: dict[str, SectionSpec] = field(default_factory=dict)
    hidden: tuple[str, ...] = ()
    readonly: tuple[str, ...] = ()
    readonly_dynamic: tuple[Pattern[str], ...] = ()
    token_field: str = "digest"

    @property
    def sectioned(self) -> bool:
        return bool(self.sections)

    def section_for(self, key: str) -> str | None:
        """Return the section a key belongs to, or None."""
        for name, spec in self.sections.items():
            if spec.contains(key):
                return name
        return None

    def is_editable(self, key: str) -> bool:
        if key in self.hidden:
            return False
        if not self.sectioned:
            return True
        return self.section_for(key) is not None

    def is_readonly(self, key: str) -> bool:
        if key in self.readonly or key == self.token_field:
            return True
        if any(p.match(key) for p in self.readonly_dynamic):
            return True
        section = self.section_for(key)
        return section is not None and self.sections[section].is_readonly(key)


VM_PROFILE = ResourceProfile(
    kind="vm",
    label="VM",
    sections={
        "general": SectionSpec(
            static=("vmid", "name", "description", "tags", "template", "lock", "digest"),
            readonly=("vmid", "template", "lock", "digest"),
        ),
        "cpu": SectionSpec(
            static=("cores", "sockets", "cpu", "cpulimit", "cpuunits", "numa", "affinity"),
            dynamic=_patterns(r"numa\d+"),
        ),
        "memory": SectionSpec(
            static=("memory", "balloon", "shares", "hugepages", "keephugepages"),
        ),
        "disks": SectionSpec(
            static=("efidisk0", "tpmstate0"),
            dynamic=_patterns(r"scsi\d+", r"ide\d+", r"virtio\d+", r"sata\d+", r"unused\d+"),
            readonly_dynamic=_patterns(r"unused\d+"),
        ),
        "network": SectionSpec(dynamic=_patterns(r"net\d+")),
        "boot": SectionSpec(
            static=("boot", "bootdisk", "bios", "machine", "arch", "startup", "onboot"),
        ),
        "cloud_init": SectionSpec(
            static=("citype", "cicustom", "ciuser", "cipassword", "ciupgrade",
                    "nameserver", "searchdomain", "sshkeys"),
            dynamic=_patterns(r"ipconfig\d+"),
        ),
        "display": SectionSpec(static=("vga", "spice_enhancements", "keyboard")),
        "devices": SectionSpec(
            static=("audio0", "tablet", "rng0", "ivshmem"),
            dynamic=_patterns(r"serial\d+", r"parallel\d+", r"usb\d+", r"hostpci\d+"),
        ),
        "system": SectionSpec(
            static=("ostype", "scsihw", "kvm", "agent", "hotplug", "args", "hookscript",
                    "smbios1", "localtime", "reboot", "freeze", "protection"),
        ),
        "migration": SectionSpec(static=("migrate_downtime", "migrate_speed")),
        "security": SectionSpec(static=("amd_sev", "intel_tdx")),
    },
    hidden=("vmid", "digest"),
    readonly=("vmid", "template", "lock", "meta"),
    readonly_dynamic=_patterns(r"unused\d+"),
)

CONTAINER_PROFILE = ResourceProfile(
    kind="container",
    label="Container",
    sections={
        "general": SectionSpec(
            static=("vmid", "hostname", "description", "tags", "template", "lock", "digest"),
            readonly=("vmid", "template", "lock", "digest"),
        ),
        "cpu": SectionSpec(static=("cores", "cpulimit", "cpuunits")),
        "memory": SectionSpec(static=("memory", "swap")),
        "disks": SectionSpec(
            static=("rootfs",),
            dynamic=_patterns(r"mp\d+", r"dev\d+", r"unused\d+"),
            readonly_dynamic=_patterns(r"unused\d+"),
        ),
        "network": SectionSpec(
            static=("nameserver", "searchdomain"),
            dynamic=_patterns(r"net\d+"),
        ),
        "boot": SectionSpec(static=("startup", "onboot")),
        "console": SectionSpec(static=("console", "cmode", "tty")),
        "system": SectionSpec(
            static=("ostype", "arch", "unprivileged", "features", "hookscript",
                    "protection", "debug", "timezone", "entrypoint", "env"),
            readonly=("arch",),
        ),
    },
    hidden=("vmid", "digest"),
    readonly=("vmid", "template", "lock", "meta", "arch"),
    readonly_dynamic=_patterns(r"unused\d+"),
)

NODE_PROFILE = ResourceProfile(
    kind="node",
    label="Node",
    hidden=("digest",),
)

VOLUME_PROFILE = ResourceProfile(
    kind="volume",
    label="Volume",
)
