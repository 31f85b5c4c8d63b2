"""Tests for resize parsing and the volume edit/set services."""
import pytest

from pvectl_core.config_engine import rebuild_property_string
from pvectl_core.editor import EditorSession
from pvectl_core.errors import InvalidSizeFormatError, RepositoryError, SizeTooSmallError
from pvectl_core.repositories.base import ResourceKind
from pvectl_core.services import (
    EditVolumeService,
    ResizeVolumeService,
    SetVolumeService,
    VolumeRef,
    calculate_new_size,
    parse_size,
)

from fakes import noop_launcher, rewriting_launcher


def scsi0(node=None):
    return VolumeRef(ResourceKind.VM, 100, "scsi0", node)


class TestParseSize:
    """Tests for size token parsing."""

    @pytest.mark.parametrize("token,relative,raw", [
        ("+10G", True, "+10G"),
        ("64G", False, "64G"),
        ("1.5t", False, "1.5T"),
        ("512", False, "512"),
        (" +512M ", True, "+512M"),
    ])
    def test_valid_tokens(self, token, relative, raw):
        """Valid tokens keep their sign and upper-case the unit."""
        parsed = parse_size(token)
        assert parsed.relative is relative
        assert parsed.raw == raw

    @pytest.mark.parametrize("token,message", [
        ("", "Size cannot be empty"),
        (None, "Size cannot be empty"),
        ("ten", "Invalid size format: ten"),
        ("-5G", "Invalid size format: -5G"),
        ("10X", "Invalid size format: 10X"),
        ("0G", "Size must be positive: 0G"),
    ])
    def test_invalid_tokens(self, token, message):
        """Malformed tokens raise with a specific message."""
        with pytest.raises(InvalidSizeFormatError, match=message):
            parse_size(token)


class TestCalculateNewSize:
    """Tests for resulting size computation."""

    def test_relative_in_current_unit(self):
        """+1T on 512G is expressed in gigabytes."""
        assert calculate_new_size("512G", parse_size("+1T")) == "1536G"

    def test_relative_fraction(self):
        """Fractional results keep one decimal."""
        assert calculate_new_size("1T", parse_size("+512G")) == "1.5T"

    def test_absolute_larger(self):
        """A larger absolute size replaces the current one."""
        assert calculate_new_size("32G", parse_size("64G")) == "64G"

    def test_absolute_across_units(self):
        """Absolute sizes compare across units."""
        assert calculate_new_size("1T", parse_size("2048G")) == "2048G"

    def test_absolute_equal_rejected(self):
        """The same size is not larger."""
        with pytest.raises(SizeTooSmallError, match="New size 32G must be larger than current size 32G"):
            calculate_new_size("32G", parse_size("32G"))

    def test_absolute_smaller_rejected(self):
        """Shrinking is rejected."""
        with pytest.raises(SizeTooSmallError):
            calculate_new_size("1T", parse_size("512G"))


class TestResizeVolumeService:
    """Tests for ResizeVolumeService."""

    @pytest.mark.asyncio
    async def test_resize(self, vm_repo):
        """Resize sends the raw token and reports both sizes."""
        result = await ResizeVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), "+10G")

        assert result.is_successful
        assert result.resource.id == "100/scsi0"
        assert result.details == {"current_size": "32G", "new_size": "42G"}
        assert vm_repo.called("resize") == [("resize", 100, "pve1", "scsi0", "+10G")]

    @pytest.mark.asyncio
    async def test_too_small_makes_no_call(self, vm_repo):
        """Pre-flight rejection issues no mutating call."""
        result = await ResizeVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), "32G")

        assert result.is_failed
        assert "must be larger" in result.error
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_missing_disk(self, vm_repo):
        """Unknown disks fail pre-flight."""
        volume = VolumeRef(ResourceKind.VM, 100, "scsi5")
        result = await ResizeVolumeService({ResourceKind.VM: vm_repo}).execute(volume, "+1G")

        assert result.is_failed
        assert result.error == "Disk 'scsi5' not found in config for resource 100"
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_missing_resource(self, vm_repo):
        """Unknown owning resource fails."""
        volume = VolumeRef(ResourceKind.VM, 999, "scsi0")
        result = await ResizeVolumeService({ResourceKind.VM: vm_repo}).execute(volume, "+1G")
        assert result.error == "VM 999 not found"

    @pytest.mark.asyncio
    async def test_repository_error(self, vm_repo):
        """Control-plane errors pass through verbatim."""
        vm_repo.failures["resize"] = RuntimeError("storage full")
        result = await ResizeVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), "+10G")
        assert result.is_failed
        assert result.error == "storage full"


class TestSetVolumeService:
    """Tests for SetVolumeService."""

    @pytest.mark.asyncio
    async def test_property_update(self, vm_repo):
        """Non-size properties are folded into the device string."""
        result = await SetVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), {"cache": "writeback"})

        assert result.is_successful
        assert vm_repo.called("update") == [(
            "update", 100, "pve1",
            {"scsi0": "local-lvm:vm-100-disk-0,size=32G,cache=writeback", "digest": "abc123"},
        )]
        assert vm_repo.called("resize") == []

    @pytest.mark.asyncio
    async def test_size_and_property(self, vm_repo):
        """A mixed change updates the config first, then resizes."""
        result = await SetVolumeService({ResourceKind.VM: vm_repo}).execute(
            scsi0(), {"size": "64G", "ssd": 1}
        )

        assert result.is_successful
        assert [c[0] for c in vm_repo.mutating_calls] == ["update", "resize"]
        assert vm_repo.called("update")[0][3]["scsi0"] == "local-lvm:vm-100-disk-0,size=32G,cache=none,ssd=1"
        assert vm_repo.called("resize") == [("resize", 100, "pve1", "scsi0", "64G")]
        assert result.details == {"current_size": "32G", "new_size": "64G"}

    @pytest.mark.asyncio
    async def test_both_failures_aggregated(self, vm_repo):
        """Failures of both calls appear in one message."""
        vm_repo.failures["update"] = RepositoryError("locked")
        vm_repo.failures["resize"] = RepositoryError("no space")
        result = await SetVolumeService({ResourceKind.VM: vm_repo}).execute(
            scsi0(), {"size": "+8G", "cache": "writeback"}
        )

        assert result.is_failed
        assert result.error == "config update failed: locked; resize failed: no space"

    @pytest.mark.asyncio
    async def test_too_small_no_calls(self, vm_repo):
        """Size validation happens before any call."""
        result = await SetVolumeService({ResourceKind.VM: vm_repo}).execute(
            scsi0(), {"size": "16G", "cache": "writeback"}
        )

        assert result.is_failed
        assert "must be larger" in result.error
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_remove_property(self, vm_repo):
        """Removed properties drop out of the device string."""
        await SetVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), {}, remove=["cache"])
        assert vm_repo.called("update")[0][3]["scsi0"] == "local-lvm:vm-100-disk-0,size=32G"

    @pytest.mark.asyncio
    async def test_size_removal_ignored(self, vm_repo):
        """Removing size alone changes nothing."""
        assert await SetVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), {}, remove=["size"]) is None
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_no_change(self, vm_repo):
        """Current values are a no-op."""
        assert await SetVolumeService({ResourceKind.VM: vm_repo}).execute(scsi0(), {"cache": "none"}) is None

    @pytest.mark.asyncio
    async def test_missing_volume(self, vm_repo):
        """Unknown volumes fail."""
        volume = VolumeRef(ResourceKind.VM, 100, "virtio3")
        result = await SetVolumeService({ResourceKind.VM: vm_repo}).execute(volume, {"cache": "none"})
        assert result.error == "Volume 'virtio3' not found in config for resource 100"

    @pytest.mark.asyncio
    async def test_dry_run(self, vm_repo):
        """Dry run validates and reports without calls."""
        service = SetVolumeService({ResourceKind.VM: vm_repo}, dry_run=True)
        result = await service.execute(scsi0(), {"size": "+1T"})

        assert result.is_successful
        assert result.details == {"current_size": "32G", "new_size": "1056G", "dry_run": True}
        assert vm_repo.mutating_calls == []


class TestEditVolumeService:
    """Tests for EditVolumeService."""

    @pytest.mark.asyncio
    async def test_edit_properties(self, vm_repo):
        """Edited properties are applied through the device string."""
        session = EditorSession(launcher=rewriting_launcher(lambda t: t.replace("cache: none", "cache: writeback")))
        result = await EditVolumeService({ResourceKind.VM: vm_repo}, editor_session=session).execute(scsi0())

        assert result.is_successful
        assert vm_repo.called("update")[0][3]["scsi0"] == "local-lvm:vm-100-disk-0,size=32G,cache=writeback"

    @pytest.mark.asyncio
    async def test_edit_size(self, vm_repo):
        """Editing size issues a resize only."""
        session = EditorSession(launcher=rewriting_launcher(lambda t: t.replace("size: 32G", "size: 40G")))
        result = await EditVolumeService({ResourceKind.VM: vm_repo}, editor_session=session).execute(scsi0())

        assert result.is_successful
        assert [c[0] for c in vm_repo.mutating_calls] == ["resize"]

    @pytest.mark.asyncio
    async def test_cancel(self, vm_repo):
        """Unchanged document is a cancel."""
        session = EditorSession(launcher=noop_launcher)
        assert await EditVolumeService({ResourceKind.VM: vm_repo}, editor_session=session).execute(scsi0()) is None


class TestRebuildPropertyString:
    """Tests for device string rebuilding."""

    def test_keeps_order_and_base(self):
        """Updated keys stay in place and new keys append."""
        current = "local-lvm:vm-100-disk-0,size=32G,cache=none"
        assert rebuild_property_string(current, {"cache": "writeback", "ssd": True}) == (
            "local-lvm:vm-100-disk-0,size=32G,cache=writeback,ssd=1"
        )
