"""Tests for the edit and set services."""
import threading

import pytest

from pvectl_core.config_engine import VM_PROFILE, validate_document
from pvectl_core.editor import EditorSession
from pvectl_core.errors import RepositoryError
from pvectl_core.repositories.base import Resource, ResourceKind
from pvectl_core.services import (
    edit_container_service,
    edit_node_service,
    edit_vm_service,
    set_container_service,
    set_node_service,
    set_vm_service,
)
from pvectl_core.utils import AuditTrail, get_recent_changes, setup_audit_logging

from fakes import FakeGuestRepository, FakeNodeRepository, noop_launcher, rewriting_launcher


def editing(transform):
    return EditorSession(launcher=rewriting_launcher(transform))


def bump_cores_drop_description(text):
    return text.replace("  cores: 4\n", "  cores: 8\n").replace("  description: Web frontend\n", "")


class TestEditVm:
    """Tests for interactive VM edit."""

    @pytest.mark.asyncio
    async def test_editor_runs_off_event_loop_thread(self, vm_repo):
        """The blocking editor runs in a worker thread."""
        loop_thread = threading.get_ident()
        editor_threads = []
        rewrite = rewriting_launcher(bump_cores_drop_description)

        def launcher(path):
            editor_threads.append(threading.get_ident())
            rewrite(path)

        service = edit_vm_service(vm_repo, editor_session=EditorSession(launcher=launcher))
        result = await service.execute(100)

        assert result.is_successful
        assert editor_threads and editor_threads[0] != loop_thread

    @pytest.mark.asyncio
    async def test_rejected_document_reopened(self, vm_repo):
        """An invalid document is reopened with its errors instead of being discarded."""
        opened = []

        def launcher(path):
            with open(path, encoding="utf-8") as f:
                text = f.read()
            opened.append(text)
            if len(opened) == 1:
                text = text.replace("  cores: 4\n", "  cores: 8\n  bogus: 1\n")
            else:
                text = text.replace("  bogus: 1\n", "")
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)

        session = EditorSession(launcher=launcher, validator=lambda text: validate_document(text, VM_PROFILE))
        result = await edit_vm_service(vm_repo, editor_session=session).execute(100)

        assert len(opened) == 2
        assert "# ERROR: Unknown key 'bogus' in section 'cpu'" in opened[1]
        assert "  cores: 8\n" in opened[1]
        assert result.is_successful
        assert result.diff.changed == {"cores": (4, 8)}

    @pytest.mark.asyncio
    async def test_edit_applies_diff(self, vm_repo):
        """Changed and removed keys become one update call."""
        service = edit_vm_service(vm_repo, editor_session=editing(bump_cores_drop_description))
        result = await service.execute(100)

        assert result.is_successful
        assert result.resource.id == 100
        assert result.diff.changed == {"cores": (4, 8)}
        assert result.diff.removed == ["description"]
        assert vm_repo.called("update") == [
            ("update", 100, "pve1", {"cores": 8, "delete": "description", "digest": "abc123"}),
        ]

    @pytest.mark.asyncio
    async def test_document_shows_header_and_sections(self, vm_repo):
        """The operator sees the header and grouped sections."""
        seen = []

        def capture(path):
            with open(path, encoding="utf-8") as f:
                seen.append(f.read())

        service = edit_vm_service(vm_repo, editor_session=EditorSession(launcher=capture))
        assert await service.execute(100) is None

        text = seen[0]
        assert text.startswith("# Editing VM 100 on node pve1 (status: running)\n")
        assert "cpu:\n  cores: 4" in text
        assert "template: 0  # read-only" in text
        assert "digest" not in text

    @pytest.mark.asyncio
    async def test_cancel_makes_no_calls(self, vm_repo):
        """Unchanged document returns None without mutations."""
        service = edit_vm_service(vm_repo, editor_session=EditorSession(launcher=noop_launcher))
        assert await service.execute(100) is None
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_emptied_document_cancels(self, vm_repo):
        """Empty document returns None."""
        service = edit_vm_service(vm_repo, editor_session=editing(lambda t: ""))
        assert await service.execute(100) is None
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_semantic_no_op(self, vm_repo):
        """A reformatted document with equal values is a no-op."""
        service = edit_vm_service(vm_repo, editor_session=editing(lambda t: t + "\n# note\n"))
        assert await service.execute(100) is None
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_readonly_rejected(self, vm_repo):
        """Touching a read-only field fails before any update."""
        service = edit_vm_service(
            vm_repo, editor_session=editing(lambda t: t.replace("template: 0", "template: 1"))
        )
        result = await service.execute(100)

        assert result.is_failed
        assert result.error == "Cannot modify read-only fields: template"
        assert result.details["readonly_fields"] == ["template"]
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_not_found(self, vm_repo):
        """Unknown id fails without opening the editor."""
        opened = []
        service = edit_vm_service(vm_repo, editor_session=EditorSession(launcher=opened.append))
        result = await service.execute(999)

        assert result.is_failed
        assert result.error == "VM 999 not found"
        assert result.resource.id == 999
        assert opened == []

    @pytest.mark.asyncio
    async def test_malformed_document(self, vm_repo):
        """Broken YAML fails with a validation message."""
        service = edit_vm_service(vm_repo, editor_session=editing(lambda t: "cpu: [\n"))
        result = await service.execute(100)

        assert result.is_failed
        assert "YAML syntax error" in result.error
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_unknown_key_rejected(self, vm_repo):
        """The default validator rejects keys outside the section map."""
        service = edit_vm_service(
            vm_repo, editor_session=editing(lambda t: t.replace("  cores: 4\n", "  cores: 4\n  bogus: 1\n"))
        )
        result = await service.execute(100)

        assert result.is_failed
        assert "Unknown key 'bogus' in section 'cpu'" in result.error
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_update_error_reported(self, vm_repo):
        """A failing update call becomes a failed result with the diff."""
        vm_repo.failures["update"] = RepositoryError("config locked")
        service = edit_vm_service(vm_repo, editor_session=editing(bump_cores_drop_description))
        result = await service.execute(100)

        assert result.is_failed
        assert result.error == "config locked"
        assert result.diff.changed == {"cores": (4, 8)}

    @pytest.mark.asyncio
    async def test_dry_run(self, vm_repo):
        """Dry run reports the diff without calling update."""
        service = edit_vm_service(
            vm_repo, editor_session=editing(bump_cores_drop_description), dry_run=True
        )
        result = await service.execute(100)

        assert result.is_successful
        assert result.details == {"dry_run": True}
        assert result.diff.total_changes == 2
        assert vm_repo.called("update") == []

    @pytest.mark.asyncio
    async def test_audit_record_written(self, vm_repo, tmp_path):
        """Applied edits are written to the audit log."""
        audit_file = setup_audit_logging(str(tmp_path))
        service = edit_vm_service(
            vm_repo, editor_session=editing(bump_cores_drop_description), audit=AuditTrail(user="alice")
        )
        await service.execute(100)

        records = get_recent_changes(str(audit_file))
        assert len(records) == 1
        assert records[0].operation == "edit"
        assert records[0].resource_id == "100"
        assert records[0].user == "alice"
        assert records[0].parameters["cores"] == 8
        assert records[0].dry_run is False


class TestEditContainer:
    """Tests for interactive container edit."""

    @pytest.mark.asyncio
    async def test_container_header_and_update(self):
        """Containers use their own profile and label."""
        ct = Resource(id=200, node="pve2", kind=ResourceKind.CONTAINER, name="db", status="stopped")
        repo = FakeGuestRepository(
            ResourceKind.CONTAINER,
            [ct],
            {200: {"hostname": "db", "memory": 1024, "arch": "amd64", "digest": "d1"}},
        )
        service = edit_container_service(
            repo, editor_session=editing(lambda t: t.replace("memory: 1024", "memory: 2048"))
        )
        result = await service.execute(200)

        assert result.is_successful
        assert repo.called("update") == [("update", 200, "pve2", {"memory": 2048, "digest": "d1"})]

    @pytest.mark.asyncio
    async def test_container_not_found_label(self):
        """Missing containers are reported with the container label."""
        repo = FakeGuestRepository(ResourceKind.CONTAINER)
        service = edit_container_service(repo, editor_session=EditorSession(launcher=noop_launcher))
        result = await service.execute(201)
        assert result.error == "Container 201 not found"
        assert result.resource.kind == "lxc"


class TestEditNode:
    """Tests for node edit."""

    @pytest.mark.asyncio
    async def test_flat_node_document(self):
        """Node documents are flat and updated by name."""
        repo = FakeNodeRepository({"pve1": {"wakeonlan": "aa:bb", "digest": "n1"}})
        service = edit_node_service(
            repo, editor_session=editing(lambda t: t.replace("aa:bb", "cc:dd"))
        )
        result = await service.execute("pve1")

        assert result.is_successful
        assert result.resource.kind == "node"
        assert repo.called("update") == [("update", "pve1", {"wakeonlan": "cc:dd", "digest": "n1"})]

    @pytest.mark.asyncio
    async def test_node_not_found(self):
        """Unknown nodes fail."""
        service = edit_node_service(FakeNodeRepository(), editor_session=EditorSession(launcher=noop_launcher))
        result = await service.execute("ghost")
        assert result.is_failed
        assert result.error == "Node ghost not found"


class TestSetServices:
    """Tests for non-interactive set."""

    @pytest.mark.asyncio
    async def test_set_values(self, vm_repo):
        """Only keys whose value differs are sent."""
        result = await set_vm_service(vm_repo).execute(100, {"cores": 8, "memory": 8192})

        assert result.is_successful
        assert result.operation == "set"
        assert vm_repo.called("update") == [("update", 100, "pve1", {"cores": 8, "digest": "abc123"})]

    @pytest.mark.asyncio
    async def test_set_with_remove(self, vm_repo):
        """Removed keys are sent as a delete instruction."""
        result = await set_vm_service(vm_repo).execute(100, {"onboot": 1}, remove=["description"])

        assert result.is_successful
        params = vm_repo.called("update")[0][3]
        assert params == {"onboot": 1, "delete": "description", "digest": "abc123"}

    @pytest.mark.asyncio
    async def test_set_no_change(self, vm_repo):
        """Setting the current value is a no-op."""
        assert await set_vm_service(vm_repo).execute(100, {"cores": "4"}) is None
        assert vm_repo.mutating_calls == []

    @pytest.mark.asyncio
    async def test_set_remove_missing_key(self, vm_repo):
        """Removing a missing key is not a change."""
        assert await set_vm_service(vm_repo).execute(100, {}, remove=["unused0"]) is None

    @pytest.mark.asyncio
    async def test_set_container(self):
        """Containers update through their repository."""
        ct = Resource(id=200, node="pve2", kind=ResourceKind.CONTAINER, status="running")
        repo = FakeGuestRepository(ResourceKind.CONTAINER, [ct], {200: {"swap": 512}})
        result = await set_container_service(repo).execute(200, {"swap": 1024})

        assert result.is_successful
        assert repo.called("update") == [("update", 200, "pve2", {"swap": 1024})]

    @pytest.mark.asyncio
    async def test_set_node(self):
        """Nodes update by name."""
        repo = FakeNodeRepository({"pve1": {"description": "old"}})
        result = await set_node_service(repo).execute("pve1", {"description": "rack 3"})

        assert result.is_successful
        assert repo.called("update") == [("update", "pve1", {"description": "rack 3"})]
