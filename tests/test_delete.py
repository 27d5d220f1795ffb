"""Integration tests for dashstore.dashboards.delete — Cascading dashboard and folder deletes."""

import pytest

from dashstore.dashboards.delete import DASHBOARD_STEPS, FOLDER_STEPS, CascadeDeleter
from dashstore.dashboards.models import DeleteDashboardCommand
from dashstore.dashboards.store import DashboardStore
from dashstore.engine.errors import DashboardNotFound, FolderContainsAlertRules
from dashstore.engine.logging import FileLogger

DEPENDENT_TABLES = (
    "dashboard_tag",
    "star",
    "dashboard_version",
    "annotation",
    "dashboard_provisioning",
    "dashboard_acl",
)


def dependent_counts(seed, dashboard_id):
    return {
        table: seed.count(f"SELECT COUNT(*) FROM {table} WHERE dashboard_id = :id", id=dashboard_id)
        for table in DEPENDENT_TABLES
    }


def exists(seed, dashboard_id):
    return seed.count("SELECT COUNT(*) FROM dashboard WHERE id = :id", id=dashboard_id) == 1


class TestDeleteDashboard:
    def test_removes_own_dependents_only(self, store, seed):
        target = seed.dashboard("Target")
        sibling = seed.dashboard("Sibling")
        seed.dependents(target)
        seed.dependents(sibling)

        store.delete_dashboard(DeleteDashboardCommand(id=target, org_id=1))

        assert not exists(seed, target)
        assert all(v == 0 for v in dependent_counts(seed, target).values())
        assert seed.count("SELECT COUNT(*) FROM playlist_item WHERE value = :v", v=str(target)) == 0
        assert seed.count("SELECT COUNT(*) FROM permission WHERE scope = :s", s=f"dashboards:id:{target}") == 0
        assert seed.count("SELECT COUNT(*) FROM alert WHERE dashboard_id = :id", id=target) == 0

        assert exists(seed, sibling)
        assert dependent_counts(seed, sibling) == {table: 1 for table in DEPENDENT_TABLES}
        assert seed.count("SELECT COUNT(*) FROM playlist_item WHERE value = :v", v=str(sibling)) == 1
        assert seed.count("SELECT COUNT(*) FROM alert WHERE dashboard_id = :id", id=sibling) == 1

    def test_removes_alert_state_rows(self, store, seed):
        target = seed.dashboard("Target")
        seed.dependents(target)
        seed.dependents(seed.dashboard("Sibling"))

        store.delete_dashboard(DeleteDashboardCommand(id=target, org_id=1))

        assert seed.count("SELECT COUNT(*) FROM alert") == 1
        assert seed.count("SELECT COUNT(*) FROM alert_notification_state") == 1
        assert seed.count("SELECT COUNT(*) FROM alert_rule_tag") == 1
        assert seed.count("SELECT COUNT(*) FROM annotation WHERE alert_id IS NOT NULL") == 1

    def test_not_found(self, store, seed):
        with pytest.raises(DashboardNotFound):
            store.delete_dashboard(DeleteDashboardCommand(id=12345, org_id=1))

    def test_wrong_org_is_not_found(self, store, seed):
        dash = seed.dashboard("Other org", org_id=2)
        with pytest.raises(DashboardNotFound):
            store.delete_dashboard(DeleteDashboardCommand(id=dash, org_id=1))
        assert exists(seed, dash)

    def test_leaves_default_acls(self, store, seed):
        target = seed.dashboard("Target")
        store.delete_dashboard(DeleteDashboardCommand(id=target, org_id=1))
        assert seed.count("SELECT COUNT(*) FROM dashboard_acl WHERE org_id = -1") == 2


class TestDeleteFolder:
    def test_removes_folder_and_children(self, store, seed):
        folder = seed.folder("Ops")
        child = seed.dashboard("Child", folder_id=folder)
        outside = seed.dashboard("Outside")
        seed.dependents(child)
        seed.dependents(outside)
        seed.permission(f"folders:id:{folder}", action="folders:read")

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        assert not exists(seed, folder)
        assert not exists(seed, child)
        assert all(v == 0 for v in dependent_counts(seed, child).values())
        assert seed.count("SELECT COUNT(*) FROM permission WHERE scope = :s", s=f"folders:id:{folder}") == 0
        assert seed.count("SELECT COUNT(*) FROM permission WHERE scope = :s", s=f"dashboards:id:{child}") == 0
        assert seed.count("SELECT COUNT(*) FROM alert WHERE dashboard_id = :id", id=child) == 0

        assert exists(seed, outside)
        assert dependent_counts(seed, outside)["dashboard_tag"] == 1

    def test_empty_folder(self, store, seed):
        folder = seed.folder("Empty")
        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))
        assert not exists(seed, folder)

    def test_children_rows_deleted_last(self, store, seed, recorder):
        folder = seed.folder("Ops")
        seed.dashboard("Child", folder_id=folder)
        recorder.clear()

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        deletes = recorder.matching("DELETE FROM")
        assert deletes[-1] == "DELETE FROM dashboard WHERE folder_id = ?"
        assert len(recorder.matching("IN (SELECT id FROM dashboard WHERE org_id = ? AND folder_id = ?)")) == 6

    def test_alert_rules_block_delete(self, store, seed):
        folder = seed.folder("Alerting", uid="alerting")
        child = seed.dashboard("Child", folder_id=folder, tags=["keep"])
        seed.permission(f"folders:id:{folder}", action="folders:read")
        seed.alert_rule("alerting")

        with pytest.raises(FolderContainsAlertRules) as exc:
            store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        assert exc.value.folder_uid == "alerting"
        assert exists(seed, folder)
        assert exists(seed, child)
        assert dependent_counts(seed, child)["dashboard_tag"] == 1
        assert seed.count("SELECT COUNT(*) FROM permission WHERE scope = :s", s=f"folders:id:{folder}") == 1
        assert seed.count("SELECT COUNT(*) FROM alert_rule") == 1

    def test_forced_delete_removes_alert_rules(self, store, seed):
        folder = seed.folder("Alerting", uid="alerting")
        seed.dashboard("Child", folder_id=folder)
        seed.alert_rule("alerting")
        seed.alert_rule("elsewhere")

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1, force_delete_folder_rules=True))

        assert not exists(seed, folder)
        assert seed.count("SELECT COUNT(*) FROM alert_rule WHERE namespace_uid = 'alerting'") == 0
        assert seed.count("SELECT COUNT(*) FROM alert_rule_version WHERE rule_namespace_uid = 'alerting'") == 0
        assert seed.count("SELECT COUNT(*) FROM alert_rule") == 1

    def test_other_org_rules_do_not_block_delete(self, store, seed):
        folder = seed.folder("Shared", uid="shared")
        seed.alert_rule("shared", org_id=2)

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        assert not exists(seed, folder)
        assert seed.count("SELECT COUNT(*) FROM alert_rule WHERE org_id = 2") == 1

    def test_forced_delete_keeps_other_org_rules(self, store, seed):
        folder = seed.folder("Shared", uid="shared")
        seed.alert_rule("shared")
        seed.alert_rule("shared", org_id=2)

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1, force_delete_folder_rules=True))

        assert seed.count("SELECT COUNT(*) FROM alert_rule WHERE org_id = 1") == 0
        assert seed.count("SELECT COUNT(*) FROM alert_rule WHERE org_id = 2") == 1
        assert seed.count("SELECT COUNT(*) FROM alert_rule_version WHERE rule_org_id = 2") == 1
        assert seed.count("SELECT COUNT(*) FROM alert_rule_version WHERE rule_org_id = 1") == 0


class TestAtomicity:
    def test_failing_step_rolls_back(self, session_factory, seed):
        def explode(session, target):
            raise RuntimeError("disk full")

        deleter = CascadeDeleter(dashboard_steps=DASHBOARD_STEPS + [explode])
        store = DashboardStore(session_factory, deleter=deleter)
        target = seed.dashboard("Target", tags=["t"])
        seed.permission(f"dashboards:id:{target}")

        with pytest.raises(RuntimeError):
            store.delete_dashboard(DeleteDashboardCommand(id=target, org_id=1))

        assert exists(seed, target)
        assert dependent_counts(seed, target)["dashboard_tag"] == 1
        assert seed.count("SELECT COUNT(*) FROM permission WHERE scope = :s", s=f"dashboards:id:{target}") == 1

    def test_steps_for_branches_on_folder(self):
        deleter = CascadeDeleter()
        assert deleter.folder_steps == FOLDER_STEPS
        assert deleter.dashboard_steps == DASHBOARD_STEPS
        assert deleter.folder_steps is not FOLDER_STEPS


class TestDeleteAudit:
    def test_dashboard_delete_logged(self, session_factory, seed, tmp_path):
        audit = FileLogger(str(tmp_path))
        store = DashboardStore(session_factory, audit_logger=audit)
        target = seed.dashboard("Target", uid="tgt")

        store.delete_dashboard(DeleteDashboardCommand(id=target, org_id=1))

        entry = audit.query("dashboards", "execution")[0]
        assert entry["event"] == "dashboard_deleted"
        assert entry["uid"] == "tgt"
        assert entry["dashboard_id"] == target

    def test_folder_delete_logged_with_children(self, session_factory, seed, tmp_path):
        audit = FileLogger(str(tmp_path))
        store = DashboardStore(session_factory, audit_logger=audit)
        folder = seed.folder("Ops")
        child = seed.dashboard("Child", folder_id=folder)

        store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        entry = audit.query("folders", "execution")[0]
        assert entry["event"] == "folder_deleted"
        assert entry["child_ids"] == [child]

    def test_refusal_logged(self, session_factory, seed, tmp_path):
        audit = FileLogger(str(tmp_path))
        store = DashboardStore(session_factory, audit_logger=audit)
        folder = seed.folder("Alerting", uid="alerting")
        seed.alert_rule("alerting")

        with pytest.raises(FolderContainsAlertRules):
            store.delete_dashboard(DeleteDashboardCommand(id=folder, org_id=1))

        entry = audit.query("folders", "security")[0]
        assert entry["event"] == "folder_delete_refused"
        assert entry["uid"] == "alerting"
