"""Tests for snapforge.providers.normalize and primary branch resolution"""

import pytest

from snapforge.errors import ExternalServiceError
from snapforge.models import Branch, OperationStatus
from snapforge.providers import normalize
from snapforge.providers.branches import resolve_primary_branch


# =========================================================================
# Branch lists
# =========================================================================


class TestNormalizeBranches:

    def test_bare_list_of_flat_entries(self):
        payload = [{"id": "br-1", "name": "main"}, {"id": "br-2", "name": "dev", "parent_id": "br-1"}]
        branches = normalize.normalize_branches(payload)
        assert branches == [
            Branch(id="br-1", name="main"),
            Branch(id="br-2", name="dev", parent_id="br-1"),
        ]

    @pytest.mark.parametrize("key", ["branches", "items", "data"])
    def test_wrapped_list(self, key):
        payload = {key: [{"id": "br-1", "name": "main"}]}
        assert normalize.normalize_branches(payload) == [Branch(id="br-1", name="main")]

    def test_nested_branch_entries(self):
        payload = {"branches": [{"branch": {"id": "br-9", "name": "production", "created_at": "2026-01-01"}}]}
        (branch,) = normalize.normalize_branches(payload)
        assert branch.id == "br-9"
        assert branch.name == "production"
        assert branch.created_at == "2026-01-01"

    def test_flat_fields_win_over_nested(self):
        payload = [{"id": "outer", "branch": {"id": "inner", "name": "main"}}]
        (branch,) = normalize.normalize_branches(payload)
        assert branch.id == "outer"
        assert branch.name == "main"

    def test_malformed_entries_dropped(self):
        payload = [
            {"id": 42, "name": "numeric id"},
            {"name": "no id"},
            "not-a-dict",
            {"id": "br-1"},
        ]
        assert normalize.normalize_branches(payload) == [Branch(id="br-1")]

    def test_unknown_shape_is_empty(self):
        assert normalize.normalize_branches({"unexpected": True}) == []
        assert normalize.normalize_branches(None) == []


# =========================================================================
# Primary branch
# =========================================================================


class TestResolvePrimaryBranch:

    def test_prefers_main(self):
        branches = [Branch(id="p", name="production"), Branch(id="m", name="main", parent_id="p")]
        assert resolve_primary_branch(branches).id == "m"

    def test_falls_back_to_production(self):
        branches = [Branch(id="d", name="dev"), Branch(id="p", name="production", parent_id="x")]
        assert resolve_primary_branch(branches).id == "p"

    def test_falls_back_to_root_branch(self):
        branches = [Branch(id="d", name="dev", parent_id="r"), Branch(id="r", name="trunk")]
        assert resolve_primary_branch(branches).id == "r"

    def test_no_candidate_raises(self):
        with pytest.raises(ExternalServiceError, match="no primary branch"):
            resolve_primary_branch([Branch(id="d", name="dev", parent_id="x")])


# =========================================================================
# Snapshots, operations, projects
# =========================================================================


class TestNormalizeResponses:

    def test_snapshot_nested_id(self):
        snapshot = normalize.normalize_snapshot(
            {"snapshot": {"id": "snap-1"}, "operations": [{"id": "op-1"}, {"id": ""}]}
        )
        assert snapshot.id == "snap-1"
        assert snapshot.operation_ids == ["op-1"]

    def test_snapshot_flat_id(self):
        assert normalize.normalize_snapshot({"id": "snap-2"}).id == "snap-2"

    def test_snapshot_missing_id_raises(self):
        with pytest.raises(ExternalServiceError, match="snapshot id missing"):
            normalize.normalize_snapshot({"operations": []})

    def test_operation_status_nested(self):
        status = normalize.normalize_operation_status({"operation": {"status": "running"}}, "op-1")
        assert status is OperationStatus.RUNNING

    def test_operation_status_unknown_raises(self):
        with pytest.raises(ExternalServiceError, match="unknown status 'exploded'"):
            normalize.normalize_operation_status({"operation": {"status": "exploded"}}, "op-1")

    def test_operation_status_missing_raises(self):
        with pytest.raises(ExternalServiceError, match="status missing"):
            normalize.normalize_operation_status({}, "op-1")

    def test_created_database(self):
        payload = {
            "project": {"id": "proj-1"},
            "connection_uris": [{"connection_uri": "postgresql://x"}],
            "operations": [{"id": "op-a"}, {"id": "op-b"}],
        }
        provisioned = normalize.normalize_created_database(payload)
        assert provisioned.database_ref == "proj-1"
        assert provisioned.connection_uri == "postgresql://x"
        assert provisioned.operation_ids == ["op-a", "op-b"]

    def test_created_database_without_uri_raises(self):
        with pytest.raises(ExternalServiceError, match="connection uri missing"):
            normalize.normalize_created_database({"id": "proj-1"})

    def test_auth_keys(self):
        keys = normalize.normalize_auth_keys({
            "auth_provider_project_id": "ap",
            "pub_client_key": "pk",
            "secret_server_key": "sk",
        })
        assert (keys.project_id, keys.publishable_client_key, keys.secret_server_key) == ("ap", "pk", "sk")

    def test_latest_commit_sha_empty_repository(self):
        with pytest.raises(ExternalServiceError, match="no commits"):
            normalize.latest_commit_sha({"commits": []})
