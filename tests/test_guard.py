"""
Tests for the Document Guard
"""

import pytest

from failure_first.discovery import DiscoveryLedger
from failure_first.errors import GuardViolation, ImmutabilityViolation, SchemaError
from failure_first.freeze import FreezeManager
from failure_first.guard import DocumentGuard
from failure_first.main import EntryState, FrozenWritePolicy, Role


@pytest.fixture
def guard():
    return DocumentGuard()


@pytest.fixture
def frozen(document, clock):
    return FreezeManager(clock=clock).freeze(document, fingerprint="abc123").document


class TestAuthoring:
    """Writes before freeze"""

    def test_add_entry(self, guard, document, entry_factory):
        entry = guard.add_entry(document, entry_factory("F003", severity="medium"), "mallory", Role.ADVERSARY)
        assert entry.id == "F003"
        assert document.find("F003") is entry

    def test_add_requires_adversary(self, guard, document, entry_factory):
        with pytest.raises(GuardViolation):
            guard.add_entry(document, entry_factory("F003"), "bob", Role.BUILDER)
        assert document.find("F003") is None

    def test_add_rejects_invalid_entry(self, guard, document, entry_factory):
        with pytest.raises(SchemaError) as exc:
            guard.add_entry(document, entry_factory("F3"), "mallory", Role.ADVERSARY)
        assert "Invalid id format" in exc.value.reason
        assert len(document.failures) == 2

    def test_add_rejects_duplicate_id(self, guard, document, entry_factory):
        with pytest.raises(SchemaError) as exc:
            guard.add_entry(document, entry_factory("F001"), "mallory", Role.ADVERSARY)
        assert exc.value.rule == "entry.duplicate_id"

    def test_add_rejects_preclaimed_entry(self, guard, document, entry_factory):
        entry = entry_factory("F003", status={
            "state": "claimed",
            "guardrail": {
                "design": "d", "location": "l", "implemented_by": "bob", "implemented_at": "2026-01-01T00:00:00Z",
            },
        })
        with pytest.raises(GuardViolation):
            guard.add_entry(document, entry, "mallory", Role.ADVERSARY)

    def test_update_entry(self, guard, document):
        updated = guard.update_entry(document, "F001", {"title": "Replayed webhook accepted"}, "mallory", Role.ADVERSARY)
        assert updated.title == "Replayed webhook accepted"
        assert document.find("F001").title == "Replayed webhook accepted"

    def test_update_validates_candidate(self, guard, document):
        with pytest.raises(SchemaError):
            guard.update_entry(document, "F001", {"severity": "apocalyptic"}, "mallory", Role.ADVERSARY)
        assert document.find("F001").severity.value == "critical"

    def test_status_goes_through_lifecycle(self, guard, document):
        with pytest.raises(GuardViolation) as exc:
            guard.update_entry(document, "F001", {"status": {"state": "verified"}}, "mallory", Role.ADVERSARY)
        assert exc.value.rule == "entry.status_write"

    def test_update_metadata(self, guard, document):
        guard.update_metadata(document, {"feature": "payments", "owner": "team-a"}, "alice")
        assert document.metadata.feature == "payments"
        assert document.metadata.extra["owner"] == "team-a"

    def test_update_metadata_is_atomic(self, guard, document):
        with pytest.raises(SchemaError):
            guard.update_metadata(document, {"owner": "team-a", "feature": ""}, "alice")
        assert "owner" not in document.metadata.extra
        assert document.metadata.feature == "webhook-handler"

    def test_freeze_fields_owned_by_freeze(self, guard, document):
        with pytest.raises(GuardViolation):
            guard.update_metadata(document, {"frozen_at": "2026-01-01T00:00:00Z"}, "alice")


class TestFrozenWrites:
    """Writes after freeze"""

    @pytest.mark.parametrize("field,value", [
        ("title", "New title"),
        ("severity", "low"),
        ("oracle", {"condition": "Returns 403", "falsifiable": True}),
        ("repro", {"steps": ["x"], "expected_if_vulnerable": "y"}),
        ("evidence_requirement", {"type": "manual", "criteria": "Reviewed"}),
    ])
    def test_structural_edit_rejected(self, guard, frozen, field, value):
        before = frozen.to_dict()
        with pytest.raises(ImmutabilityViolation) as exc:
            guard.update_entry(frozen, "F001", {field: value}, "mallory", Role.ADVERSARY)
        assert "ffh discover" in exc.value.reason
        assert frozen.to_dict() == before

    def test_new_entry_rejected(self, guard, frozen, entry_factory):
        with pytest.raises(ImmutabilityViolation):
            guard.add_entry(frozen, entry_factory("F003"), "mallory", Role.ADVERSARY)
        assert len(frozen.failures) == 2

    def test_metadata_rejected(self, guard, frozen):
        with pytest.raises(ImmutabilityViolation):
            guard.update_metadata(frozen, {"feature": "renamed"}, "alice")

    def test_redirect_policy_logs_discovery(self, frozen, clock):
        ledger = DiscoveryLedger(clock=clock)
        guard = DocumentGuard(policy=FrozenWritePolicy.REDIRECT, ledger=ledger)

        with pytest.raises(ImmutabilityViolation) as exc:
            guard.update_entry(frozen, "F001", {"severity": "low"}, "mallory", Role.ADVERSARY)

        assert exc.value.details["discovery_id"] == "D001"
        discovery = ledger.get("D001")
        assert "F001" in discovery.description
        assert discovery.discovered_by == "mallory"
        assert frozen.find("F001").severity.value == "critical"

    def test_status_write_allowed(self, guard, frozen):
        status = frozen.find("F001").status
        status.state = EntryState.IN_PROGRESS
        guard.write_status(frozen, "F001", status)
        assert frozen.find("F001").state == EntryState.IN_PROGRESS

    def test_integrity_check(self, guard, frozen):
        guard.assert_intact(frozen)
        frozen.find("F002").repro.steps.append("Quietly added step")
        with pytest.raises(ImmutabilityViolation) as exc:
            guard.assert_intact(frozen)
        assert exc.value.rule == "frozen.integrity"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
