"""
Tests for the Discovery Ledger
"""

import pytest

from failure_first.discovery import DiscoveryLedger
from failure_first.errors import AuthorityViolation, GuardViolation, SchemaError
from failure_first.main import Disposition

from conftest import FIXED_TIMESTAMP


@pytest.fixture
def ledger(clock):
    return DiscoveryLedger(clock=clock)


class TestDiscover:
    """Tests for logging discoveries"""

    def test_sequential_ids(self, ledger):
        first = ledger.discover("Replay after clock skew", "dave")
        second = ledger.discover("Oversized payload crashes parser", "dave")

        assert (first.id, second.id) == ("D001", "D002")
        assert first.disposition == Disposition.PENDING
        assert first.discovered_at == FIXED_TIMESTAMP

    def test_next_id_follows_highest(self, clock):
        ledger = DiscoveryLedger.from_dict({"discoveries": [
            {"id": "D001", "description": "a", "discovered_by": "x", "discovered_at": "t"},
            {"id": "D007", "description": "b", "discovered_by": "x", "discovered_at": "t"},
        ]}, clock=clock)
        assert ledger.discover("c", "x").id == "D008"

    @pytest.mark.parametrize("description", ["", "   ", None])
    def test_empty_description_rejected(self, ledger, description):
        with pytest.raises(SchemaError):
            ledger.discover(description, "dave")
        assert len(ledger) == 0

    def test_round_trip(self, ledger):
        ledger.discover("Replay after clock skew", "dave")
        restored = DiscoveryLedger.from_dict(ledger.to_dict())
        assert restored.get("d001").description == "Replay after clock skew"


class TestDisposition:
    """Tests for human decisions on discoveries"""

    @pytest.fixture
    def discovery(self, ledger):
        return ledger.discover("Replay after clock skew", "dave")

    def test_set_disposition(self, ledger, discovery):
        decided = ledger.set_disposition(discovery.id, Disposition.DUPLICATE, "alice@example.com", note="Same as F001")
        assert decided.disposition == Disposition.DUPLICATE
        assert decided.decided_by == "alice@example.com"
        assert decided.decided_at == FIXED_TIMESTAMP
        assert ledger.pending() == []

    def test_disposition_by_value(self, ledger, discovery):
        ledger.set_disposition(discovery.id, "accepted_risk", "alice@example.com")
        assert discovery.disposition == Disposition.ACCEPTED_RISK

    def test_unknown_disposition(self, ledger, discovery):
        with pytest.raises(SchemaError):
            ledger.set_disposition(discovery.id, "ignore", "alice@example.com")

    def test_unknown_discovery(self, ledger):
        with pytest.raises(SchemaError):
            ledger.set_disposition("D042", Disposition.DUPLICATE, "alice@example.com")

    @pytest.mark.parametrize("identity", ["triage-bot", "agent-007", "", "GPT reviewer"])
    def test_human_only(self, ledger, discovery, identity):
        with pytest.raises(AuthorityViolation):
            ledger.set_disposition(discovery.id, Disposition.DUPLICATE, identity)
        assert discovery.disposition == Disposition.PENDING

    def test_add_to_next_needs_draft(self, ledger, discovery):
        with pytest.raises(GuardViolation):
            ledger.set_disposition(discovery.id, Disposition.ADD_TO_NEXT, "alice@example.com")

    def test_cannot_return_to_pending(self, ledger, discovery):
        with pytest.raises(GuardViolation):
            ledger.set_disposition(discovery.id, Disposition.PENDING, "alice@example.com")


class TestDraftForNext:
    """Tests for promoting a discovery into the next spec"""

    @pytest.fixture
    def discovery(self, ledger):
        return ledger.discover("Replay after clock skew", "dave")

    def test_valid_draft(self, ledger, discovery, entry_factory):
        report = ledger.draft_for_next(discovery.id, entry_factory("F001"), "alice@example.com")
        assert report.valid
        assert discovery.disposition == Disposition.ADD_TO_NEXT
        assert "F001" in discovery.note

    def test_invalid_draft_leaves_pending(self, ledger, discovery, entry_factory):
        entry = entry_factory("F001")
        entry["oracle"]["condition"] = "It should be secure"
        report = ledger.draft_for_next(discovery.id, entry, "alice@example.com")
        assert not report.valid
        assert discovery.disposition == Disposition.PENDING

    def test_draft_must_start_unaddressed(self, ledger, discovery, entry_factory):
        entry = entry_factory("F001", status={"state": "in_progress"})
        report = ledger.draft_for_next(discovery.id, entry, "alice@example.com")
        assert not report.valid

    def test_draft_is_human_only(self, ledger, discovery, entry_factory):
        with pytest.raises(AuthorityViolation):
            ledger.draft_for_next(discovery.id, entry_factory("F001"), "spec-agent")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
