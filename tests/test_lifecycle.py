"""
Tests for the Lifecycle Engine
"""

import pytest
from unittest.mock import AsyncMock

from failure_first.document import FailureSpecDocument, content_fingerprint
from failure_first.errors import (
    AuthorityViolation,
    EvidenceFailure,
    GuardViolation,
    ImmutabilityViolation,
    SchemaError,
)
from failure_first.evidence import EvidenceCollector, EvidenceResult
from failure_first.freeze import FreezeManager
from failure_first.lifecycle import (
    TRANSITIONS,
    LifecycleEngine,
    blocking_entries,
    check_transition,
    is_complete,
)
from failure_first.main import EntryState, Role

from conftest import FIXED_TIMESTAMP


@pytest.fixture
def engine(document, clock, config):
    return LifecycleEngine(document, clock=clock, config=config)


def _claimed(engine, entry_id="F001"):
    result = engine.claim(entry_id, design="HMAC signature check", location="src/webhook.py:10-20",
                          actor="bob", role=Role.BUILDER)
    assert result.ok, result.reason
    return result


class TestTransitionTable:
    """Tests for the role/transition table"""

    def test_table_covers_forward_path(self):
        assert TRANSITIONS[(EntryState.UNADDRESSED, EntryState.IN_PROGRESS)] == Role.BUILDER
        assert TRANSITIONS[(EntryState.CLAIMED, EntryState.VERIFIED)] == Role.VERIFIER

    def test_wrong_role_rejected(self):
        with pytest.raises(GuardViolation) as exc:
            check_transition(EntryState.CLAIMED, EntryState.VERIFIED, Role.BUILDER)
        assert "verifier" in exc.value.reason

    def test_skipping_states_rejected(self):
        with pytest.raises(GuardViolation):
            check_transition(EntryState.UNADDRESSED, EntryState.VERIFIED, Role.VERIFIER)

    @pytest.mark.parametrize("state", [EntryState.VERIFIED, EntryState.ACCEPTED_RISK])
    def test_terminal_states_cannot_accept_risk(self, state):
        with pytest.raises(GuardViolation):
            check_transition(state, EntryState.ACCEPTED_RISK, Role.RESOLVER)


class TestStartAndClaim:
    """Tests for builder transitions"""

    def test_start(self, engine):
        result = engine.start("F001", actor="bob", role=Role.BUILDER)
        assert result.ok
        assert result.from_state == EntryState.UNADDRESSED
        assert engine.document.find("F001").state == EntryState.IN_PROGRESS

    def test_start_requires_builder(self, engine):
        result = engine.start("F001", actor="carol", role=Role.VERIFIER)
        assert not result.ok
        assert isinstance(result.violation, GuardViolation)
        assert engine.document.find("F001").state == EntryState.UNADDRESSED

    def test_unknown_entry(self, engine):
        result = engine.start("F999", actor="bob", role=Role.BUILDER)
        assert not result.ok
        assert isinstance(result.violation, SchemaError)

    def test_ids_are_case_insensitive(self, engine):
        assert engine.start("f001", actor="bob", role=Role.BUILDER).ok

    def test_claim_stamps_guardrail(self, engine):
        engine.start("F001", actor="bob", role=Role.BUILDER)
        _claimed(engine)

        status = engine.document.find("F001").status
        assert status.state == EntryState.CLAIMED
        assert status.guardrail.design == "HMAC signature check"
        assert status.guardrail.implemented_by == "bob"
        assert status.guardrail.implemented_at == FIXED_TIMESTAMP

    def test_claim_from_unaddressed_records_two_steps(self, engine):
        _claimed(engine)
        history = engine.document.find("F001").status.history
        assert [(h.from_state, h.to_state) for h in history] == [
            ("unaddressed", "in_progress"),
            ("in_progress", "claimed"),
        ]

    @pytest.mark.parametrize("design,location", [("", "src/a.py"), ("HMAC", "  "), (None, None)])
    def test_claim_requires_design_and_location(self, engine, design, location):
        before = engine.document.to_dict()
        result = engine.claim("F001", design=design, location=location, actor="bob", role=Role.BUILDER)
        assert not result.ok
        assert result.violation.rule == "claim.guardrail"
        # Nothing committed, not even the implicit start
        assert engine.document.to_dict() == before

    def test_claim_requires_actor(self, engine):
        result = engine.claim("F001", design="d", location="l", actor="", role=Role.BUILDER)
        assert not result.ok
        assert result.violation.rule == "actor.required"


class TestVerify:
    """Tests for verification"""

    @pytest.mark.asyncio
    async def test_scenario_claim_then_verify(self, engine):
        """F001 unaddressed -> claimed -> verify with evidence -> verified"""
        _claimed(engine)
        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="test passed")

        assert result.ok
        status = engine.document.find("F001").status
        assert status.state == EntryState.VERIFIED
        assert status.verification.evidence == "test passed"
        assert status.verification.verified_at == FIXED_TIMESTAMP
        assert status.verification.verified_by == "carol"
        assert status.verification.method == "Manual verification"
        assert status.verification.evidence_fingerprint == content_fingerprint("test passed")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("evidence", ["", "   "])
    async def test_empty_evidence_rejected(self, engine, evidence):
        _claimed(engine)
        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence=evidence)
        assert not result.ok
        assert isinstance(result.violation, EvidenceFailure)
        assert engine.document.find("F001").state == EntryState.CLAIMED

    @pytest.mark.asyncio
    async def test_assertion_evidence_rejected(self, engine):
        """Judgments are not evidence"""
        _claimed(engine)
        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="Looks correct to me")
        assert not result.ok
        assert result.violation.rule == "verify.evidence_assertion"

    @pytest.mark.asyncio
    async def test_verify_requires_claim(self, engine):
        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="test passed")
        assert not result.ok
        assert isinstance(result.violation, GuardViolation)

    @pytest.mark.asyncio
    async def test_verify_requires_verifier_role(self, engine):
        _claimed(engine)
        result = await engine.verify("F001", actor="bob", role=Role.BUILDER, evidence="test passed")
        assert not result.ok
        assert engine.document.find("F001").state == EntryState.CLAIMED

    @pytest.mark.asyncio
    async def test_verify_uses_collector(self, document, clock, config):
        collector = EvidenceCollector(config)
        collector.collect = AsyncMock(return_value=EvidenceResult(
            success=True,
            method="Executed test: tests/test_f001.py",
            evidence="1 passed",
            evidence_fingerprint="sha256:0123456789abcdef",
        ))
        engine = LifecycleEngine(document, collector=collector, clock=clock, config=config)
        _claimed(engine)

        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER)

        assert result.ok
        assert result.evidence.success
        verification = engine.document.find("F001").status.verification
        assert verification.method == "Executed test: tests/test_f001.py"
        assert verification.evidence_fingerprint == "sha256:0123456789abcdef"

    @pytest.mark.asyncio
    async def test_failed_collection_leaves_entry_claimed(self, document, clock, config):
        collector = EvidenceCollector(config)
        collector.collect = AsyncMock(return_value=EvidenceResult.failure("Test failed with exit code 1"))
        engine = LifecycleEngine(document, collector=collector, clock=clock, config=config)
        _claimed(engine)

        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER)

        assert not result.ok
        assert isinstance(result.violation, EvidenceFailure)
        assert "exit code 1" in result.reason
        assert engine.document.find("F001").state == EntryState.CLAIMED

    @pytest.mark.asyncio
    async def test_manual_evidence_type_never_self_verifies(self, spec_factory, entry_factory, clock, config):
        document = FailureSpecDocument.from_dict(spec_factory(entry_factory(evidence_type="manual")))
        engine = LifecycleEngine(document, clock=clock, config=config)
        _claimed(engine)

        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER)
        assert not result.ok
        assert "human verification" in result.reason


class TestReject:
    """Tests for rejection"""

    def test_scenario_reject(self, engine):
        """F002 claimed -> reject -> unaddressed, guardrail kept"""
        _claimed(engine, "F002")
        result = engine.reject("F002", reason="bypass still works", actor="carol", role=Role.VERIFIER)

        assert result.ok
        assert result.to_state == EntryState.UNADDRESSED
        status = engine.document.find("F002").status
        assert status.state == EntryState.UNADDRESSED
        assert status.rejection.reason == "bypass still works"
        assert status.rejection.rejected_by == "carol"
        assert status.guardrail.design == "HMAC signature check"
        assert [h.to_state for h in status.history][-2:] == ["rejected", "unaddressed"]

    def test_reject_requires_reason(self, engine):
        _claimed(engine)
        result = engine.reject("F001", reason=" ", actor="carol", role=Role.VERIFIER)
        assert not result.ok
        assert engine.document.find("F001").state == EntryState.CLAIMED

    def test_reject_only_claimed(self, engine):
        result = engine.reject("F001", reason="nope", actor="carol", role=Role.VERIFIER)
        assert not result.ok

    def test_rejected_entry_can_be_claimed_again(self, engine):
        _claimed(engine)
        engine.reject("F001", reason="bypass still works", actor="carol", role=Role.VERIFIER)
        result = engine.claim("F001", design="Constant-time compare", location="src/webhook.py:30",
                              actor="bob", role=Role.BUILDER)
        assert result.ok
        status = engine.document.find("F001").status
        assert status.guardrail.design == "Constant-time compare"
        assert status.rejection.reason == "bypass still works"


class TestAcceptRisk:
    """Tests for risk acceptance"""

    def test_human_acceptance(self, engine):
        result = engine.accept_risk("F001", reason="Internal-only endpoint", accepted_by="alice@example.com",
                                    role=Role.RESOLVER, review_by="2026-06-30")
        assert result.ok
        acceptance = engine.document.find("F001").status.risk_acceptance
        assert acceptance.accepted_by == "alice@example.com"
        assert acceptance.review_by == "2026-06-30"
        assert acceptance.accepted_at == FIXED_TIMESTAMP

    @pytest.mark.parametrize("identity", ["agent-007", "ReviewBot", "Claude", "gpt-4o", "my-assistant"])
    def test_automated_identity_rejected(self, engine, identity):
        result = engine.accept_risk("F001", reason="fine", accepted_by=identity, role=Role.RESOLVER)
        assert not result.ok
        assert isinstance(result.violation, AuthorityViolation)
        assert engine.document.find("F001").state == EntryState.UNADDRESSED

    def test_requires_resolver_role(self, engine):
        result = engine.accept_risk("F001", reason="fine", accepted_by="alice@example.com", role=Role.BUILDER)
        assert not result.ok
        assert isinstance(result.violation, GuardViolation)

    def test_requires_reason(self, engine):
        result = engine.accept_risk("F001", reason="", accepted_by="alice@example.com", role=Role.RESOLVER)
        assert not result.ok

    @pytest.mark.asyncio
    async def test_terminal_entry_cannot_accept_risk(self, engine):
        _claimed(engine)
        await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="test passed")
        result = engine.accept_risk("F001", reason="fine", accepted_by="alice@example.com", role=Role.RESOLVER)
        assert not result.ok
        assert engine.document.find("F001").state == EntryState.VERIFIED

    def test_from_claimed(self, engine):
        _claimed(engine)
        result = engine.accept_risk("F001", reason="Compensating control upstream",
                                    accepted_by="alice@example.com", role=Role.RESOLVER)
        assert result.ok


class TestCompletion:
    """Tests for the completion query"""

    @pytest.mark.asyncio
    async def test_complete_once_critical_resolved(self, engine):
        assert not is_complete(engine.document)
        assert [e.id for e in blocking_entries(engine.document)] == ["F001"]

        engine.start("F001", actor="bob", role=Role.BUILDER)
        assert not is_complete(engine.document)
        _claimed(engine)
        assert not is_complete(engine.document)

        await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="test passed")
        # F002 is low severity and still unaddressed
        assert is_complete(engine.document)

    def test_accepted_risk_counts_as_resolved(self, engine):
        engine.accept_risk("F001", reason="Accepted", accepted_by="alice@example.com", role=Role.RESOLVER)
        assert is_complete(engine.document)


class TestFrozenDocument:
    """Status writes on frozen documents"""

    @pytest.fixture
    def frozen(self, document, clock):
        result = FreezeManager(clock=clock).freeze(document, fingerprint="abc123")
        assert result.ok
        return result.document

    @pytest.mark.asyncio
    async def test_status_changes_allowed_after_freeze(self, frozen, clock, config):
        engine = LifecycleEngine(frozen, clock=clock, config=config)
        _claimed(engine)
        result = await engine.verify("F001", actor="carol", role=Role.VERIFIER, evidence="test passed")
        assert result.ok

    def test_tampered_document_refuses_status_writes(self, frozen, clock, config):
        frozen.find("F001").title = "Quietly renamed"
        engine = LifecycleEngine(frozen, clock=clock, config=config)

        result = engine.start("F001", actor="bob", role=Role.BUILDER)

        assert not result.ok
        assert isinstance(result.violation, ImmutabilityViolation)
        assert frozen.find("F001").state == EntryState.UNADDRESSED


class TestVerifyAll:
    """Tests for the batch verification run"""

    @pytest.mark.asyncio
    async def test_batch_summary(self, document, clock, config):
        collector = EvidenceCollector(config)
        collector.collect = AsyncMock(return_value=EvidenceResult.failure("No test artifact found for F001"))
        engine = LifecycleEngine(document, collector=collector, clock=clock, config=config)
        _claimed(engine, "F001")

        report = await engine.verify_all(actor="carol")

        summary = report.to_dict()["summary"]
        assert summary == {"total": 2, "verified": 0, "failed": 1, "skipped": 1}
        skipped = [r for r in report.results if r.get("skipped")]
        assert skipped[0]["failure_id"] == "F002"
        failed = [r for r in report.results if r.get("verified") is False]
        assert "No test artifact" in failed[0]["rejection_reason"]

    @pytest.mark.asyncio
    async def test_batch_single_entry(self, document, clock, config):
        collector = EvidenceCollector(config)
        collector.collect = AsyncMock(return_value=EvidenceResult(
            success=True, method="Code review: src/webhook.py", evidence="hmac.compare_digest(...)",
            evidence_fingerprint="sha256:aaaaaaaaaaaaaaaa",
        ))
        engine = LifecycleEngine(document, collector=collector, clock=clock, config=config)
        _claimed(engine, "F002")

        report = await engine.verify_all(actor="carol", entry_id="f002")

        assert report.total == 1
        assert report.verified == 1
        assert engine.document.find("F002").state == EntryState.VERIFIED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
