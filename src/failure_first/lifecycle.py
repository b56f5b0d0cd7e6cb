"""
Lifecycle Engine

Per-entry state machine:

  UNADDRESSED -> IN_PROGRESS -> CLAIMED -> VERIFIED
                                CLAIMED -> REJECTED -> UNADDRESSED
  any non-terminal state -> ACCEPTED_RISK (human resolver only)

Roles are tags checked against TRANSITIONS. Every operation works on a
copy of the status record and commits it through the document guard, so
a rejected operation leaves the document untouched. Rejections come back
as TransitionResult objects carrying the violation; they are not raised.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .document import (
    FailureEntry,
    FailureSpecDocument,
    Guardrail,
    Rejection,
    RiskAcceptance,
    StatusRecord,
    TransitionRecord,
    Verification,
    content_fingerprint,
)
from .errors import (
    AuthorityViolation,
    EvidenceFailure,
    GuardViolation,
    HarnessViolation,
    SchemaError,
)
from .evidence import EvidenceCollector, EvidenceResult
from .guard import DocumentGuard
from .logging_config import entry_logger
from .main import (
    Clock,
    EntryState,
    HarnessConfig,
    Role,
    Severity,
    contains_assertion,
    is_automated_identity,
    timestamp,
)

logger = logging.getLogger(__name__)


# Allowed (from, to) pairs and the role that may perform them.
# ACCEPTED_RISK is reachable from every non-terminal state by the resolver.
TRANSITIONS: Dict[Tuple[EntryState, EntryState], Role] = {
    (EntryState.UNADDRESSED, EntryState.IN_PROGRESS): Role.BUILDER,
    (EntryState.IN_PROGRESS, EntryState.CLAIMED): Role.BUILDER,
    (EntryState.CLAIMED, EntryState.VERIFIED): Role.VERIFIER,
    (EntryState.CLAIMED, EntryState.REJECTED): Role.VERIFIER,
    (EntryState.REJECTED, EntryState.UNADDRESSED): Role.VERIFIER,
}
RISK_ACCEPTANCE_ROLE = Role.RESOLVER


def check_transition(from_state: EntryState, to_state: EntryState, role: Role) -> None:
    """Raise GuardViolation unless role may move an entry from_state -> to_state"""
    rule = f"transition.{from_state.value}->{to_state.value}"

    if to_state == EntryState.ACCEPTED_RISK:
        if from_state.is_terminal:
            raise GuardViolation(rule, f"{from_state.value} is terminal; risk can no longer be accepted")
        required = RISK_ACCEPTANCE_ROLE
    else:
        required = TRANSITIONS.get((from_state, to_state))
        if required is None:
            raise GuardViolation(rule, f"Cannot move an entry from {from_state.value} to {to_state.value}")

    if role != required:
        raise GuardViolation(
            f"{rule}.role",
            f"{from_state.value} -> {to_state.value} requires the {required.value} role (got {role.value})",
        )


@dataclass
class TransitionResult:
    """Outcome of a lifecycle operation"""
    ok: bool
    entry_id: str
    from_state: Optional[EntryState] = None
    to_state: Optional[EntryState] = None
    violation: Optional[HarnessViolation] = None
    evidence: Optional[EvidenceResult] = None

    @property
    def reason(self) -> str:
        if self.violation is not None:
            return self.violation.reason
        return f"{self.entry_id}: {self.from_state.value} -> {self.to_state.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "entry_id": self.entry_id,
            "from_state": self.from_state.value if self.from_state else None,
            "to_state": self.to_state.value if self.to_state else None,
            "violation": self.violation.to_dict() if self.violation else None,
            "evidence": self.evidence.to_dict() if self.evidence else None,
        }


@dataclass
class VerificationRunReport:
    """Result of verifying every claimed entry"""
    feature: str
    timestamp: str
    results: List[Dict[str, Any]] = field(default_factory=list)
    verified: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.verified + self.failed + self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "timestamp": self.timestamp,
            "summary": {
                "total": self.total,
                "verified": self.verified,
                "failed": self.failed,
                "skipped": self.skipped,
            },
            "results": self.results,
        }


def is_complete(document: FailureSpecDocument) -> bool:
    """True iff every critical entry is verified or accepted_risk"""
    return not blocking_entries(document)


def blocking_entries(document: FailureSpecDocument) -> List[FailureEntry]:
    """Critical entries that still keep the spec from completing"""
    return [
        entry for entry in document.failures
        if entry.severity == Severity.CRITICAL and not entry.state.is_terminal
    ]


class LifecycleEngine:
    """
    Drives entries of one FailureSpecDocument through their lifecycle.

    Single writer: the engine owns the document instance it is given for
    the duration of a command.
    """

    def __init__(
        self,
        document: FailureSpecDocument,
        guard: Optional[DocumentGuard] = None,
        collector: Optional[EvidenceCollector] = None,
        clock: Optional[Clock] = None,
        config: Optional[HarnessConfig] = None,
    ):
        self.document = document
        self.config = config or HarnessConfig()
        self.guard = guard or DocumentGuard(policy=self.config.frozen_write_policy)
        self.collector = collector or EvidenceCollector(self.config)
        self._clock = clock

    # =========================================================================
    # Helpers
    # =========================================================================

    def _now(self) -> str:
        return timestamp(self._clock)

    def _require_entry(self, entry_id: str) -> FailureEntry:
        entry = self.document.find(entry_id)
        if entry is None:
            raise SchemaError("entry.not_found", f"Failure {entry_id} not found")
        return entry

    def _require_actor(self, actor: str) -> None:
        if not (actor or "").strip():
            raise GuardViolation("actor.required", "Every lifecycle operation must name its actor")

    def _record(
        self,
        status: StatusRecord,
        to_state: EntryState,
        actor: str,
        role: Role,
        at: str,
        note: Optional[str] = None,
    ) -> None:
        status.history.append(TransitionRecord(
            from_state=status.state.value,
            to_state=to_state.value,
            actor=actor,
            role=role.value,
            at=at,
            note=note,
        ))
        status.state = to_state

    def _commit(self, entry: FailureEntry, status: StatusRecord, from_state: EntryState) -> TransitionResult:
        self.guard.write_status(self.document, entry.id, status)
        last = status.history[-1] if status.history else None
        log = entry_logger(logger, entry.id, last.actor if last else None, last.role if last else None)
        log.info(f"{from_state.value} -> {status.state.value}")
        return TransitionResult(ok=True, entry_id=entry.id, from_state=from_state, to_state=status.state)

    def _rejected(
        self,
        entry_id: str,
        violation: HarnessViolation,
        evidence: Optional[EvidenceResult] = None,
    ) -> TransitionResult:
        entry = self.document.find(entry_id)
        state = entry.state if entry is not None else None
        entry_logger(logger, (entry_id or "").upper()).warning(f"rejected [{violation.rule}] {violation.reason}")
        return TransitionResult(
            ok=False,
            entry_id=(entry_id or "").upper(),
            from_state=state,
            to_state=state,
            violation=violation,
            evidence=evidence,
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self, entry_id: str, actor: str, role: Role) -> TransitionResult:
        """Builder picks up an unaddressed entry"""
        try:
            self._require_actor(actor)
            entry = self._require_entry(entry_id)
            from_state = entry.state
            check_transition(from_state, EntryState.IN_PROGRESS, role)

            status = copy.deepcopy(entry.status)
            self._record(status, EntryState.IN_PROGRESS, actor, role, self._now())
            return self._commit(entry, status, from_state)
        except HarnessViolation as v:
            return self._rejected(entry_id, v)

    def claim(
        self,
        entry_id: str,
        design: str,
        location: str,
        actor: str,
        role: Role,
    ) -> TransitionResult:
        """
        Builder claims a guardrail is in place.

        Claiming an unaddressed entry records the implicit in_progress step
        before the claim.
        """
        try:
            self._require_actor(actor)
            entry = self._require_entry(entry_id)
            from_state = entry.state
            now = self._now()
            status = copy.deepcopy(entry.status)

            if from_state == EntryState.UNADDRESSED:
                check_transition(EntryState.UNADDRESSED, EntryState.IN_PROGRESS, role)
                self._record(status, EntryState.IN_PROGRESS, actor, role, now, note="implicit start on claim")
            check_transition(status.state, EntryState.CLAIMED, role)

            missing = [name for name, value in (("design", design), ("location", location))
                       if not (value or "").strip()]
            if missing:
                raise GuardViolation(
                    "claim.guardrail",
                    f"A claim needs a fully described guardrail; missing {', '.join(missing)}",
                )

            status.guardrail = Guardrail(
                design=design.strip(),
                location=location.strip(),
                implemented_by=actor,
                implemented_at=now,
            )
            self._record(status, EntryState.CLAIMED, actor, role, now, note=f"guardrail at {location.strip()}")
            return self._commit(entry, status, from_state)
        except HarnessViolation as v:
            return self._rejected(entry_id, v)

    async def verify(
        self,
        entry_id: str,
        actor: str,
        role: Role,
        evidence: Optional[str] = None,
        method: Optional[str] = None,
        workspace: Optional[Path] = None,
    ) -> TransitionResult:
        """
        Verifier accepts a claim on the strength of evidence.

        Evidence is either supplied by the caller (non-empty, observable
        text) or collected by the evidence collector. Without evidence the
        entry stays claimed.
        """
        collected: Optional[EvidenceResult] = None
        try:
            self._require_actor(actor)
            entry = self._require_entry(entry_id)
            from_state = entry.state
            check_transition(from_state, EntryState.VERIFIED, role)

            if evidence is not None:
                text = evidence.strip()
                if not text:
                    raise EvidenceFailure("verify.evidence_empty", "Verification requires concrete, non-empty evidence")
                if contains_assertion(text):
                    raise EvidenceFailure(
                        "verify.evidence_assertion",
                        f'"{text}" is a judgment, not observable evidence; cite the test output or observation',
                    )
                method = method or "Manual verification"
                fingerprint = content_fingerprint(text)
            else:
                collected = await self.collector.collect(entry, workspace)
                if not collected.success or not (collected.evidence or "").strip():
                    raise EvidenceFailure(
                        "verify.evidence_collection",
                        collected.error or "Evidence collection produced no evidence",
                        details=collected.to_dict(),
                    )
                text = collected.evidence
                method = method or collected.method
                fingerprint = collected.evidence_fingerprint

            # The entry may not have changed while evidence was collected
            if entry.state != from_state:
                raise GuardViolation("verify.concurrent_change", f"{entry.id} changed state during verification")

            now = self._now()
            status = copy.deepcopy(entry.status)
            status.verification = Verification(
                method=method,
                evidence=text,
                evidence_fingerprint=fingerprint,
                verified_by=actor,
                verified_at=now,
            )
            self._record(status, EntryState.VERIFIED, actor, role, now, note=method)
            result = self._commit(entry, status, from_state)
            result.evidence = collected
            return result
        except HarnessViolation as v:
            return self._rejected(entry_id, v, evidence=collected)

    def reject(self, entry_id: str, reason: str, actor: str, role: Role) -> TransitionResult:
        """Verifier sends a claim back; the guardrail is kept for audit"""
        try:
            self._require_actor(actor)
            entry = self._require_entry(entry_id)
            from_state = entry.state
            check_transition(from_state, EntryState.REJECTED, role)
            if not (reason or "").strip():
                raise GuardViolation("reject.reason", "A rejection must say why the claim does not hold")

            now = self._now()
            status = copy.deepcopy(entry.status)
            status.rejection = Rejection(reason=reason.strip(), rejected_by=actor, rejected_at=now)
            self._record(status, EntryState.REJECTED, actor, role, now, note=reason.strip())
            check_transition(EntryState.REJECTED, EntryState.UNADDRESSED, role)
            self._record(status, EntryState.UNADDRESSED, actor, role, now)
            return self._commit(entry, status, from_state)
        except HarnessViolation as v:
            return self._rejected(entry_id, v)

    def accept_risk(
        self,
        entry_id: str,
        reason: str,
        accepted_by: str,
        role: Role,
        review_by: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> TransitionResult:
        """Human resolver accepts the risk of leaving an entry unfixed"""
        try:
            entry = self._require_entry(entry_id)
            from_state = entry.state
            check_transition(from_state, EntryState.ACCEPTED_RISK, role)

            missing = [name for name, value in (("reason", reason), ("accepted_by", accepted_by))
                       if not (value or "").strip()]
            if missing:
                raise GuardViolation(
                    "accept_risk.fields",
                    f"Risk acceptance requires {' and '.join(missing)}; the acceptor must be a responsible human",
                )
            if is_automated_identity(accepted_by):
                raise AuthorityViolation(
                    "accept_risk.human_only",
                    f'Risk acceptance must be by a human, not an agent ("{accepted_by}")',
                )

            now = self._now()
            status = copy.deepcopy(entry.status)
            status.risk_acceptance = RiskAcceptance(
                reason=reason.strip(),
                accepted_by=accepted_by.strip(),
                accepted_at=now,
                review_by=review_by,
            )
            self._record(status, EntryState.ACCEPTED_RISK, actor or accepted_by.strip(), role, now, note=reason.strip())
            return self._commit(entry, status, from_state)
        except HarnessViolation as v:
            return self._rejected(entry_id, v)

    # =========================================================================
    # Batch verification
    # =========================================================================

    async def verify_all(
        self,
        actor: str,
        role: Role = Role.VERIFIER,
        workspace: Optional[Path] = None,
        entry_id: Optional[str] = None,
    ) -> VerificationRunReport:
        """Collect evidence for every claimed entry (or just entry_id)"""
        report = VerificationRunReport(
            feature=self.document.metadata.feature,
            timestamp=self._now(),
        )
        entries = self.document.failures
        if entry_id is not None:
            entries = [e for e in entries if e.id == entry_id.upper()]

        for entry in entries:
            started = datetime.now()
            item: Dict[str, Any] = {
                "failure_id": entry.id,
                "failure_title": entry.title,
                "status": entry.state.value,
                "evidence_type": entry.evidence_requirement.type,
            }
            if entry.state != EntryState.CLAIMED:
                item["skipped"] = True
                item["reason"] = f'State is "{entry.state.value}", not "claimed"'
                report.skipped += 1
                report.results.append(item)
                continue

            result = await self.verify(entry.id, actor=actor, role=role, workspace=workspace)
            item["verified"] = result.ok
            if result.evidence is not None:
                item["verification_result"] = result.evidence.to_dict()
            if result.ok:
                item["verification"] = entry.status.verification.to_dict()
                report.verified += 1
            else:
                item["rejection_reason"] = result.reason
                report.failed += 1
            item["duration_ms"] = int((datetime.now() - started).total_seconds() * 1000)
            report.results.append(item)

        logger.info(
            f"Verification run: {report.verified} verified, {report.failed} failed, {report.skipped} skipped"
        )
        return report
