"""
FailureSpec Document Model

Typed view of the persisted FailureSpec and discovery records. Raw input
goes through the schema validator first; ``from_dict`` assumes a document
that already validated and only fills defaults for optional fields.
"""

import copy
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .main import (
    SPEC_VERSION,
    Disposition,
    EntryState,
    EvidenceType,
    Ownership,
    Severity,
)


# Fields frozen by the freeze operation
STRUCTURAL_FIELDS = ("id", "title", "severity", "oracle", "repro", "evidence_requirement")

# Optional descriptive fields carried verbatim
OPTIONAL_FIELDS = (
    "impact",
    "likelihood",
    "blast_radius",
    "verification_ease",
    "category",
    "detection",
)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Oracle:
    """Testable condition that defines fixed"""
    condition: str
    falsifiable: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Oracle":
        return cls(condition=data.get("condition", ""), falsifiable=bool(data.get("falsifiable", True)))

    def to_dict(self) -> Dict[str, Any]:
        return {"condition": self.condition, "falsifiable": self.falsifiable}


@dataclass
class Repro:
    """Reproduction recipe"""
    steps: List[str]
    expected_if_vulnerable: str
    preconditions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Repro":
        return cls(
            steps=list(data.get("steps") or []),
            expected_if_vulnerable=data.get("expected_if_vulnerable", ""),
            preconditions=list(data.get("preconditions") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preconditions": list(self.preconditions),
            "steps": list(self.steps),
            "expected_if_vulnerable": self.expected_if_vulnerable,
        }


@dataclass
class EvidenceRequirement:
    """What proof a verifier must observe"""
    type: str
    criteria: str

    @property
    def evidence_type(self) -> Optional[EvidenceType]:
        return EvidenceType.parse(self.type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvidenceRequirement":
        return cls(type=data.get("type", "manual"), criteria=data.get("criteria", ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "criteria": self.criteria}


@dataclass
class Guardrail:
    """The implemented mitigation and where it lives"""
    design: str
    location: str
    implemented_by: str
    implemented_at: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Guardrail":
        return cls(
            design=data.get("design", ""),
            location=data.get("location", ""),
            implemented_by=data.get("implemented_by", ""),
            implemented_at=data.get("implemented_at", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "design": self.design,
            "location": self.location,
            "implemented_by": self.implemented_by,
            "implemented_at": self.implemented_at,
        }


@dataclass
class Verification:
    """Evidence bound to a verified claim"""
    method: str
    evidence: str
    evidence_fingerprint: Optional[str]
    verified_by: str
    verified_at: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Verification":
        return cls(
            method=data.get("method", ""),
            evidence=data.get("evidence", ""),
            evidence_fingerprint=data.get("evidence_fingerprint") or data.get("evidence_hash"),
            verified_by=data.get("verified_by", ""),
            verified_at=data.get("verified_at", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "evidence": self.evidence,
            "evidence_fingerprint": self.evidence_fingerprint,
            "verified_by": self.verified_by,
            "verified_at": self.verified_at,
        }


@dataclass
class RiskAcceptance:
    """Human decision to live with a failure mode"""
    reason: str
    accepted_by: str
    accepted_at: str
    review_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskAcceptance":
        return cls(
            reason=data.get("reason", ""),
            accepted_by=data.get("accepted_by", ""),
            accepted_at=data.get("accepted_at", ""),
            review_by=data.get("review_by"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "accepted_by": self.accepted_by,
            "accepted_at": self.accepted_at,
            "review_by": self.review_by,
        }


@dataclass
class Rejection:
    """Why a claimed fix was sent back"""
    reason: str
    rejected_by: str
    rejected_at: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rejection":
        return cls(
            reason=data.get("reason", ""),
            rejected_by=data.get("rejected_by", ""),
            rejected_at=data.get("rejected_at", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "rejected_by": self.rejected_by,
            "rejected_at": self.rejected_at,
        }


@dataclass
class TransitionRecord:
    """One appended step of an entry's history"""
    from_state: str
    to_state: str
    actor: str
    role: str
    at: str
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransitionRecord":
        return cls(
            from_state=data.get("from_state", ""),
            to_state=data.get("to_state", ""),
            actor=data.get("actor", ""),
            role=data.get("role", ""),
            at=data.get("at", ""),
            note=data.get("note"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "from_state": self.from_state,
            "to_state": self.to_state,
            "actor": self.actor,
            "role": self.role,
            "at": self.at,
            "note": self.note,
        })


@dataclass
class StatusRecord:
    """Mutable part of an entry; the only part writable after freeze"""
    state: EntryState = EntryState.UNADDRESSED
    guardrail: Optional[Guardrail] = None
    verification: Optional[Verification] = None
    risk_acceptance: Optional[RiskAcceptance] = None
    rejection: Optional[Rejection] = None
    history: List[TransitionRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StatusRecord":
        data = data or {}
        return cls(
            state=EntryState(data.get("state", EntryState.UNADDRESSED.value)),
            guardrail=Guardrail.from_dict(data["guardrail"]) if data.get("guardrail") else None,
            verification=Verification.from_dict(data["verification"]) if data.get("verification") else None,
            risk_acceptance=(
                RiskAcceptance.from_dict(data["risk_acceptance"]) if data.get("risk_acceptance") else None
            ),
            rejection=Rejection.from_dict(data["rejection"]) if data.get("rejection") else None,
            history=[TransitionRecord.from_dict(h) for h in data.get("history") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"state": self.state.value}
        if self.guardrail:
            result["guardrail"] = self.guardrail.to_dict()
        if self.verification:
            result["verification"] = self.verification.to_dict()
        if self.risk_acceptance:
            result["risk_acceptance"] = self.risk_acceptance.to_dict()
        if self.rejection:
            result["rejection"] = self.rejection.to_dict()
        if self.history:
            result["history"] = [h.to_dict() for h in self.history]
        return result


@dataclass
class FailureEntry:
    """One discrete failure mode"""
    id: str
    title: str
    severity: Severity
    oracle: Oracle
    repro: Repro
    evidence_requirement: EvidenceRequirement
    status: StatusRecord = field(default_factory=StatusRecord)
    ownership: Ownership = Ownership.OWNED
    inherited_from: Optional[str] = None
    impact: Any = None
    likelihood: Optional[str] = None
    blast_radius: Optional[str] = None
    verification_ease: Optional[str] = None
    category: Optional[str] = None
    detection: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> EntryState:
        return self.status.state

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureEntry":
        requirement = data.get("evidence_requirement", data.get("evidence")) or {}
        known = set(STRUCTURAL_FIELDS) | set(OPTIONAL_FIELDS) | {
            "evidence", "status", "ownership", "inherited_from",
        }
        return cls(
            id=data["id"],
            title=data["title"],
            severity=Severity(data["severity"]),
            oracle=Oracle.from_dict(data.get("oracle") or {}),
            repro=Repro.from_dict(data.get("repro") or {}),
            evidence_requirement=EvidenceRequirement.from_dict(requirement),
            status=StatusRecord.from_dict(data.get("status")),
            ownership=Ownership(data.get("ownership") or Ownership.OWNED.value),
            inherited_from=data.get("inherited_from"),
            impact=data.get("impact"),
            likelihood=data.get("likelihood"),
            blast_radius=data.get("blast_radius"),
            verification_ease=data.get("verification_ease"),
            category=data.get("category"),
            detection=data.get("detection"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )

    def structural_dict(self) -> Dict[str, Any]:
        """Fields that become immutable once the document is frozen"""
        return {
            "id": self.id,
            "title": self.title,
            "severity": self.severity.value,
            "oracle": self.oracle.to_dict(),
            "repro": self.repro.to_dict(),
            "evidence_requirement": self.evidence_requirement.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        result = self.structural_dict()
        for name in OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = copy.deepcopy(value)
        result["ownership"] = self.ownership.value
        if self.inherited_from is not None:
            result["inherited_from"] = self.inherited_from
        result.update(copy.deepcopy(self.extra))
        result["status"] = self.status.to_dict()
        return result


@dataclass
class SpecMetadata:
    """Document-level metadata"""
    feature: str
    created_by: str
    frozen_at: Optional[str] = None
    frozen_fingerprint: Optional[str] = None
    frozen_digest: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_frozen(self) -> bool:
        return bool(self.frozen_at)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpecMetadata":
        known = {"feature", "created_by", "frozen_at", "frozen_fingerprint", "frozen_commit", "frozen_digest"}
        return cls(
            feature=data.get("feature", ""),
            created_by=data.get("created_by", ""),
            frozen_at=data.get("frozen_at"),
            frozen_fingerprint=data.get("frozen_fingerprint") or data.get("frozen_commit"),
            frozen_digest=data.get("frozen_digest"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "feature": self.feature,
            "created_by": self.created_by,
            "frozen_at": self.frozen_at,
            "frozen_fingerprint": self.frozen_fingerprint,
        }
        if self.frozen_digest:
            result["frozen_digest"] = self.frozen_digest
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass
class FailureSpecDocument:
    """The FailureSpec: metadata plus ordered failure entries"""
    metadata: SpecMetadata
    failures: List[FailureEntry] = field(default_factory=list)
    version: str = SPEC_VERSION
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_frozen(self) -> bool:
        return self.metadata.is_frozen

    def find(self, entry_id: str) -> Optional[FailureEntry]:
        """Look up an entry by id (case-insensitive)"""
        wanted = (entry_id or "").upper()
        for entry in self.failures:
            if entry.id == wanted:
                return entry
        return None

    def index_of(self, entry_id: str) -> int:
        wanted = (entry_id or "").upper()
        for i, entry in enumerate(self.failures):
            if entry.id == wanted:
                return i
        return -1

    def copy(self) -> "FailureSpecDocument":
        return copy.deepcopy(self)

    @classmethod
    def new(cls, feature: str, created_by: str) -> "FailureSpecDocument":
        return cls(metadata=SpecMetadata(feature=feature, created_by=created_by))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureSpecDocument":
        known = {"version", "metadata", "failures"}
        return cls(
            version=data.get("version", SPEC_VERSION),
            metadata=SpecMetadata.from_dict(data.get("metadata") or {}),
            failures=[FailureEntry.from_dict(f) for f in data.get("failures") or []],
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = copy.deepcopy(self.extra)
        result["version"] = self.version
        result["metadata"] = self.metadata.to_dict()
        result["failures"] = [f.to_dict() for f in self.failures]
        return result


@dataclass
class DiscoveryEntry:
    """A failure found after freeze, tracked outside the spec"""
    id: str
    description: str
    discovered_by: str
    discovered_at: str
    disposition: Disposition = Disposition.PENDING
    decided_by: Optional[str] = None
    decided_at: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscoveryEntry":
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            discovered_by=data.get("discovered_by", ""),
            discovered_at=data.get("discovered_at", ""),
            disposition=Disposition(data.get("disposition", Disposition.PENDING.value)),
            decided_by=data.get("decided_by"),
            decided_at=data.get("decided_at"),
            note=data.get("note"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "description": self.description,
            "discovered_by": self.discovered_by,
            "discovered_at": self.discovered_at,
            "disposition": self.disposition.value,
            "decided_by": self.decided_by,
            "decided_at": self.decided_at,
            "note": self.note,
        })


def content_fingerprint(content: Any) -> str:
    """Fixed-length content hash, ``sha256:`` plus 16 hex chars"""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return "sha256:" + hashlib.sha256(content).hexdigest()[:16]


def structural_digest(document: FailureSpecDocument) -> str:
    """Digest of every entry's structural fields, in declaration order"""
    payload = [entry.structural_dict() for entry in document.failures]
    return content_fingerprint(json.dumps(payload, sort_keys=True, separators=(",", ":")))
