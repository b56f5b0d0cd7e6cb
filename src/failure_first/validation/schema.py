"""
Structural Schema Checks

Must-pass checks for a raw FailureSpec. Every check tolerates arbitrary
input: a wrong type is reported as an error, never raised.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from ..main import (
    SPEC_VERSION,
    VAGUE_ORACLE_PHRASES,
    EntryState,
    EvidenceType,
    Ownership,
    Severity,
)

ENTRY_ID_PATTERN = re.compile(r"^F\d{3}$")
MAX_TITLE_LENGTH = 80

VALID_SEVERITIES = [s.value for s in Severity]
VALID_STATES = [s.value for s in EntryState]
VALID_EVIDENCE_TYPES = [t.value for t in EvidenceType]
VALID_OWNERSHIP = [o.value for o in Ownership]

STATUS_RECORDS = ("guardrail", "verification", "risk_acceptance", "rejection")


@dataclass
class ValidationIssue:
    """A single finding, addressed by a dotted path"""
    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class ValidationReport:
    """Errors block, warnings advise"""
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, path: str, message: str) -> None:
        self.errors.append(ValidationIssue(path, message))

    def warn(self, path: str, message: str) -> None:
        self.warnings.append(ValidationIssue(path, message))

    def merge(self, other: "ValidationReport") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def check_document(spec: Any, report: ValidationReport) -> None:
    """Top-level fields: version, metadata, failures"""
    if not isinstance(spec, dict):
        report.error("", "Document must be an object")
        return

    version = spec.get("version")
    if _is_blank(version):
        report.error("version", "Missing required field: version")
    elif version != SPEC_VERSION:
        report.error("version", f'Invalid version: {version} (expected "{SPEC_VERSION}")')

    metadata = spec.get("metadata")
    if metadata is None:
        report.error("metadata", "Missing required field: metadata")
    elif not isinstance(metadata, dict):
        report.error("metadata", "metadata must be an object")
    else:
        if _is_blank(metadata.get("feature")):
            report.error("metadata.feature", "Missing required field: feature")
        if _is_blank(metadata.get("created_by")):
            report.error("metadata.created_by", "Missing required field: created_by")

    failures = spec.get("failures")
    if failures is None:
        report.error("failures", "Missing required field: failures")
    elif not isinstance(failures, list):
        report.error("failures", "failures must be an array")



def check_unique_ids(spec: Any, report: ValidationReport) -> None:
    """An id must address exactly one entry"""
    if not isinstance(spec, dict) or not isinstance(spec.get("failures"), list):
        return

    seen = set()
    for i, failure in enumerate(spec["failures"]):
        entry_id = failure.get("id") if isinstance(failure, dict) else None
        if not isinstance(entry_id, str) or not entry_id:
            continue
        if entry_id in seen:
            report.error(f"failures[{i}].id", f"Duplicate failure ID: {entry_id}")
        seen.add(entry_id)


def check_entry(failure: Any, prefix: str, report: ValidationReport) -> None:
    """Per-entry structural checks"""
    if not isinstance(failure, dict):
        report.error(prefix, "Failure entry must be an object")
        return

    # Identity
    entry_id = failure.get("id")
    if _is_blank(entry_id):
        report.error(f"{prefix}.id", "Missing required field: id")
    elif not isinstance(entry_id, str) or not ENTRY_ID_PATTERN.match(entry_id):
        report.error(f"{prefix}.id", f"Invalid id format: {entry_id} (expected F001, F002, etc.)")

    title = failure.get("title")
    if _is_blank(title):
        report.error(f"{prefix}.title", "Missing required field: title")
    elif not isinstance(title, str):
        report.error(f"{prefix}.title", "title must be a string")
    elif len(title) > MAX_TITLE_LENGTH:
        report.error(f"{prefix}.title", f"Title too long: {len(title)} chars (max {MAX_TITLE_LENGTH})")

    severity = failure.get("severity")
    if _is_blank(severity):
        report.error(f"{prefix}.severity", "Missing required field: severity")
    elif severity not in VALID_SEVERITIES:
        report.error(f"{prefix}.severity", f"Invalid severity: {severity}")

    _check_oracle(failure.get("oracle"), prefix, report)
    _check_repro(failure.get("repro"), prefix, report)

    # Legacy documents call this block "evidence"
    key = "evidence_requirement" if "evidence_requirement" in failure else "evidence"
    _check_evidence_requirement(failure.get(key), f"{prefix}.{key}", report)

    _check_status(failure.get("status"), prefix, report)

    ownership = failure.get("ownership")
    if ownership is not None and ownership not in VALID_OWNERSHIP:
        report.error(f"{prefix}.ownership", f"Invalid ownership: {ownership}")
    if ownership == Ownership.INHERITED.value and _is_blank(failure.get("inherited_from")):
        report.error(f"{prefix}.inherited_from", 'Ownership is "inherited" but inherited_from is missing')


def _check_oracle(oracle: Any, prefix: str, report: ValidationReport) -> None:
    if oracle is None:
        report.error(f"{prefix}.oracle", "Missing required field: oracle")
        return
    if not isinstance(oracle, dict):
        report.error(f"{prefix}.oracle", "oracle must be an object")
        return

    condition = oracle.get("condition")
    if _is_blank(condition):
        report.error(f"{prefix}.oracle.condition", "Missing required field: condition")
    elif not isinstance(condition, str):
        report.error(f"{prefix}.oracle.condition", "condition must be a string")
    else:
        lowered = condition.lower()
        for phrase in VAGUE_ORACLE_PHRASES:
            if phrase in lowered:
                report.error(
                    f"{prefix}.oracle.condition",
                    f'Condition is too vague: "{condition}". Must be testable.',
                )
                break

    if "falsifiable" not in oracle or oracle.get("falsifiable") is None:
        report.error(f"{prefix}.oracle.falsifiable", "Missing required field: falsifiable")
    elif not isinstance(oracle.get("falsifiable"), bool):
        report.error(f"{prefix}.oracle.falsifiable", "falsifiable must be true or false")


def _check_repro(repro: Any, prefix: str, report: ValidationReport) -> None:
    if repro is None:
        report.error(f"{prefix}.repro", "Missing required field: repro")
        return
    if not isinstance(repro, dict):
        report.error(f"{prefix}.repro", "repro must be an object")
        return

    steps = repro.get("steps")
    if not isinstance(steps, list) or not steps:
        report.error(f"{prefix}.repro.steps", "repro.steps must be a non-empty array")

    preconditions = repro.get("preconditions")
    if preconditions is not None and not isinstance(preconditions, list):
        report.error(f"{prefix}.repro.preconditions", "repro.preconditions must be an array")

    if _is_blank(repro.get("expected_if_vulnerable")):
        report.error(
            f"{prefix}.repro.expected_if_vulnerable",
            "Missing required field: expected_if_vulnerable",
        )


def _check_evidence_requirement(requirement: Any, path: str, report: ValidationReport) -> None:
    if requirement is None:
        report.error(path, "Missing required field: evidence_requirement")
        return
    if not isinstance(requirement, dict):
        report.error(path, "evidence_requirement must be an object")
        return

    evidence_type = requirement.get("type")
    if _is_blank(evidence_type):
        report.error(f"{path}.type", "Missing required field: type")
    elif evidence_type not in VALID_EVIDENCE_TYPES:
        report.error(f"{path}.type", f"Invalid evidence type: {evidence_type}")

    if _is_blank(requirement.get("criteria")):
        report.error(f"{path}.criteria", "Missing required field: criteria")


def _check_status(status: Any, prefix: str, report: ValidationReport) -> None:
    if status is None:
        return
    if not isinstance(status, dict):
        report.error(f"{prefix}.status", "status must be an object")
        return

    malformed = _check_status_records(status, prefix, report)

    state = status.get("state")
    if _is_blank(state):
        report.error(f"{prefix}.status.state", "Missing required field: state")
        return
    if state not in VALID_STATES:
        report.error(f"{prefix}.status.state", f"Invalid state: {state}")
        return

    needs_guardrail = state in (EntryState.CLAIMED.value, EntryState.VERIFIED.value)
    if needs_guardrail and "guardrail" not in malformed:
        guardrail = status.get("guardrail")
        if not isinstance(guardrail, dict):
            report.error(f"{prefix}.status.guardrail", f'State is "{state}" but guardrail is missing')
        else:
            for name in ("design", "location", "implemented_by", "implemented_at"):
                if _is_blank(guardrail.get(name)):
                    report.error(f"{prefix}.status.guardrail.{name}", f"guardrail must include {name}")

    if state == EntryState.VERIFIED.value and "verification" not in malformed:
        verification = status.get("verification")
        if not isinstance(verification, dict):
            report.error(f"{prefix}.status.verification", 'State is "verified" but verification is missing')
        elif _is_blank(verification.get("evidence")):
            report.error(f"{prefix}.status.verification.evidence", "Verification must include evidence")

    if state == EntryState.ACCEPTED_RISK.value and "risk_acceptance" not in malformed:
        acceptance = status.get("risk_acceptance")
        if not isinstance(acceptance, dict):
            report.error(
                f"{prefix}.status.risk_acceptance",
                'State is "accepted_risk" but risk_acceptance is missing',
            )
        elif _is_blank(acceptance.get("accepted_by")):
            report.error(
                f"{prefix}.status.risk_acceptance.accepted_by",
                "risk_acceptance must include accepted_by",
            )


def _check_status_records(status: Dict[str, Any], prefix: str, report: ValidationReport) -> Set[str]:
    """Shape checks for the optional status sub-records; returns the malformed names"""
    malformed = set()
    for name in STATUS_RECORDS:
        record = status.get(name)
        if record is not None and not isinstance(record, dict):
            report.error(f"{prefix}.status.{name}", f"{name} must be an object")
            malformed.add(name)

    history = status.get("history")
    if history is None:
        return malformed
    if not isinstance(history, list):
        report.error(f"{prefix}.status.history", "history must be an array")
        malformed.add("history")
        return malformed
    for i, step in enumerate(history):
        if not isinstance(step, dict):
            report.error(f"{prefix}.status.history[{i}]", "history entries must be objects")
            malformed.add("history")
    return malformed
