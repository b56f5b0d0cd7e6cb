"""
Advisory Lint Checks

Style and consistency findings, reported as warnings.
"""

import logging
from typing import Any

from ..main import ASSERTION_PHRASES
from .schema import ValidationReport

logger = logging.getLogger(__name__)


def lint(spec: Any, report: ValidationReport) -> None:
    """Run lint checks on a raw document"""
    if not isinstance(spec, dict) or not isinstance(spec.get("failures"), list):
        return

    titles = set()

    for i, failure in enumerate(spec["failures"]):
        if not isinstance(failure, dict):
            continue
        prefix = f"failures[{i}]"

        title = failure.get("title")
        if isinstance(title, str) and title:
            if title.lower() in titles:
                report.warn(f"{prefix}.title", f"Possible duplicate title: {title}")
            titles.add(title.lower())

        severity = failure.get("severity")
        if severity in ("critical", "high"):
            if not failure.get("impact"):
                report.warn(f"{prefix}.impact", f"{severity} severity failure should have impact defined")
            if not failure.get("detection"):
                report.warn(f"{prefix}.detection", f"{severity} severity failure should have detection defined")

        key = "evidence_requirement" if "evidence_requirement" in failure else "evidence"
        requirement = failure.get(key)
        criteria = requirement.get("criteria") if isinstance(requirement, dict) else None
        if isinstance(criteria, str):
            lowered = criteria.lower()
            if any(phrase in lowered for phrase in ASSERTION_PHRASES):
                report.warn(
                    f"{prefix}.{key}.criteria",
                    "Evidence criteria appears to be an assertion, not observable behavior",
                )

    metadata = spec.get("metadata")
    if isinstance(metadata, dict) and metadata.get("frozen_at"):
        report.warn(
            "metadata",
            f"Spec is frozen as of {metadata['frozen_at']}. Modifications should go to discoveries.",
        )


def check_frozen_drift(spec: Any, report: ValidationReport) -> None:
    """
    Compare a frozen document's structure with the digest taken at freeze.

    Only meaningful once the structural checks passed, since the digest is
    computed over the typed model.
    """
    from ..document import FailureSpecDocument, structural_digest

    if not report.valid or not isinstance(spec, dict):
        return
    metadata = spec.get("metadata") or {}
    expected = metadata.get("frozen_digest")
    if not metadata.get("frozen_at") or not expected:
        return

    try:
        actual = structural_digest(FailureSpecDocument.from_dict(spec))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        report.error("metadata.frozen_digest", f"Cannot compute structural digest: {e}")
        return
    if actual != expected:
        logger.warning(f"Frozen spec drifted: {expected} -> {actual}")
        report.warn(
            "metadata.frozen_digest",
            f"Structural fields changed after freeze (frozen {expected}, now {actual}). "
            "Revert the edit and log it with `ffh discover` instead.",
        )
