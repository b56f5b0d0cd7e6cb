"""
FailureSpec Validator

Entry point for schema and semantic validation. A document is valid iff
the returned report has no errors. Never raises on malformed input.
"""

import logging
from typing import Any

from .lint import check_frozen_drift, lint
from .schema import ValidationReport, check_document, check_entry, check_unique_ids

logger = logging.getLogger(__name__)


def validate(spec: Any, lint_checks: bool = True) -> ValidationReport:
    """
    Validate a raw FailureSpec document.

    Args:
        spec: Parsed document (normally a dict loaded from JSON/YAML)
        lint_checks: Include advisory lint warnings and the frozen digest check

    Returns:
        ValidationReport with errors and warnings
    """
    report = ValidationReport()

    check_document(spec, report)

    if isinstance(spec, dict) and isinstance(spec.get("failures"), list):
        for i, failure in enumerate(spec["failures"]):
            check_entry(failure, f"failures[{i}]", report)
    check_unique_ids(spec, report)

    if lint_checks:
        lint(spec, report)
        check_frozen_drift(spec, report)

    logger.debug(
        f"Validation finished: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
    )
    return report


def validate_entry(entry: Any, path: str = "entry") -> ValidationReport:
    """Structural checks for a single entry"""
    report = ValidationReport()
    check_entry(entry, path, report)
    return report
