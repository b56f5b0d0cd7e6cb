"""
Validation System

Schema and semantic validation for FailureSpec documents. Structural
checks (including unique ids) must pass; lint checks are advisory.
"""

from .schema import (
    ENTRY_ID_PATTERN,
    VALID_EVIDENCE_TYPES,
    VALID_SEVERITIES,
    VALID_STATES,
    ValidationIssue,
    ValidationReport,
)
from .validator import validate, validate_entry

__all__ = [
    "validate",
    "validate_entry",
    "ValidationIssue",
    "ValidationReport",
    "ENTRY_ID_PATTERN",
    "VALID_EVIDENCE_TYPES",
    "VALID_SEVERITIES",
    "VALID_STATES",
]
