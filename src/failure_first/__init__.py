"""
Failure-First Harness

Governance engine for failure-first development. Failure modes are
enumerated and frozen before implementation; a fix only counts once a
verifier has bound evidence to it.

RULES:
1. After freeze, only status records change; new failures go to the discovery ledger
2. Nothing is verified without evidence
3. Risk acceptance and discovery dispositions are human decisions
4. Completion means every critical failure is verified or risk-accepted
"""

__version__ = "1.0.0"

from .main import (
    SPEC_VERSION,
    Disposition,
    EntryState,
    EvidenceType,
    FrozenWritePolicy,
    HarnessConfig,
    Ownership,
    Role,
    Severity,
)

from .errors import (
    AuthorityViolation,
    EvidenceFailure,
    GuardViolation,
    HarnessError,
    HarnessViolation,
    ImmutabilityViolation,
    SchemaError,
    StoreError,
)

from .document import (
    DiscoveryEntry,
    FailureEntry,
    FailureSpecDocument,
    StatusRecord,
    content_fingerprint,
    structural_digest,
)

from .validation import ValidationReport, validate, validate_entry
from .lifecycle import (
    LifecycleEngine,
    TransitionResult,
    VerificationRunReport,
    blocking_entries,
    is_complete,
)
from .freeze import FreezeManager, FreezeResult
from .discovery import DiscoveryLedger
from .guard import DocumentGuard
from .priority import PriorityWeights, priority_score, rank_entries
from .evidence import EvidenceCollector, EvidenceResult, EvidenceStrategy

__all__ = [
    # Types
    "SPEC_VERSION",
    "Severity",
    "EntryState",
    "Ownership",
    "Role",
    "Disposition",
    "EvidenceType",
    "FrozenWritePolicy",
    "HarnessConfig",
    # Errors
    "HarnessError",
    "HarnessViolation",
    "SchemaError",
    "GuardViolation",
    "ImmutabilityViolation",
    "EvidenceFailure",
    "AuthorityViolation",
    "StoreError",
    # Document
    "FailureSpecDocument",
    "FailureEntry",
    "StatusRecord",
    "DiscoveryEntry",
    "content_fingerprint",
    "structural_digest",
    # Validation
    "validate",
    "validate_entry",
    "ValidationReport",
    # Lifecycle
    "LifecycleEngine",
    "TransitionResult",
    "VerificationRunReport",
    "is_complete",
    "blocking_entries",
    # Freeze
    "FreezeManager",
    "FreezeResult",
    # Discoveries
    "DiscoveryLedger",
    # Guard
    "DocumentGuard",
    # Priority
    "PriorityWeights",
    "priority_score",
    "rank_entries",
    # Evidence
    "EvidenceCollector",
    "EvidenceResult",
    "EvidenceStrategy",
    # Meta
    "__version__",
]
