"""
Configuration and Types for the Failure-First Harness

Enumerations shared by every component, the harness configuration and the
injectable clock.
"""

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional


SPEC_VERSION = "1.0"


class Severity(Enum):
    """Failure severity"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EntryState(Enum):
    """Per-entry lifecycle state"""
    UNADDRESSED = "unaddressed"
    IN_PROGRESS = "in_progress"
    CLAIMED = "claimed"
    VERIFIED = "verified"
    REJECTED = "rejected"
    ACCEPTED_RISK = "accepted_risk"

    @property
    def is_terminal(self) -> bool:
        return self in {EntryState.VERIFIED, EntryState.ACCEPTED_RISK}


class Ownership(Enum):
    """Who owns the failure mode"""
    OWNED = "owned"
    INHERITED = "inherited"
    INTEGRATION = "integration"


class Role(Enum):
    """Actor role tags checked against the transition table"""
    ADVERSARY = "adversary"
    BUILDER = "builder"
    VERIFIER = "verifier"
    RESOLVER = "resolver"


class Disposition(Enum):
    """Human decision on a post-freeze discovery"""
    PENDING = "pending"
    ADD_TO_NEXT = "add_to_next"
    ACCEPTED_RISK = "accepted_risk"
    DUPLICATE = "duplicate"


class EvidenceType(Enum):
    """Recognised evidence requirement kinds"""
    UNIT_TEST = "unit_test"
    INTEGRATION_TEST = "integration_test"
    E2E_TEST = "e2e_test"
    FUZZ = "fuzz"
    LOAD_TEST = "load_test"
    MANUAL = "manual"
    CODE_REVIEW = "code_review"
    SECURITY_TEST = "security_test"
    TIMING_ANALYSIS = "timing_analysis"
    LOG_ANALYSIS = "log_analysis"
    LOG_SEARCH = "log_search"
    NETWORK_CAPTURE = "network_capture"
    HEADER_INSPECTION = "header_inspection"
    TRAFFIC_ANALYSIS = "traffic_analysis"
    TOKEN_INSPECTION = "token_inspection"
    MANUAL_TEST = "manual_test"
    LOG_INSPECTION = "log_inspection"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["EvidenceType"]:
        """Return the member for value, or None when unrecognised"""
        try:
            return cls(value)
        except ValueError:
            return None


class FrozenWritePolicy(Enum):
    """What the document guard does with structural writes after freeze"""
    REJECT = "reject"
    REDIRECT = "redirect"


# Substrings that mark an identity as automated (matched case-insensitively)
AUTOMATED_IDENTITY_MARKERS = ("agent", "bot", "ai", "claude", "gpt", "assistant")

# Phrases that make an oracle untestable
VAGUE_ORACLE_PHRASES = ("should be secure", "must be safe", "needs to work")

# Phrases that turn evidence into a judgment call
ASSERTION_PHRASES = ("looks correct", "seems fine", "appears to work", "should work")


def is_automated_identity(identity: str) -> bool:
    """Check whether an identity looks like an agent rather than a human"""
    lowered = (identity or "").lower()
    return any(marker in lowered for marker in AUTOMATED_IDENTITY_MARKERS)


def contains_assertion(text: str) -> bool:
    """Check whether text is an assertion instead of observable behaviour"""
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in ASSERTION_PHRASES)


# =========================================================================
# Clock
# =========================================================================

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock"""
    return datetime.now(timezone.utc)


def timestamp(clock: Optional[Clock] = None) -> str:
    """ISO-8601 timestamp from the given clock"""
    moment = (clock or utc_now)()
    return moment.isoformat().replace("+00:00", "Z")


def current_user(default: str = "unknown") -> str:
    """Identity of the local operator"""
    return os.getenv("FFH_ACTOR") or os.getenv("USER") or os.getenv("USERNAME") or default


# =========================================================================
# Configuration
# =========================================================================

DEFAULT_TEST_PATTERNS = [
    "tests/test_{id_lower}.py",
    "test/test_{id_lower}.py",
    "tests/{id_lower}_test.py",
    "test/{id_lower}.test.js",
    "test/{id_lower}.test.ts",
    "tests/{id_lower}.test.js",
    "__tests__/{id_lower}.test.js",
    "test/failures/{id}.test.js",
]


def _default_test_runners() -> Dict[str, List[str]]:
    return {
        ".py": [sys.executable, "-m", "pytest", "-q"],
        ".js": ["node"],
        ".mjs": ["node"],
        ".ts": ["npx", "tsx"],
        ".sh": ["sh"],
    }


@dataclass
class HarnessConfig:
    """
    Configuration for the harness.

    Controls file locations, evidence collection limits and the
    post-freeze write policy.
    """
    # Layout
    harness_dir: str = ".failure-first"
    failures_file: str = "failures.json"
    discoveries_file: str = "discoveries.json"
    workspace_path: Path = field(
        default_factory=lambda: Path(os.getenv("FFH_WORKSPACE", "."))
    )

    # Evidence collection
    evidence_timeout_ms: int = 30000  # 30 seconds
    evidence_max_chars: int = 2000
    inspection_window: int = 10
    inspection_prefix_chars: int = 500
    test_runners: Dict[str, List[str]] = field(default_factory=_default_test_runners)
    test_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_TEST_PATTERNS))

    # Governance
    frozen_write_policy: FrozenWritePolicy = FrozenWritePolicy.REJECT

    # Version control
    git_timeout_ms: int = 5000

    def __post_init__(self):
        if isinstance(self.workspace_path, str):
            self.workspace_path = Path(self.workspace_path)
        if isinstance(self.frozen_write_policy, str):
            self.frozen_write_policy = FrozenWritePolicy(self.frozen_write_policy)

    @property
    def harness_path(self) -> Path:
        return self.workspace_path / self.harness_dir

    @property
    def failures_path(self) -> Path:
        return self.harness_path / self.failures_file

    @property
    def discoveries_path(self) -> Path:
        return self.harness_path / self.discoveries_file

    @classmethod
    def from_yaml(cls, path: str) -> "HarnessConfig":
        """Load config from YAML file"""
        import yaml

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load config from environment variables"""
        return cls(
            harness_dir=os.getenv("FFH_DIR", ".failure-first"),
            evidence_timeout_ms=int(os.getenv("FFH_EVIDENCE_TIMEOUT_MS", "30000")),
            evidence_max_chars=int(os.getenv("FFH_EVIDENCE_MAX_CHARS", "2000")),
            frozen_write_policy=FrozenWritePolicy(
                os.getenv("FFH_FROZEN_WRITE_POLICY", "reject").lower()
            ),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "harness_dir": self.harness_dir,
            "failures_file": self.failures_file,
            "discoveries_file": self.discoveries_file,
            "workspace_path": str(self.workspace_path),
            "evidence_timeout_ms": self.evidence_timeout_ms,
            "evidence_max_chars": self.evidence_max_chars,
            "inspection_window": self.inspection_window,
            "inspection_prefix_chars": self.inspection_prefix_chars,
            "test_runners": self.test_runners,
            "test_patterns": self.test_patterns,
            "frozen_write_policy": self.frozen_write_policy.value,
            "git_timeout_ms": self.git_timeout_ms,
        }
