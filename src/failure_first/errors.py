"""
Error Taxonomy

Every rejection names the rule it enforces and carries a reason a human
can act on.
"""

from typing import Any, Dict, Optional


class HarnessError(Exception):
    """Base exception for harness errors"""
    pass


class StoreError(HarnessError):
    """Document could not be read or written"""
    pass


class HarnessViolation(HarnessError):
    """A rule of the harness was broken; nothing was mutated"""

    kind = "violation"

    def __init__(self, rule: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"[{rule}] {reason}")
        self.rule = rule
        self.reason = reason
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "rule": self.rule,
            "reason": self.reason,
            "details": self.details,
        }


class SchemaError(HarnessViolation):
    """Malformed, missing or invalid field"""
    kind = "schema"


class GuardViolation(HarnessViolation):
    """Illegal transition or missing role precondition"""
    kind = "guard"


class ImmutabilityViolation(HarnessViolation):
    """Structural write on a frozen document"""
    kind = "immutability"


class EvidenceFailure(HarnessViolation):
    """Evidence could not substantiate a claimed fix"""
    kind = "evidence"


class AuthorityViolation(HarnessViolation):
    """Decision reserved for a human was attempted by an automated identity"""
    kind = "authority"
