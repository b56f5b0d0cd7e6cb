"""
Remediation Priority

score = severity*1000 + likelihood*100 + blast_radius*10 - verification_ease*5

The ease term is subtracted so that entries which are hard to verify sort
ahead of easy ones. Missing or unknown attributes take the medium weight.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, TypeVar

from .document import FailureEntry

T = TypeVar("T")

MEDIUM_WEIGHT = 2


@dataclass(frozen=True)
class PriorityWeights:
    """Weight tables and multipliers for the priority score"""
    severity: Dict[str, int] = field(
        default_factory=lambda: {"critical": 4, "high": 3, "medium": 2, "low": 1}
    )
    likelihood: Dict[str, int] = field(
        default_factory=lambda: {"high": 3, "medium": 2, "low": 1}
    )
    blast_radius: Dict[str, int] = field(
        default_factory=lambda: {"system": 3, "service": 2, "component": 1}
    )
    verification_ease: Dict[str, int] = field(
        default_factory=lambda: {"trivial": 3, "moderate": 2, "hard": 1}
    )
    severity_multiplier: int = 1000
    likelihood_multiplier: int = 100
    blast_radius_multiplier: int = 10
    verification_ease_multiplier: int = -5
    default_weight: int = MEDIUM_WEIGHT


DEFAULT_WEIGHTS = PriorityWeights()


def _attribute(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    value = getattr(entry, name, None)
    # Enums carry their persisted value
    return getattr(value, "value", value)


def _weight(table: Dict[str, int], value: Any, default: int) -> int:
    if isinstance(value, str):
        return table.get(value.lower(), default)
    return default


def priority_breakdown(entry: Any, weights: PriorityWeights = DEFAULT_WEIGHTS) -> Dict[str, int]:
    """Per-term weights and the resulting score"""
    severity = _weight(weights.severity, _attribute(entry, "severity"), weights.default_weight)
    likelihood = _weight(weights.likelihood, _attribute(entry, "likelihood"), weights.default_weight)
    blast = _weight(weights.blast_radius, _attribute(entry, "blast_radius"), weights.default_weight)
    ease = _weight(weights.verification_ease, _attribute(entry, "verification_ease"), weights.default_weight)

    score = (
        severity * weights.severity_multiplier
        + likelihood * weights.likelihood_multiplier
        + blast * weights.blast_radius_multiplier
        + ease * weights.verification_ease_multiplier
    )
    return {
        "severity": severity,
        "likelihood": likelihood,
        "blast_radius": blast,
        "verification_ease": ease,
        "score": score,
    }


def priority_score(entry: Any, weights: PriorityWeights = DEFAULT_WEIGHTS) -> int:
    """Score a FailureEntry or a raw entry dict"""
    return priority_breakdown(entry, weights)["score"]


def rank_entries(entries: Sequence[T], weights: PriorityWeights = DEFAULT_WEIGHTS) -> List[T]:
    """Highest score first; ties keep declaration order"""
    indexed: List[Tuple[int, int, T]] = [
        (-priority_score(entry, weights), i, entry) for i, entry in enumerate(entries)
    ]
    indexed.sort(key=lambda item: (item[0], item[1]))
    return [entry for _, _, entry in indexed]


def ranked_open_entries(entries: Sequence[FailureEntry], weights: PriorityWeights = DEFAULT_WEIGHTS) -> List[FailureEntry]:
    """Work queue: entries not yet in a terminal state, by priority"""
    return rank_entries([e for e in entries if not e.state.is_terminal], weights)
