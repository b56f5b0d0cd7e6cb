"""
Evidence System

Pluggable strategies that substantiate a claimed fix before an entry may
be marked verified.
"""

from .collector import EXECUTABLE_TYPES, EvidenceCollector, get_strategy_registry
from .strategies import (
    EvidenceResult,
    EvidenceStrategy,
    ExecutableTestStrategy,
    InspectionStrategy,
    ManualStrategy,
)

__all__ = [
    # Collector
    "EvidenceCollector",
    "get_strategy_registry",
    "EXECUTABLE_TYPES",
    # Strategies
    "EvidenceResult",
    "EvidenceStrategy",
    "ExecutableTestStrategy",
    "InspectionStrategy",
    "ManualStrategy",
]
