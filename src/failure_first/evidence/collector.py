"""
Evidence Collector

Dispatches an entry to the strategy registered for its evidence type.
Unregistered types fall back to the manual strategy, so an unknown kind of
proof can never verify on its own.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from ..document import FailureEntry
from ..logging_config import entry_logger
from ..main import EvidenceType, HarnessConfig
from .strategies import (
    EvidenceResult,
    EvidenceStrategy,
    ExecutableTestStrategy,
    InspectionStrategy,
    ManualStrategy,
)

logger = logging.getLogger(__name__)

EXECUTABLE_TYPES = (
    EvidenceType.UNIT_TEST,
    EvidenceType.INTEGRATION_TEST,
    EvidenceType.E2E_TEST,
    EvidenceType.FUZZ,
    EvidenceType.LOAD_TEST,
    EvidenceType.TIMING_ANALYSIS,
    EvidenceType.LOG_ANALYSIS,
    EvidenceType.LOG_SEARCH,
    EvidenceType.LOG_INSPECTION,
    EvidenceType.NETWORK_CAPTURE,
    EvidenceType.HEADER_INSPECTION,
    EvidenceType.TRAFFIC_ANALYSIS,
    EvidenceType.TOKEN_INSPECTION,
)


def get_strategy_registry(config: Optional[HarnessConfig] = None) -> Dict[EvidenceType, EvidenceStrategy]:
    """Map every evidence type to its strategy"""
    config = config or HarnessConfig()
    executable = ExecutableTestStrategy(config)
    manual = ManualStrategy(config)

    registry: Dict[EvidenceType, EvidenceStrategy] = {t: executable for t in EXECUTABLE_TYPES}
    registry[EvidenceType.SECURITY_TEST] = ExecutableTestStrategy(
        config,
        missing_hint="create a security test or run a manual security assessment",
    )
    registry[EvidenceType.CODE_REVIEW] = InspectionStrategy(config)
    registry[EvidenceType.MANUAL] = manual
    registry[EvidenceType.MANUAL_TEST] = manual
    return registry


class EvidenceCollector:
    """
    Collects evidence that substantiates a claimed fix.

    A strategy that raises is reported as a failed collection; the caller
    never sees the exception.
    """

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        registry: Optional[Dict[EvidenceType, EvidenceStrategy]] = None,
    ):
        self.config = config or HarnessConfig()
        self._registry = registry if registry is not None else get_strategy_registry(self.config)
        self._fallback = ManualStrategy(self.config)

    def register(self, evidence_type: EvidenceType, strategy: EvidenceStrategy) -> None:
        """Register or replace the strategy for an evidence type"""
        self._registry[evidence_type] = strategy
        logger.info(f"Registered {strategy.name} strategy for {evidence_type.value}")

    def strategy_for(self, entry: FailureEntry) -> EvidenceStrategy:
        evidence_type = entry.evidence_requirement.evidence_type
        if evidence_type is None:
            return self._fallback
        return self._registry.get(evidence_type, self._fallback)

    async def collect(self, entry: FailureEntry, workspace: Optional[Path] = None) -> EvidenceResult:
        """
        Collect evidence for an entry.

        Args:
            entry: The failure entry being verified
            workspace: Project root; defaults to the configured workspace

        Returns:
            EvidenceResult; success is False whenever proof is missing
        """
        workspace = Path(workspace) if workspace is not None else self.config.workspace_path
        strategy = self.strategy_for(entry)
        start_time = datetime.now()
        log = entry_logger(logger, entry.id)

        log.info(f"Collecting {entry.evidence_requirement.type} evidence via {strategy.name}")

        try:
            result = await strategy.execute(entry, workspace)
        except Exception as e:
            log.exception(f"Evidence strategy {strategy.name} crashed")
            result = EvidenceResult.failure(f"Evidence collection error: {e}")

        duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        if result.success:
            log.info(f"Evidence collected in {duration_ms}ms: {result.method}")
        else:
            log.warning(f"Evidence collection failed in {duration_ms}ms: {result.error}")

        return result
