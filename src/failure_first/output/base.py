"""
Base Output Formatter
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import List, Optional

from ..document import DiscoveryEntry, FailureEntry, FailureSpecDocument
from ..freeze import FreezeResult
from ..lifecycle import TransitionResult, VerificationRunReport
from ..validation import ValidationReport


class OutputLevel(IntEnum):
    """Output verbosity levels"""
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


class BaseFormatter(ABC):
    """Base class for output formatters"""

    def __init__(self, level: OutputLevel = OutputLevel.NORMAL):
        self.level = level

    @abstractmethod
    def status(self, document: FailureSpecDocument, show_all: bool = False) -> None:
        """Format the per-state summary of a spec"""
        pass

    @abstractmethod
    def validation(self, report: ValidationReport, source: Optional[str] = None) -> None:
        """Format a validation report"""
        pass

    @abstractmethod
    def transition(self, result: TransitionResult, entry: Optional[FailureEntry] = None) -> None:
        """Format the outcome of a lifecycle operation"""
        pass

    @abstractmethod
    def freeze(self, result: FreezeResult) -> None:
        """Format the outcome of a freeze"""
        pass

    @abstractmethod
    def discoveries(self, entries: List[DiscoveryEntry]) -> None:
        """Format the discovery ledger"""
        pass

    @abstractmethod
    def priority(self, entries: List[FailureEntry]) -> None:
        """Format open entries in priority order"""
        pass

    @abstractmethod
    def verification_run(self, report: VerificationRunReport) -> None:
        """Format a batch verification run"""
        pass
