"""
JSON Output Formatter

One JSON document per command on stdout, for scripts and CI.
"""

import json
from typing import Any, Dict, List, Optional

from .base import BaseFormatter
from ..document import DiscoveryEntry, FailureEntry, FailureSpecDocument
from ..freeze import FreezeResult
from ..lifecycle import TransitionResult, VerificationRunReport, blocking_entries, is_complete
from ..main import EntryState
from ..priority import priority_score
from ..validation import ValidationReport


class JsonFormatter(BaseFormatter):
    """Machine-readable formatter"""

    def _emit(self, payload: Dict[str, Any]) -> None:
        print(json.dumps(payload, indent=2, ensure_ascii=False))

    def status(self, document: FailureSpecDocument, show_all: bool = False) -> None:
        payload: Dict[str, Any] = {
            "feature": document.metadata.feature,
            "frozen_at": document.metadata.frozen_at,
            "total": len(document.failures),
            "states": {
                state.value: sum(1 for f in document.failures if f.state == state)
                for state in EntryState
            },
            "complete": is_complete(document),
            "blocking": [f.id for f in blocking_entries(document)],
        }
        if show_all:
            payload["failures"] = [
                {"id": f.id, "title": f.title, "severity": f.severity.value, "state": f.state.value}
                for f in document.failures
            ]
        self._emit(payload)

    def validation(self, report: ValidationReport, source: Optional[str] = None) -> None:
        payload = report.to_dict()
        if source:
            payload["source"] = source
        self._emit(payload)

    def transition(self, result: TransitionResult, entry: Optional[FailureEntry] = None) -> None:
        payload = result.to_dict()
        if entry is not None:
            payload["status"] = entry.status.to_dict()
        self._emit(payload)

    def freeze(self, result: FreezeResult) -> None:
        self._emit(result.to_dict())

    def discoveries(self, entries: List[DiscoveryEntry]) -> None:
        self._emit({"discoveries": [d.to_dict() for d in entries]})

    def priority(self, entries: List[FailureEntry]) -> None:
        self._emit({
            "priority": [
                {"id": f.id, "score": priority_score(f), "severity": f.severity.value, "state": f.state.value}
                for f in entries
            ]
        })

    def verification_run(self, report: VerificationRunReport) -> None:
        self._emit(report.to_dict())
