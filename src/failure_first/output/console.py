"""
Console Output Formatter

Console output with colors and state icons.
"""

import sys
from typing import List, Optional

from .base import BaseFormatter, OutputLevel
from ..document import DiscoveryEntry, FailureEntry, FailureSpecDocument
from ..freeze import FreezeResult
from ..lifecycle import TransitionResult, VerificationRunReport, blocking_entries, is_complete
from ..main import Disposition, EntryState, Severity
from ..priority import priority_score
from ..validation import ValidationReport


class ConsoleFormatter(BaseFormatter):
    """
    Console formatter with colored output.

    Uses ANSI escape codes for colors in terminal environments.
    Falls back to plain text when not in a TTY.
    """

    # ANSI color codes
    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "red": "\033[31m",
        "blue": "\033[34m",
        "cyan": "\033[36m",
        "magenta": "\033[35m",
    }

    # State icons
    SYMBOLS = {
        EntryState.UNADDRESSED: "[ ]",
        EntryState.IN_PROGRESS: "[~]",
        EntryState.CLAIMED: "[?]",
        EntryState.VERIFIED: "[✓]",
        EntryState.REJECTED: "[✗]",
        EntryState.ACCEPTED_RISK: "[!]",
    }

    STATE_COLORS = {
        EntryState.UNADDRESSED: "dim",
        EntryState.IN_PROGRESS: "cyan",
        EntryState.CLAIMED: "yellow",
        EntryState.VERIFIED: "green",
        EntryState.REJECTED: "red",
        EntryState.ACCEPTED_RISK: "magenta",
    }

    DISPOSITION_SYMBOLS = {
        Disposition.PENDING: "[?]",
        Disposition.ADD_TO_NEXT: "[+]",
        Disposition.ACCEPTED_RISK: "[!]",
        Disposition.DUPLICATE: "[=]",
    }

    SEVERITY_COLORS = {
        Severity.CRITICAL: "red",
        Severity.HIGH: "yellow",
        Severity.MEDIUM: "blue",
        Severity.LOW: "dim",
    }

    def __init__(self, level: OutputLevel = OutputLevel.NORMAL, use_colors: bool = True):
        super().__init__(level)
        self.use_colors = use_colors and sys.stdout.isatty()

    def _c(self, color: str, text: str) -> str:
        """Apply color to text"""
        if self.use_colors:
            return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"
        return text

    def _symbol(self, state: EntryState) -> str:
        return self._c(self.STATE_COLORS.get(state, "dim"), self.SYMBOLS.get(state, "[ ]"))

    def _entry_line(self, entry: FailureEntry) -> str:
        severity = self._c(self.SEVERITY_COLORS.get(entry.severity, "dim"), entry.severity.value)
        return f"{self._symbol(entry.state)} {self._c('cyan', entry.id)}: {entry.title} ({severity})"

    def _header(self, title: str) -> None:
        print(self._c("bold", f"=== {title} ==="))

    def status(self, document: FailureSpecDocument, show_all: bool = False) -> None:
        meta = document.metadata
        frozen = f"Yes ({meta.frozen_at})" if meta.is_frozen else "No"
        print(f"Feature: {self._c('bold', meta.feature)}")
        print(f"Frozen: {frozen}")
        print()

        self._header("Summary")
        print(f"Total: {len(document.failures)}")
        for state in EntryState:
            count = sum(1 for f in document.failures if f.state == state)
            label = state.value.replace("_", " ").title()
            print(f"{label}: {self._c(self.STATE_COLORS[state], str(count))}")

        if show_all or self.level >= OutputLevel.VERBOSE:
            print()
            self._header("Failures")
            for entry in document.failures:
                print(self._entry_line(entry))
                if self.level >= OutputLevel.VERBOSE and entry.status.guardrail:
                    print(f"    {self._c('dim', 'Guardrail:')} {entry.status.guardrail.location}")

        critical_unaddressed = [
            f for f in document.failures
            if f.severity == Severity.CRITICAL and f.state == EntryState.UNADDRESSED
        ]
        if critical_unaddressed and not show_all:
            print()
            self._header("Critical Unaddressed")
            for entry in critical_unaddressed:
                print(f"  {self._c('red', entry.id)}: {entry.title}")

        print()
        if is_complete(document):
            print(self._c("green", "✓ Complete: every critical failure is verified or risk-accepted"))
        else:
            blocking = ", ".join(f.id for f in blocking_entries(document))
            print(self._c("yellow", f"Incomplete: critical failures still open ({blocking})"))

    def validation(self, report: ValidationReport, source: Optional[str] = None) -> None:
        label = f" {source}" if source else ""
        if report.valid:
            print(f"{self._c('green', '✓')} Valid FailureSpec{label}")
        else:
            print(f"{self._c('red', '✗')} Invalid FailureSpec{label}")
            for issue in report.errors:
                print(f"  {self._c('red', 'ERROR')}   {issue}")

        if report.warnings and self.level >= OutputLevel.NORMAL:
            for issue in report.warnings:
                print(f"  {self._c('yellow', 'WARNING')} {issue}")

    def transition(self, result: TransitionResult, entry: Optional[FailureEntry] = None) -> None:
        if not result.ok:
            print(f"{self._c('red', '✗')} {result.entry_id}: {result.violation.reason}", file=sys.stderr)
            if self.level >= OutputLevel.VERBOSE:
                print(f"  {self._c('dim', 'Rule:')} {result.violation.rule}", file=sys.stderr)
            if result.evidence is not None and result.evidence.evidence:
                print(f"  {self._c('dim', 'Output:')}", file=sys.stderr)
                for line in result.evidence.evidence.splitlines()[:20]:
                    print(f"    {line}", file=sys.stderr)
            return

        state = result.to_state
        print(f"{self._symbol(state)} {self._c('cyan', result.entry_id)} marked as {state.value.upper()}")
        if entry is None:
            return

        status = entry.status
        if state == EntryState.CLAIMED and status.guardrail:
            print(f"  Design: {status.guardrail.design}")
            print(f"  Location: {status.guardrail.location}")
        elif state == EntryState.VERIFIED and status.verification:
            print(f"  Method: {status.verification.method}")
            print(f"  Fingerprint: {status.verification.evidence_fingerprint}")
            if result.evidence is not None and result.evidence.note:
                print(f"  {self._c('yellow', 'Note:')} {result.evidence.note}")
        elif state == EntryState.UNADDRESSED and status.rejection:
            print(f"  Reason: {status.rejection.reason}")
        elif state == EntryState.ACCEPTED_RISK and status.risk_acceptance:
            print(f"  Accepted by: {status.risk_acceptance.accepted_by}")
            print(f"  Reason: {status.risk_acceptance.reason}")
            if status.risk_acceptance.review_by:
                print(f"  Review by: {status.risk_acceptance.review_by}")

    def freeze(self, result: FreezeResult) -> None:
        if not result.ok:
            print(f"{self._c('red', '✗')} Cannot freeze:", file=sys.stderr)
            for error in result.errors:
                print(f"  - {error}", file=sys.stderr)
            return

        meta = result.document.metadata
        print(f"{self._c('green', '✓')} Spec frozen at {meta.frozen_at}")
        print(f"  Fingerprint: {meta.frozen_fingerprint or '(none)'}")
        print(f"  Digest: {meta.frozen_digest}")
        print(f"  Failures: {len(result.document.failures)}")
        print()
        print("Structural fields are now immutable. Log new failures with `ffh discover`.")

    def discoveries(self, entries: List[DiscoveryEntry]) -> None:
        if not entries:
            print("No discoveries logged.")
            return

        self._header("Discoveries")
        for d in entries:
            icon = self.DISPOSITION_SYMBOLS.get(d.disposition, "[?]")
            print(f"{icon} {self._c('cyan', d.id)}: {d.description}")
            print(f"    {self._c('dim', 'Discovered by:')} {d.discovered_by} at {d.discovered_at}")
            if d.decided_by:
                print(f"    {self._c('dim', 'Decided:')} {d.disposition.value} by {d.decided_by} at {d.decided_at}")

    def priority(self, entries: List[FailureEntry]) -> None:
        if not entries:
            print("No open failures.")
            return

        self._header("Priority Order")
        for rank, entry in enumerate(entries, 1):
            score = self._c("bold", f"{priority_score(entry):>5}")
            print(f"{rank:>3}. {score}  {self._entry_line(entry)}")

    def verification_run(self, report: VerificationRunReport) -> None:
        self._header(f"Verification: {report.feature}")
        for item in report.results:
            if item.get("skipped"):
                if self.level >= OutputLevel.VERBOSE:
                    print(f"{self._c('dim', '-')} {item['failure_id']}: skipped ({item['reason']})")
                continue
            if item.get("verified"):
                print(f"{self._c('green', '✓')} {item['failure_id']}: {item['failure_title']}")
            else:
                print(f"{self._c('red', '✗')} {item['failure_id']}: {item.get('rejection_reason', '')}")

        print()
        print(f"Total: {report.total}")
        print(f"  Verified: {self._c('green', str(report.verified))}")
        print(f"  Failed:   {self._c('red', str(report.failed))}")
        print(f"  Skipped:  {report.skipped}")
