"""
Markdown status report.
"""

from typing import List, Optional

from ..discovery import DiscoveryLedger
from ..document import FailureSpecDocument
from ..lifecycle import blocking_entries, is_complete
from ..main import Clock, EntryState, Severity, timestamp
from ..priority import priority_score, ranked_open_entries


def render_report(
    document: FailureSpecDocument,
    ledger: Optional[DiscoveryLedger] = None,
    clock: Optional[Clock] = None,
) -> str:
    """Render the spec's current state as a markdown document"""
    meta = document.metadata
    lines: List[str] = [
        "# Failure-First Status Report",
        "",
        f"**Feature:** {meta.feature}",
        f"**Generated:** {timestamp(clock)}",
        f"**Frozen:** {meta.frozen_at or 'No'}",
    ]
    if meta.frozen_fingerprint:
        lines.append(f"**Frozen at commit:** {meta.frozen_fingerprint}")
    lines.append("")

    lines += ["## Summary", "", "| State | Count |", "|-------|-------|"]
    for state in EntryState:
        count = sum(1 for f in document.failures if f.state == state)
        if count:
            lines.append(f"| {state.value} | {count} |")
    lines.append(f"| **total** | {len(document.failures)} |")
    lines.append("")

    critical = [f for f in document.failures if f.severity == Severity.CRITICAL]
    if critical:
        lines += ["## Critical Failures", ""]
        for f in critical:
            lines.append(f"- **{f.id}**: {f.title} [{f.state.value}]")
        lines.append("")

    ranked = ranked_open_entries(document.failures)
    if ranked:
        lines += ["## Priority Order", "", "| # | ID | Score | Severity | State | Title |",
                  "|---|----|-------|----------|-------|-------|"]
        for rank, f in enumerate(ranked, 1):
            lines.append(
                f"| {rank} | {f.id} | {priority_score(f)} | {f.severity.value} | {f.state.value} | {f.title} |"
            )
        lines.append("")

    lines += ["## Completion", ""]
    if is_complete(document):
        lines.append("Every critical failure is verified or risk-accepted.")
    else:
        blocking = ", ".join(f.id for f in blocking_entries(document))
        lines.append(f"Not complete. Open critical failures: {blocking}")
    lines.append("")

    pending = ledger.pending() if ledger is not None else []
    if pending:
        lines += ["## Pending Discoveries", ""]
        for d in pending:
            lines.append(f"- **{d.id}**: {d.description}")
        lines.append("")

    return "\n".join(lines)
