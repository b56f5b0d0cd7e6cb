"""
Discovery Ledger

Append-only record of failures found after the spec was frozen. Nothing
here writes to a FailureSpec: a discovery becomes an entry only when a
human authors a brand-new entry for the next spec and it validates on
its own.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .document import DiscoveryEntry
from .errors import AuthorityViolation, GuardViolation, SchemaError
from .main import Clock, Disposition, EntryState, is_automated_identity, timestamp
from .validation import ValidationReport, validate_entry

logger = logging.getLogger(__name__)

DISCOVERY_ID_PATTERN = re.compile(r"^D(\d{3,})$")


class DiscoveryLedger:
    """Sequentially numbered discoveries, independent of the main document"""

    def __init__(self, entries: Optional[List[DiscoveryEntry]] = None, clock: Optional[Clock] = None):
        self._entries: List[DiscoveryEntry] = list(entries or [])
        self._clock = clock

    @property
    def entries(self) -> List[DiscoveryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, discovery_id: str) -> Optional[DiscoveryEntry]:
        wanted = (discovery_id or "").upper()
        for entry in self._entries:
            if entry.id == wanted:
                return entry
        return None

    def pending(self) -> List[DiscoveryEntry]:
        return [d for d in self._entries if d.disposition == Disposition.PENDING]

    def _next_id(self) -> str:
        highest = 0
        for entry in self._entries:
            match = DISCOVERY_ID_PATTERN.match(entry.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"D{highest + 1:03d}"

    def discover(self, description: str, discovered_by: str) -> DiscoveryEntry:
        """Log a new finding with disposition pending"""
        if not (description or "").strip():
            raise SchemaError("discovery.description", "A discovery needs a description of the failure")
        if not (discovered_by or "").strip():
            raise SchemaError("discovery.discovered_by", "A discovery must name who found it")

        entry = DiscoveryEntry(
            id=self._next_id(),
            description=description.strip(),
            discovered_by=discovered_by,
            discovered_at=timestamp(self._clock),
        )
        self._entries.append(entry)
        logger.info(f"Discovery logged: {entry.id} by {discovered_by}")
        return entry

    def _require(self, discovery_id: str) -> DiscoveryEntry:
        entry = self.get(discovery_id)
        if entry is None:
            raise SchemaError("discovery.id", f"Discovery {discovery_id} not found")
        return entry

    def _require_human(self, decided_by: str) -> None:
        if not (decided_by or "").strip():
            raise AuthorityViolation("disposition.decided_by", "A disposition must name the human who decided it")
        if is_automated_identity(decided_by):
            raise AuthorityViolation(
                "disposition.human_only",
                f'"{decided_by}" looks like an automated identity; dispositions must be decided by a human',
            )

    def set_disposition(
        self,
        discovery_id: str,
        disposition: Disposition,
        decided_by: str,
        note: Optional[str] = None,
    ) -> DiscoveryEntry:
        """Record a human decision on a discovery"""
        entry = self._require(discovery_id)
        if isinstance(disposition, str):
            try:
                disposition = Disposition(disposition)
            except ValueError:
                raise SchemaError("disposition", f"Invalid disposition: {disposition}") from None

        self._require_human(decided_by)

        if disposition == Disposition.PENDING:
            raise GuardViolation("disposition.pending", "A decided discovery cannot be returned to pending")
        if disposition == Disposition.ADD_TO_NEXT:
            raise GuardViolation(
                "disposition.add_to_next",
                "add_to_next needs a drafted entry for the next spec; use draft_for_next",
            )

        self._decide(entry, disposition, decided_by, note)
        return entry

    def draft_for_next(
        self,
        discovery_id: str,
        entry_data: Dict[str, Any],
        decided_by: str,
    ) -> ValidationReport:
        """
        Validate a brand-new entry authored from a discovery.

        On success the discovery is marked add_to_next. The drafted entry is
        not inserted anywhere; it belongs to the next FailureSpec.
        """
        entry = self._require(discovery_id)
        self._require_human(decided_by)

        report = validate_entry(entry_data, path=f"draft[{entry.id}]")
        status = entry_data.get("status") if isinstance(entry_data, dict) else None
        if isinstance(status, dict) and status.get("state", EntryState.UNADDRESSED.value) != EntryState.UNADDRESSED.value:
            report.error(f"draft[{entry.id}].status.state", "A drafted entry must start unaddressed")

        if report.valid:
            self._decide(entry, Disposition.ADD_TO_NEXT, decided_by, f"Drafted as {entry_data.get('id')}")
        else:
            logger.warning(f"Draft for {entry.id} rejected: {len(report.errors)} error(s)")
        return report

    def _decide(self, entry: DiscoveryEntry, disposition: Disposition, decided_by: str, note: Optional[str]) -> None:
        entry.disposition = disposition
        entry.decided_by = decided_by
        entry.decided_at = timestamp(self._clock)
        entry.note = note
        logger.info(f"Discovery {entry.id} marked {disposition.value} by {decided_by}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], clock: Optional[Clock] = None) -> "DiscoveryLedger":
        records = (data or {}).get("discoveries") or []
        return cls([DiscoveryEntry.from_dict(d) for d in records], clock=clock)

    def to_dict(self) -> Dict[str, Any]:
        return {"discoveries": [d.to_dict() for d in self._entries]}
