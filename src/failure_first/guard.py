"""
Document Guard

The single write path for a FailureSpec. Entries, status records and
metadata are only changed through this class, which is where the
post-freeze immutability rule is enforced.

After freeze only StatusRecord writes are accepted. Any other write is an
ImmutabilityViolation; with the redirect policy the attempted change is
also logged to the discovery ledger.
"""

import copy
import json
import logging
from typing import Any, Dict, Optional

from .discovery import DiscoveryLedger
from .document import (
    STRUCTURAL_FIELDS,
    FailureEntry,
    FailureSpecDocument,
    StatusRecord,
    structural_digest,
)
from .errors import GuardViolation, ImmutabilityViolation, SchemaError
from .main import EntryState, FrozenWritePolicy, Role
from .validation import validate_entry

logger = logging.getLogger(__name__)

FROZEN_METADATA_FIELDS = ("frozen_at", "frozen_fingerprint", "frozen_digest")


def _summarise(changes: Dict[str, Any], limit: int = 200) -> str:
    text = json.dumps(changes, sort_keys=True, default=str)
    return text if len(text) <= limit else text[: limit - 3] + "..."


class DocumentGuard:
    """
    Gatekeeper for every write to a FailureSpecDocument.

    Args:
        policy: What to do with structural writes on a frozen document
        ledger: Discovery ledger used by the redirect policy
    """

    def __init__(
        self,
        policy: FrozenWritePolicy = FrozenWritePolicy.REJECT,
        ledger: Optional[DiscoveryLedger] = None,
    ):
        self.policy = policy
        self.ledger = ledger

    # =========================================================================
    # Integrity
    # =========================================================================

    def assert_intact(self, document: FailureSpecDocument) -> None:
        """Refuse to work on a frozen document whose structure drifted"""
        expected = document.metadata.frozen_digest
        if not document.is_frozen or not expected:
            return
        actual = structural_digest(document)
        if actual != expected:
            raise ImmutabilityViolation(
                "frozen.integrity",
                f"Structural fields changed after freeze (frozen {expected}, now {actual}). "
                "Restore the frozen entries and log new findings with `ffh discover`.",
                details={"expected": expected, "actual": actual},
            )

    def _reject_frozen_write(self, target: str, changes: Dict[str, Any], actor: str) -> None:
        reason = (
            f"Spec is frozen as of the recorded freeze; {target} cannot change. "
            "Only status records may change after freeze."
        )
        details: Dict[str, Any] = {"target": target, "fields": sorted(changes)}

        if self.policy == FrozenWritePolicy.REDIRECT and self.ledger is not None:
            discovery = self.ledger.discover(
                f"Attempted post-freeze change to {target}: {_summarise(changes)}",
                discovered_by=actor,
            )
            details["discovery_id"] = discovery.id
            reason = f"{reason} The change was logged as discovery {discovery.id}."
        else:
            reason = f"{reason} Log new findings with `ffh discover`."

        logger.warning(f"Blocked post-freeze write to {target} by {actor}")
        raise ImmutabilityViolation("frozen.structural_write", reason, details=details)

    # =========================================================================
    # Entry writes
    # =========================================================================

    def add_entry(
        self,
        document: FailureSpecDocument,
        entry_data: Dict[str, Any],
        actor: str,
        role: Role,
    ) -> FailureEntry:
        """Append a new entry (adversary, before freeze)"""
        entry_id = entry_data.get("id") if isinstance(entry_data, dict) else None
        if document.is_frozen:
            self._reject_frozen_write(f"new entry {entry_id}", entry_data if isinstance(entry_data, dict) else {}, actor)
        if role != Role.ADVERSARY:
            raise GuardViolation("entry.create.role", f"Only the adversary role creates entries (got {role.value})")

        report = validate_entry(entry_data, path=f"entry[{entry_id}]")
        if not report.valid:
            raise SchemaError(
                "entry.schema",
                f"Entry {entry_id} is invalid: " + "; ".join(str(e) for e in report.errors),
                details=report.to_dict(),
            )
        if document.find(entry_id) is not None:
            raise SchemaError("entry.duplicate_id", f"Entry {entry_id} already exists")

        entry = FailureEntry.from_dict(copy.deepcopy(entry_data))
        if entry.state != EntryState.UNADDRESSED or entry.status.history:
            raise GuardViolation("entry.create.state", "New entries start unaddressed with no history")

        document.failures.append(entry)
        logger.info(f"Entry {entry.id} added by {actor}")
        return entry

    def update_entry(
        self,
        document: FailureSpecDocument,
        entry_id: str,
        changes: Dict[str, Any],
        actor: str,
        role: Role,
    ) -> FailureEntry:
        """Edit non-status fields of an entry (adversary, before freeze)"""
        index = document.index_of(entry_id)
        if index < 0:
            raise SchemaError("entry.not_found", f"Entry {entry_id} not found")
        if "status" in changes:
            raise GuardViolation("entry.status_write", "Status changes go through the lifecycle engine")

        if document.is_frozen:
            structural = [name for name in changes if name in STRUCTURAL_FIELDS]
            target = f"{document.failures[index].id} ({', '.join(structural or sorted(changes))})"
            self._reject_frozen_write(target, changes, actor)
        if role != Role.ADVERSARY:
            raise GuardViolation("entry.edit.role", f"Only the adversary role edits entries (got {role.value})")

        current = document.failures[index]
        candidate = current.to_dict()
        candidate.update(copy.deepcopy(changes))

        report = validate_entry(candidate, path=f"entry[{current.id}]")
        if not report.valid:
            raise SchemaError(
                "entry.schema",
                f"Edit to {current.id} is invalid: " + "; ".join(str(e) for e in report.errors),
                details=report.to_dict(),
            )
        if candidate["id"] != current.id and document.find(candidate["id"]) is not None:
            raise SchemaError("entry.duplicate_id", f"Entry {candidate['id']} already exists")

        updated = FailureEntry.from_dict(candidate)
        document.failures[index] = updated
        logger.info(f"Entry {updated.id} edited by {actor}: {sorted(changes)}")
        return updated

    def write_status(self, document: FailureSpecDocument, entry_id: str, status: StatusRecord) -> None:
        """Commit a complete status record; the only write allowed after freeze"""
        self.assert_intact(document)
        entry = document.find(entry_id)
        if entry is None:
            raise SchemaError("entry.not_found", f"Entry {entry_id} not found")
        entry.status = status

    # =========================================================================
    # Metadata writes
    # =========================================================================

    def update_metadata(self, document: FailureSpecDocument, changes: Dict[str, Any], actor: str) -> None:
        """Edit metadata before freeze; freeze fields are owned by the freeze manager"""
        if document.is_frozen:
            self._reject_frozen_write("metadata", changes, actor)
        owned = [name for name in changes if name in FROZEN_METADATA_FIELDS]
        if owned:
            raise GuardViolation("metadata.freeze_fields", f"{', '.join(owned)} can only be set by freeze")

        for name in ("feature", "created_by"):
            if name in changes and (not isinstance(changes[name], str) or not changes[name].strip()):
                raise SchemaError(f"metadata.{name}", f"{name} must be a non-empty string")

        metadata = document.metadata
        for name, value in changes.items():
            if name in ("feature", "created_by"):
                setattr(metadata, name, value)
            else:
                metadata.extra[name] = copy.deepcopy(value)
        logger.info(f"Metadata updated by {actor}: {sorted(changes)}")
