"""
Freeze Manager

Moves a FailureSpec from authoring to execution. After freeze the
structural fields of every entry are pinned by ``frozen_digest`` and only
status records may change.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .document import FailureSpecDocument, structural_digest
from .main import SPEC_VERSION, Clock, timestamp
from .validation import validate

logger = logging.getLogger(__name__)

FingerprintProvider = Callable[[], Optional[str]]


@dataclass
class FreezeResult:
    """Outcome of a freeze attempt"""
    ok: bool
    document: Optional[FailureSpecDocument] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "errors": list(self.errors),
            "metadata": self.document.metadata.to_dict() if self.document else None,
        }


class FreezeManager:
    """
    Freezes documents that are complete enough to execute against.

    Args:
        clock: Source of the freeze timestamp
        fingerprint_provider: Fallback token for frozen_fingerprint,
            normally the current git commit
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        fingerprint_provider: Optional[FingerprintProvider] = None,
    ):
        self._clock = clock
        self._fingerprint_provider = fingerprint_provider

    def check(self, document: FailureSpecDocument) -> List[str]:
        """Freeze preconditions; an empty list means the document may be frozen"""
        errors: List[str] = []

        if document.version != SPEC_VERSION:
            errors.append(f'Unsupported version "{document.version}" (expected "{SPEC_VERSION}")')
        if not (document.metadata.feature or "").strip():
            errors.append("metadata.feature is required before freeze")
        if document.is_frozen:
            errors.append(f"Spec is already frozen (frozen_at {document.metadata.frozen_at})")
        if not document.failures:
            errors.append("A spec must contain at least one failure before freeze")

        report = validate(document.to_dict())
        errors.extend(str(issue) for issue in report.errors)

        # validate() reports these too; keep the list free of repeats
        unique: List[str] = []
        for message in errors:
            if message not in unique:
                unique.append(message)
        return unique

    def freeze(self, document: FailureSpecDocument, fingerprint: Optional[str] = None) -> FreezeResult:
        """
        Freeze a document.

        The input is never mutated; on success the result carries a frozen
        copy.
        """
        errors = self.check(document)
        if errors:
            logger.warning(f"Freeze refused for {document.metadata.feature!r}: {len(errors)} problem(s)")
            return FreezeResult(ok=False, errors=errors)

        if fingerprint is None and self._fingerprint_provider is not None:
            fingerprint = self._fingerprint_provider()

        frozen = document.copy()
        frozen.metadata.frozen_at = timestamp(self._clock)
        frozen.metadata.frozen_fingerprint = fingerprint
        frozen.metadata.frozen_digest = structural_digest(frozen)

        logger.info(
            f"Spec {frozen.metadata.feature!r} frozen at {frozen.metadata.frozen_at} "
            f"({len(frozen.failures)} failures, {frozen.metadata.frozen_digest})"
        )
        return FreezeResult(ok=True, document=frozen)
