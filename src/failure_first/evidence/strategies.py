"""
Evidence Strategies

Each strategy turns an entry's evidence requirement into observable proof.
Absence or ambiguity of proof is always a failure result, never success.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..document import FailureEntry, content_fingerprint
from ..main import EvidenceType, HarnessConfig

logger = logging.getLogger(__name__)

LOCATION_PATTERN = re.compile(r"^(.+?)(?::(\d+)(?:-(\d+))?)?$")
CRITERIA_TEST_PATTERN = re.compile(r"\btest[_\-]?(\w+)", re.IGNORECASE)
EXTERNAL_MARKERS = ("external", "infrastructure")


@dataclass
class EvidenceResult:
    """Outcome of one evidence collection attempt"""
    success: bool
    method: str = ""
    evidence: Optional[str] = None
    evidence_fingerprint: Optional[str] = None
    error: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def failure(cls, error: str, method: str = "", note: Optional[str] = None) -> "EvidenceResult":
        return cls(success=False, method=method, error=error, note=note)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "method": self.method,
            "evidence": self.evidence,
            "evidence_fingerprint": self.evidence_fingerprint,
            "error": self.error,
            "note": self.note,
        }


class EvidenceStrategy(ABC):
    """Interface shared by every evidence kind"""

    name: str = "base"

    def __init__(self, config: Optional[HarnessConfig] = None):
        self.config = config or HarnessConfig()

    def _truncate(self, text: str) -> str:
        return text[: self.config.evidence_max_chars]

    @abstractmethod
    async def execute(self, entry: FailureEntry, workspace: Path) -> EvidenceResult:
        """Collect evidence for entry inside workspace"""
        pass


class ExecutableTestStrategy(EvidenceStrategy):
    """
    Runs the test artifact that belongs to an entry.

    The artifact is found by id convention (``tests/test_f001.py``,
    ``test/f001.test.js``, ...) or by a ``test_<name>`` identifier in the
    evidence criteria. Success means exit status zero within the timeout.
    """

    name = "executable_test"

    def __init__(self, config: Optional[HarnessConfig] = None, missing_hint: Optional[str] = None):
        super().__init__(config)
        self.missing_hint = missing_hint

    def find_artifact(self, entry: FailureEntry, workspace: Path) -> Optional[Path]:
        """Locate the test artifact for entry, or None"""
        for pattern in self.config.test_patterns:
            candidate = workspace / pattern.format(id=entry.id, id_lower=entry.id.lower())
            if candidate.is_file():
                return candidate

        match = CRITERIA_TEST_PATTERN.search(entry.evidence_requirement.criteria or "")
        if match:
            stem = match.group(0)
            for directory in ("test", "tests"):
                for suffix in self.config.test_runners:
                    candidate = workspace / directory / f"{stem}{suffix}"
                    if candidate.is_file():
                        return candidate
        return None

    async def execute(self, entry: FailureEntry, workspace: Path) -> EvidenceResult:
        artifact = self.find_artifact(entry, workspace)
        if artifact is None:
            error = f"No test artifact found for {entry.id}"
            if self.missing_hint:
                error = f"{error} - {self.missing_hint}"
            return EvidenceResult.failure(error)

        relative = _relative(artifact, workspace)
        method = f"Executed test: {relative}"

        runner = self.config.test_runners.get(artifact.suffix)
        if not runner:
            return EvidenceResult.failure(f"No runner configured for {artifact.suffix} files", method=method)

        exit_code, output, error = await self._run(list(runner) + [str(artifact.resolve())], workspace)
        if error:
            return EvidenceResult.failure(error, method=method)

        passed = exit_code == 0
        logger.debug(f"[{entry.id}] {relative} exited {exit_code}")
        return EvidenceResult(
            success=passed,
            method=method,
            evidence=self._truncate(output),
            evidence_fingerprint=content_fingerprint(output),
            error=None if passed else f"Test failed with exit code {exit_code}",
        )

    async def _run(self, argv: List[str], cwd: Path) -> Tuple[Optional[int], str, Optional[str]]:
        """Run argv and return (exit code, combined output, error)"""
        timeout = self.config.evidence_timeout_ms / 1000
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            return None, "", f"Test execution failed: {e}"

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return None, "", f"Test timed out after {self.config.evidence_timeout_ms}ms"

        return process.returncode, stdout.decode("utf-8", errors="replace"), None


class InspectionStrategy(EvidenceStrategy):
    """
    Code-review evidence: reads the guardrail location.

    Location format is ``path[:start[-end]]``. With only a start line a
    window of ``inspection_window`` lines follows it; with no lines the
    first ``inspection_prefix_chars`` characters are used.
    """

    name = "inspection"

    async def execute(self, entry: FailureEntry, workspace: Path) -> EvidenceResult:
        guardrail = entry.status.guardrail
        if guardrail is None or not (guardrail.location or "").strip():
            return EvidenceResult.failure("No implementation location specified for code review")

        location = guardrail.location.strip()
        match = LOCATION_PATTERN.match(location)
        if not match:
            return EvidenceResult.failure(f"Cannot parse location: {location}")

        file_path, start, end = match.groups()
        full_path = (workspace / file_path).resolve()

        if not _is_within(full_path, workspace):
            return EvidenceResult.failure(f"Location escapes the workspace: {location}")

        if not full_path.exists():
            if any(marker in location.lower() for marker in EXTERNAL_MARKERS):
                return EvidenceResult(
                    success=True,
                    method="External dependency - delegated verification",
                    evidence=f"Implementation delegated to: {location}",
                    evidence_fingerprint=content_fingerprint(location),
                    note="External implementations require separate verification",
                )
            return EvidenceResult.failure(f"File not found: {file_path}")

        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return EvidenceResult.failure(f"Cannot read file: {e}")

        lines = content.split("\n")
        first = max(int(start), 1) if start else 0
        if start and end:
            excerpt = "\n".join(lines[first - 1:int(end)])
        elif start:
            excerpt = "\n".join(lines[first - 1:first + self.config.inspection_window])
        else:
            excerpt = content[: self.config.inspection_prefix_chars]

        if not excerpt.strip():
            return EvidenceResult.failure(f"Location {location} points at no content")

        return EvidenceResult(
            success=True,
            method=f"Code review: {file_path}",
            evidence=self._truncate(excerpt),
            evidence_fingerprint=content_fingerprint(content),
        )


class ManualStrategy(EvidenceStrategy):
    """Human-only evidence; cannot be captured automatically"""

    name = "manual"

    async def execute(self, entry: FailureEntry, workspace: Path) -> EvidenceResult:
        kind = entry.evidence_requirement.type
        if EvidenceType.parse(kind) in (EvidenceType.MANUAL, EvidenceType.MANUAL_TEST):
            error = "Manual evidence type requires human verification"
        else:
            error = f'Unrecognised evidence type "{kind}" requires human verification'
        return EvidenceResult.failure(error, note="Convert to automated test for CI verification")


def _relative(path: Path, workspace: Path) -> str:
    try:
        return str(path.relative_to(workspace))
    except ValueError:
        return str(path)


def _is_within(path: Path, workspace: Path) -> bool:
    root = workspace.resolve()
    return path == root or root in path.parents
