"""
Document Store

Reads and writes FailureSpec and discovery files. JSON by default; paths
ending in .yaml or .yml go through PyYAML. Writes replace the target
atomically so a crash never leaves a half-written document.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .discovery import DiscoveryLedger
from .document import FailureSpecDocument
from .errors import StoreError
from .main import Clock, HarnessConfig
from .validation import ValidationReport, validate

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def load_raw(path: Path) -> Any:
    """Parse a document file without interpreting it"""
    path = Path(path)
    if not path.exists():
        raise StoreError(f"No such file: {path}. Run `ffh init` to create one.")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StoreError(f"Cannot read {path}: {e}") from e

    try:
        if _is_yaml(path):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise StoreError(f"Cannot parse {path}: {e}") from e


def dump_raw(path: Path, data: Dict[str, Any]) -> None:
    """Write a document file atomically"""
    path = Path(path)
    if _is_yaml(path):
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except OSError as e:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StoreError(f"Cannot write {path}: {e}") from e
    logger.debug(f"Wrote {path}")


def load_document(path: Path) -> Tuple[FailureSpecDocument, ValidationReport]:
    """
    Load a FailureSpec.

    Structural validation runs before the typed model is built; a document
    with errors raises StoreError listing them.
    """
    raw = load_raw(path)
    report = validate(raw)
    if not report.valid:
        problems = "\n  ".join(str(issue) for issue in report.errors)
        raise StoreError(f"{path} is not a valid FailureSpec:\n  {problems}")
    try:
        document = FailureSpecDocument.from_dict(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise StoreError(f"{path} is not a valid FailureSpec: {e}") from e
    return document, report


def save_document(path: Path, document: FailureSpecDocument) -> None:
    dump_raw(path, document.to_dict())


def load_ledger(path: Path, clock: Optional[Clock] = None) -> DiscoveryLedger:
    """Load the discovery ledger; a missing file is an empty ledger"""
    path = Path(path)
    if not path.exists():
        return DiscoveryLedger(clock=clock)
    raw = load_raw(path)
    if not isinstance(raw, dict) or not isinstance(raw.get("discoveries", []), list):
        raise StoreError(f"{path} is not a discovery ledger")
    try:
        return DiscoveryLedger.from_dict(raw, clock=clock)
    except (KeyError, ValueError) as e:
        raise StoreError(f"{path} has a malformed discovery: {e}") from e


def save_ledger(path: Path, ledger: DiscoveryLedger) -> None:
    dump_raw(path, ledger.to_dict())


def init_workspace(
    config: HarnessConfig,
    feature: str,
    created_by: str,
    force: bool = False,
) -> Tuple[Path, Path]:
    """Create an empty FailureSpec and discovery ledger"""
    failures_path = config.failures_path
    discoveries_path = config.discoveries_path

    if failures_path.exists() and not force:
        raise StoreError(f"{failures_path} already exists (use --force to overwrite)")

    save_document(failures_path, FailureSpecDocument.new(feature=feature, created_by=created_by))
    if force or not discoveries_path.exists():
        save_ledger(discoveries_path, DiscoveryLedger())

    logger.info(f"Initialised harness in {config.harness_path}")
    return failures_path, discoveries_path
