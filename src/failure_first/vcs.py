"""
Version control lookups used to pin a freeze to a commit.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def git_commit(workspace: Optional[Path] = None, timeout_ms: int = 5000) -> Optional[str]:
    """Return the HEAD commit of the workspace, or None outside a git checkout"""
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(workspace) if workspace is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout_ms / 1000,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"git rev-parse unavailable: {e}")
        return None

    if completed.returncode != 0:
        logger.debug(f"git rev-parse failed: {completed.stderr.strip()}")
        return None
    return completed.stdout.strip() or None
