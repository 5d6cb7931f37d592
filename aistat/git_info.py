from __future__ import annotations

import subprocess
from pathlib import Path


def branch_name(repo_path: str | Path) -> str:
    """Current branch of the repository at ``repo_path``; empty when it cannot be determined."""
    if not str(repo_path).strip():
        return ""
    try:
        result = subprocess.run(
            ["git", "-C", str(repo_path), "rev-parse", "--abbrev-ref", "HEAD"],
            check=False,
            capture_output=True,
            text=True,
            timeout=2,
        )
    except (OSError, subprocess.TimeoutExpired):
        return ""

    if result.returncode != 0:
        return ""
    branch = result.stdout.strip()
    if branch == "HEAD":
        # Detached head; no branch to report.
        return ""
    return branch
