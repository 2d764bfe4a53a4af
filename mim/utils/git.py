"""
Mim - Git helpers
Thin subprocess wrappers. A missing git binary or a directory outside any
repository both read as "no repository".
"""
import subprocess
from pathlib import Path
from typing import List, Optional

GIT_TIMEOUT_S = 30


def run_git(args: List[str], cwd, timeout: float = GIT_TIMEOUT_S) -> Optional[str]:
    """Run git and return stripped stdout, or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def resolve_head(repo_root) -> Optional[str]:
    """Current HEAD commit hash, or None if this is not a git repository."""
    head = run_git(["rev-parse", "HEAD"], cwd=repo_root)
    return head or None


def find_repo_root(start) -> Optional[Path]:
    """Top-level directory of the repository containing `start`."""
    top = run_git(["rev-parse", "--show-toplevel"], cwd=start)
    return Path(top) if top else None
