"""Local git access: validate a work tree and read its unstaged changes.

Only unstaged modifications to tracked files are collected (``git diff``
against the index). Untracked files and staged-only changes are out of scope.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from difflens_core.errors import GitCommandError, NoChangesDetected, NotAGitRepository
from difflens_core.models import Changeset
from difflens_core.utils.code import is_code_file, is_excluded
from difflens_core.utils.patch import parse_unified_diff

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 30


def _run_git(repo_path: str | Path, *args: str) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(repo_path),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=_GIT_TIMEOUT,
        )
    except FileNotFoundError as e:
        # Raised both for a missing git binary and a missing cwd.
        if not Path(repo_path).is_dir():
            raise GitCommandError(f"Cannot access directory '{repo_path}'") from e
        raise GitCommandError("git not found. Make sure git is installed and on PATH") from e
    except PermissionError as e:
        raise GitCommandError(f"Cannot access directory '{repo_path}': {e}") from e
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(f"`git {' '.join(args)}` timed out after {_GIT_TIMEOUT}s") from e


def validate_repository(repo_path: str | Path) -> None:
    """Raise NotAGitRepository unless repo_path is inside a git work tree."""
    result = _run_git(repo_path, "rev-parse", "--is-inside-work-tree")
    if result.returncode != 0 or result.stdout.strip() != "true":
        raise NotAGitRepository(str(repo_path))


def get_unstaged_diff(repo_path: str | Path) -> str:
    # Pin the output format against user config (quotePath, mnemonicPrefix,
    # noprefix) that changes the file headers.
    result = _run_git(
        repo_path,
        "-c",
        "core.quotePath=false",
        "diff",
        "--no-color",
        "--no-ext-diff",
        "--src-prefix=a/",
        "--dst-prefix=b/",
    )
    if result.returncode != 0:
        raise GitCommandError(f"Failed to get git diff: {result.stderr.strip()}")
    return result.stdout


def collect_changes(repo_path: str | Path, exclude: list[str] | None = None) -> Changeset:
    """Build the Changeset for unstaged working-tree changes.

    Raises NotAGitRepository / GitCommandError when the repository cannot be
    read, and NoChangesDetected when nothing reviewable remains after
    filtering out excluded and non-code files.
    """
    validate_repository(repo_path)
    files = parse_unified_diff(get_unstaged_diff(repo_path))

    kept = []
    for changed in files:
        if is_excluded(changed.path, exclude or []) or not is_code_file(changed.path):
            logger.debug("Skipping: %s", changed.path)
            continue
        kept.append(changed)

    if not kept:
        raise NoChangesDetected(str(repo_path))
    return Changeset(files=tuple(kept))
