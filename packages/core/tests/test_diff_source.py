"""Tests for the local git diff source, against real temporary repositories."""

import shutil
import subprocess

import pytest

from difflens_core.errors import GitCommandError, NoChangesDetected, NotAGitRepository
from difflens_core.git.diff_source import collect_changes, validate_repository
from difflens_core.models import LineKind

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo, *args):
    subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)


@pytest.fixture
def repo(tmp_path):
    _git(tmp_path, "init")
    _git(tmp_path, "config", "user.email", "test@example.com")
    _git(tmp_path, "config", "user.name", "Test User")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    (tmp_path / "test.txt").write_text("initial content\n")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-m", "Initial commit")
    return tmp_path


def test_validate_accepts_repository(repo):
    validate_repository(repo)


def test_validate_accepts_subdirectory(repo):
    sub = repo / "pkg"
    sub.mkdir()
    validate_repository(sub)


def test_validate_rejects_plain_directory(tmp_path):
    with pytest.raises(NotAGitRepository, match="not a git repository"):
        validate_repository(tmp_path)


def test_missing_directory_is_reported(tmp_path):
    with pytest.raises(GitCommandError, match="Cannot access directory"):
        validate_repository(tmp_path / "missing")


def test_no_changes(repo):
    with pytest.raises(NoChangesDetected):
        collect_changes(repo)


def test_unstaged_modification_collected(repo):
    (repo / "test.txt").write_text("modified content\n")
    changeset = collect_changes(repo)
    assert changeset.paths == ["test.txt"]
    lines = changeset.files[0].hunks[0].lines
    assert (LineKind.REMOVED, "initial content") in lines
    assert (LineKind.ADDED, "modified content") in lines
    assert changeset.total_line_count == 2


def test_untracked_files_ignored(repo):
    (repo / "untracked.py").write_text("x = 1\n")
    with pytest.raises(NoChangesDetected):
        collect_changes(repo)


def test_staged_only_changes_ignored(repo):
    (repo / "test.txt").write_text("staged content\n")
    _git(repo, "add", "test.txt")
    with pytest.raises(NoChangesDetected):
        collect_changes(repo)


def test_excluded_and_non_code_files_skipped(repo):
    (repo / "test.txt").write_text("modified content\n")
    (repo / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x01")
    with pytest.raises(NoChangesDetected):
        collect_changes(repo, exclude=["*.txt"])


def test_non_ascii_path_collected(repo):
    (repo / "café.py").write_text("x = 1\n", encoding="utf-8")
    (repo / "plain.py").write_text("y = 1\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "Add files")
    _git(repo, "config", "core.quotePath", "true")
    (repo / "café.py").write_text("x = 2\n", encoding="utf-8")
    (repo / "plain.py").write_text("y = 2\n")

    changeset = collect_changes(repo)

    assert sorted(changeset.paths) == ["café.py", "plain.py"]


@pytest.mark.parametrize(
    "key, value",
    [("diff.mnemonicPrefix", "true"), ("diff.noprefix", "true")],
)
def test_diff_prefix_config_does_not_hide_changes(repo, key, value):
    _git(repo, "config", key, value)
    (repo / "test.txt").write_text("modified content\n")

    changeset = collect_changes(repo)

    assert changeset.paths == ["test.txt"]
    assert (LineKind.ADDED, "modified content") in changeset.files[0].hunks[0].lines
