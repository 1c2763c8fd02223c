"""Typed failures raised across the review pipeline.

Every error carries the component it came from so the CLI can tell the user
*where* a run stopped ("git", "prompt", "llm") as well as why.
"""

from __future__ import annotations


class DiffLensError(Exception):
    """Base class for all pipeline failures."""

    component = "difflens"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.component}] {self.message}"


# ---------------------------------------------------------------------------
# Diff source
# ---------------------------------------------------------------------------


class NotAGitRepository(DiffLensError):
    component = "git"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The directory '{path}' is not a git repository")


class GitCommandError(DiffLensError):
    """git is missing, or a git command exited non-zero."""

    component = "git"


class NoChangesDetected(DiffLensError):
    """Nothing to review. A normal outcome, not a failure."""

    component = "git"

    def __init__(self, path: str | None = None):
        self.path = path
        super().__init__(f"No unstaged changes found in '{path}'" if path else "No changes to review")


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


class PayloadTooLarge(DiffLensError):
    component = "prompt"

    def __init__(self, path: str, hunk_header: str, size: int, limit: int):
        self.path = path
        self.hunk_header = hunk_header
        self.size = size
        self.limit = limit
        super().__init__(
            f"Hunk {hunk_header!r} in {path} is {size} characters, over the {limit}-character "
            "payload budget. Split this change manually or raise max_chars."
        )


# ---------------------------------------------------------------------------
# LLM transport: single-attempt outcomes raised by provider _call_api
# ---------------------------------------------------------------------------


class TransportTimeout(DiffLensError):
    component = "llm"


class TransportFailure(DiffLensError):
    component = "llm"


class RequestRejected(DiffLensError):
    component = "llm"


# ---------------------------------------------------------------------------
# LLM transport: run-level outcomes raised by the review client
# ---------------------------------------------------------------------------


class LLMUnavailable(DiffLensError):
    component = "llm"

    def __init__(self, provider: str, attempts: int, cause: Exception):
        self.provider = provider
        self.attempts = attempts
        self.cause = cause
        if isinstance(cause, TransportTimeout):
            reason = "timed out"
        else:
            reason = f"failed ({cause.message if isinstance(cause, DiffLensError) else cause})"
        super().__init__(f"LLM {reason} after {attempts} attempts ({provider})")


class LLMRequestRejected(DiffLensError):
    component = "llm"

    def __init__(self, provider: str, cause: Exception):
        self.provider = provider
        self.cause = cause
        detail = cause.message if isinstance(cause, DiffLensError) else str(cause)
        super().__init__(f"{provider} rejected the request: {detail}")
