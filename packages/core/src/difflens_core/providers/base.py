"""Base reviewer implementing the Template Method pattern.

All providers share the same request algorithm:
    submit(payload) → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response, raising
    TransportTimeout, TransportFailure or RequestRejected on failure
  - close (optional): release the SDK's HTTP client

Retry and backoff live here so every provider classifies failures the same
way: timeouts and transport failures are retried, rejections are not.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from difflens_core.errors import (
    LLMRequestRejected,
    LLMUnavailable,
    RequestRejected,
    TransportFailure,
    TransportTimeout,
)

if TYPE_CHECKING:
    from difflens_core.models import Payload

logger = logging.getLogger(__name__)

# Shared defaults; subclasses override them as class attributes.
_MAX_ATTEMPTS = 3
_MAX_TOKENS = 4096
_TIMEOUT = 60.0


class BaseReviewer(ABC):
    MAX_ATTEMPTS: int = _MAX_ATTEMPTS
    MAX_TOKENS: int = _MAX_TOKENS
    TIMEOUT: float = _TIMEOUT
    NAME: str = "llm"

    def __init__(self, timeout: float | None = None, max_attempts: int | None = None):
        if timeout is not None:
            self.TIMEOUT = timeout
        if max_attempts is not None:
            if max_attempts < 1:
                raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
            self.MAX_ATTEMPTS = max_attempts

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def submit(self, payload: Payload) -> str:
        """Send one payload and return the model's raw text.

        Raises LLMUnavailable once every attempt has timed out or failed in
        transport, and LLMRequestRejected as soon as the provider refuses the
        request.
        """
        logger.debug(
            "%s: submitting chunk %d/%d (%d chars)",
            self.NAME,
            payload.chunk_index,
            payload.chunk_count,
            len(payload.prompt),
        )
        return self._call_with_retry(payload.system, payload.prompt)

    def close(self) -> None:
        """Release the underlying HTTP client. Default is a no-op."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------ #
    # Abstract: implemented by each provider                              #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Call _call_api up to MAX_ATTEMPTS times with exponential backoff."""
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                return self._call_api(system_prompt, user_prompt)
            except RequestRejected as e:
                logger.error("%s rejected the request: %s", self.NAME, e.message)
                raise LLMRequestRejected(self.NAME, e) from e
            except (TransportTimeout, TransportFailure) as e:
                if attempt == self.MAX_ATTEMPTS - 1:
                    logger.error("%s API failed after %d attempts: %s", self.NAME, self.MAX_ATTEMPTS, e.message)
                    raise LLMUnavailable(self.NAME, self.MAX_ATTEMPTS, e) from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.NAME,
                    attempt + 1,
                    self.MAX_ATTEMPTS,
                    e.message,
                    delay,
                )
                time.sleep(delay)
        raise LLMUnavailable(self.NAME, 0, TransportFailure("no attempts configured"))


# Status codes worth retrying: request timeout, conflict, rate limit.
_RETRYABLE_STATUS = {408, 409, 429}


def classify_sdk_error(sdk, error: Exception) -> Exception:
    """Map an ``openai``/``anthropic`` SDK exception to a transport outcome.

    Both SDKs expose the same exception hierarchy, so one mapping serves every
    provider. Exceptions that are not SDK API errors are returned unchanged.
    """
    if isinstance(error, sdk.APITimeoutError):
        return TransportTimeout(f"request timed out: {error}")
    if isinstance(error, sdk.APIConnectionError):
        return TransportFailure(f"connection error: {error}")
    if isinstance(error, sdk.APIStatusError):
        status = error.status_code
        if status >= 500 or status in _RETRYABLE_STATUS:
            return TransportFailure(f"HTTP {status}: {error.message}")
        return RequestRejected(f"HTTP {status}: {error.message}")
    if isinstance(error, sdk.APIError):
        return TransportFailure(str(error))
    return error
