from __future__ import annotations

try:
    import openai as _openai
    from openai import OpenAI as _OpenAI
except ImportError:
    _openai = None  # type: ignore[assignment]
    _OpenAI = None  # type: ignore[assignment,misc]

from difflens_core.errors import TransportFailure
from difflens_core.providers.base import BaseReviewer, classify_sdk_error


class OpenAIReviewer(BaseReviewer):
    NAME = "openai"
    MODEL = "gpt-4o"
    # low temperature keeps the section layout stable
    TEMPERATURE = 0.2
    BASE_URL: str | None = None
    EXTRA = "openai"

    def __init__(
        self,
        api_key: str,
        timeout: float | None = None,
        max_attempts: int | None = None,
        model: str | None = None,
    ):
        super().__init__(timeout=timeout, max_attempts=max_attempts)
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. "
                f"Install it with: pip install 'difflens[{self.EXTRA}]'"
            )
        if model:
            self.MODEL = model
        # max_retries=0: retries are handled by BaseReviewer._call_with_retry.
        self.client = _OpenAI(api_key=api_key, base_url=self.BASE_URL, timeout=self.TIMEOUT, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except _openai.APIError as e:
            raise classify_sdk_error(_openai, e) from e
        if not response.choices:
            raise TransportFailure(f"No response from {self.NAME} API")
        return (response.choices[0].message.content or "").strip()

    def close(self) -> None:
        self.client.close()
