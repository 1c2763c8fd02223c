from __future__ import annotations

from difflens_core.providers.base import BaseReviewer, classify_sdk_error


class AnthropicReviewer(BaseReviewer):
    NAME = "anthropic"
    MODEL = "claude-sonnet-4-20250514"
    # slightly higher than OpenAI; the section layout still holds at 0.3
    TEMPERATURE = 0.3

    def __init__(
        self,
        api_key: str,
        timeout: float | None = None,
        max_attempts: int | None = None,
        model: str | None = None,
    ):
        super().__init__(timeout=timeout, max_attempts=max_attempts)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'difflens[anthropic]'"
            )
        if model:
            self.MODEL = model
        # max_retries=0: retries are handled by BaseReviewer._call_with_retry.
        self.client = Anthropic(api_key=api_key, timeout=self.TIMEOUT, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        import anthropic
        from anthropic.types import TextBlock

        try:
            response = self.client.messages.create(
                model=self.MODEL,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except anthropic.APIError as e:
            raise classify_sdk_error(anthropic, e) from e
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    def close(self) -> None:
        self.client.close()
