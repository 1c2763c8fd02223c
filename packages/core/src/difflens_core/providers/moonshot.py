from __future__ import annotations

from difflens_core.providers.openai import OpenAIReviewer


class MoonshotReviewer(OpenAIReviewer):
    """Kimi via Moonshot's OpenAI-compatible chat completions endpoint."""

    NAME = "moonshot"
    MODEL = "kimi-k2-0711-preview"
    TEMPERATURE = 0.3
    BASE_URL = "https://api.moonshot.cn/v1"
    EXTRA = "moonshot"
