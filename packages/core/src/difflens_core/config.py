import os
from pathlib import Path
from typing import Optional

import yaml

PROVIDERS = ("moonshot", "anthropic", "openai")

DEFAULT_CONFIG: dict = {
    "model": "moonshot",
    "model_name": None,  # None = provider default; set to override e.g. "gpt-4o-mini"
    "max_chars": 24000,  # diff characters per LLM request
    "timeout": 60,  # seconds per request
    "max_attempts": 3,
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "vendor/", "*.min.js")
}

API_KEY_ENV = {
    "moonshot": "MOONSHOT_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def load_config(config_path: str = ".difflens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .difflens.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path}: expected a mapping at the top level")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    for provider, env_var in API_KEY_ENV.items():
        config[f"{provider}_api_key"] = os.environ.get(env_var)

    return config


def api_key_for(config: dict) -> Optional[str]:
    """Return the API key for the configured provider, or None if unset."""
    return config.get(f"{config['model']}_api_key")
