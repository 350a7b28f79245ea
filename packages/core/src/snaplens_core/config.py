import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from snaplens_core.parser import DEFAULT_POLICY, SeverityPolicy

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "context_lines": 10,
    "custom_prompt": None,  # prepended verbatim to every prompt when set
    "custom_prompt_file": None,  # path to a file holding the custom prompt; used when custom_prompt is unset
    "max_workers": 4,  # concurrent model requests across all threads
    "severity_keywords": None,  # None = built-in tiers; mapping of severity -> keyword list, in priority order
}


def load_config(config_path: str = ".snaplens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .snaplens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_custom_prompt(config: dict) -> Optional[str]:
    """
    Resolve the custom system prompt.

    An inline ``custom_prompt`` wins. Otherwise ``custom_prompt_file`` is read
    (relative to cwd). Returns None when neither is set.
    """
    inline = config.get("custom_prompt")
    if inline:
        return inline

    custom_path = config.get("custom_prompt_file")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Custom prompt file not found: {custom_path}")
        return p.read_text()

    return None


@dataclass(frozen=True)
class ReviewSettings:
    """The read-only settings the session engine consumes."""

    context_lines: int = 10
    custom_prompt: Optional[str] = None
    max_workers: int = 4
    severity_policy: SeverityPolicy = DEFAULT_POLICY

    @classmethod
    def from_config(cls, config: dict) -> "ReviewSettings":
        context_lines = config.get("context_lines", 10)
        if isinstance(context_lines, bool) or not isinstance(context_lines, int) or context_lines < 0:
            raise ValueError(f"context_lines must be a non-negative integer, got {context_lines!r}")

        max_workers = config.get("max_workers", 4)
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ValueError(f"max_workers must be a positive integer, got {max_workers!r}")

        keywords = config.get("severity_keywords")
        policy = SeverityPolicy.from_mapping(keywords) if keywords else DEFAULT_POLICY

        return cls(
            context_lines=context_lines,
            custom_prompt=load_custom_prompt(config),
            max_workers=max_workers,
            severity_policy=policy,
        )
