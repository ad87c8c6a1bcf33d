"""Configuration for the chunked pull-request reviewer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from prreview.prompts import REVIEW_SYSTEM

# ── Server Config ────────────────────────────────────────────────────────────
SERVER_NAME = "pr-review-mcp"
SERVER_VERSION = "0.1.0"
SERVER_HOST = "127.0.0.1"
SERVER_PORT = 8089

# ── Bedrock Config ───────────────────────────────────────────────────────────
BEDROCK_PROFILE = "bedrock"
BEDROCK_REGION = "eu-west-1"
BEDROCK_MODEL_ID = "eu.anthropic.claude-sonnet-4-6"
BEDROCK_MAX_TOKENS = 2000
BEDROCK_TEMPERATURE = 0.3

# ── Diff Chunking ────────────────────────────────────────────────────────────
# Max chars of diff text per review request. A file section is kept whole
# even when that pushes a chunk past the limit.
DIFF_CHUNK_MAX_CHARS = 4000

# ── Usage Logging ────────────────────────────────────────────────────────────
USAGE_LOG_PATH = "usage.log"

# ── GitHub ───────────────────────────────────────────────────────────────────
GITHUB_API_URL = "https://api.github.com"
GITHUB_TIMEOUT = 30.0
GITHUB_FILES_PER_PAGE = 100


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _load_system_prompt() -> str:
    prompt_file = os.getenv("REVIEW_SYSTEM_PROMPT_FILE")
    if not prompt_file:
        return REVIEW_SYSTEM
    return Path(prompt_file).read_text(encoding="utf-8")


@dataclass
class ReviewSettings:
    """Settings for one review run.

    Built once at startup and passed to the generation client and the
    orchestrator, instead of module-level singletons.
    """

    # Chunking
    max_chunk_size: int = DIFF_CHUNK_MAX_CHARS

    # Text generation
    bedrock_profile: Optional[str] = BEDROCK_PROFILE
    bedrock_region: str = BEDROCK_REGION
    model_id: str = BEDROCK_MODEL_ID
    max_tokens: int = BEDROCK_MAX_TOKENS
    temperature: float = BEDROCK_TEMPERATURE
    system_prompt: str = REVIEW_SYSTEM

    # Usage log (TSV, one row per generation call)
    usage_log_path: str = USAGE_LOG_PATH

    # GitHub
    github_api_url: str = GITHUB_API_URL
    github_token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "ReviewSettings":
        """Create settings from environment variables."""
        return cls(
            max_chunk_size=_env_int("REVIEW_MAX_CHUNK_SIZE", DIFF_CHUNK_MAX_CHARS),
            bedrock_profile=os.getenv("BEDROCK_PROFILE", BEDROCK_PROFILE) or None,
            bedrock_region=os.getenv("BEDROCK_REGION", BEDROCK_REGION),
            model_id=os.getenv("BEDROCK_MODEL_ID", BEDROCK_MODEL_ID),
            max_tokens=_env_int("BEDROCK_MAX_TOKENS", BEDROCK_MAX_TOKENS),
            system_prompt=_load_system_prompt(),
            usage_log_path=os.getenv("REVIEW_USAGE_LOG", USAGE_LOG_PATH),
            github_api_url=os.getenv("GITHUB_API_URL", GITHUB_API_URL),
            github_token=os.getenv("GITHUB_TOKEN"),
        )
