"""Bedrock text-generation client for chunk reviews."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
from botocore.config import Config as BotoConfig

from prreview.config import ReviewSettings
from prreview.errors import GenerationFailure

logger = logging.getLogger(__name__)

# Type alias for progress callbacks: (chars_so_far, elapsed_seconds, message) -> None
ProgressCallback = Callable[[int, float, str], None]

USAGE_HEADER = (
    "timestamp\tmodel\ttool\tinput_tokens\toutput_tokens\ttotal_tokens\tlatency_ms"
)

_STREAM_ERROR_KEYS = (
    "internalServerException",
    "modelStreamErrorException",
    "throttlingException",
    "validationException",
)


class TextGenerator(Protocol):
    """Anything that turns a system prompt and a user message into text."""

    def invoke(
        self,
        system_prompt: str,
        user_message: str,
        tool: str = "unknown",
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[str, str]:
        """Return ``(text, stop_reason)``; raise GenerationFailure on error."""
        ...


# ── Usage log ────────────────────────────────────────────────────────────────


def usage_logger(path: str) -> logging.Logger:
    """Dedicated TSV file logger for token usage, one per log path."""
    log_path = Path(path)
    usage = logging.getLogger(f"prreview.usage.{log_path.resolve()}")
    usage.setLevel(logging.INFO)
    usage.propagate = False

    if usage.handlers:
        return usage

    log_path.parent.mkdir(parents=True, exist_ok=True)
    # Check before the handler creates the file
    needs_header = not log_path.exists() or log_path.stat().st_size == 0

    handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    usage.addHandler(handler)

    if needs_header:
        usage.info(USAGE_HEADER)
    return usage


def _report(on_progress: ProgressCallback, chars: int, elapsed: float, msg: str) -> None:
    try:
        on_progress(chars, elapsed, msg)
    except Exception as cb_err:
        logger.warning("on_progress callback raised: %s", cb_err)


# ── Bedrock client ───────────────────────────────────────────────────────────


class BedrockClient:
    """Streaming Bedrock (Anthropic messages API) client.

    The boto3 runtime client is created on first use; pass ``client`` to
    supply one directly.
    """

    def __init__(self, settings: ReviewSettings, client: Any = None):
        self.settings = settings
        self._client = client
        self._usage: Optional[logging.Logger] = None

    @property
    def client(self) -> Any:
        if self._client is None:
            session = boto3.Session(
                profile_name=self.settings.bedrock_profile,
                region_name=self.settings.bedrock_region,
            )
            self._client = session.client(
                "bedrock-runtime",
                config=BotoConfig(
                    retries={"max_attempts": 2, "mode": "adaptive"},
                    read_timeout=120,
                    connect_timeout=10,
                ),
            )
            logger.info(
                "Bedrock client initialized: profile=%s region=%s model=%s",
                self.settings.bedrock_profile,
                self.settings.bedrock_region,
                self.settings.model_id,
            )
        return self._client

    def _log_usage(
        self, tool: str, input_tokens: int, output_tokens: int, latency_ms: int
    ) -> None:
        total = input_tokens + output_tokens
        logger.info(
            "Bedrock usage [%s]: input=%d output=%d total=%d latency=%dms",
            tool,
            input_tokens,
            output_tokens,
            total,
            latency_ms,
        )

        if self._usage is None:
            self._usage = usage_logger(self.settings.usage_log_path)
        self._usage.info(
            "%s\t%s\t%s\t%d\t%d\t%d\t%d",
            datetime.now(timezone.utc).isoformat(),
            self.settings.model_id,
            tool,
            input_tokens,
            output_tokens,
            total,
            latency_ms,
        )

    def invoke(
        self,
        system_prompt: str,
        user_message: str,
        tool: str = "unknown",
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[str, str]:
        """
        Stream one inference request and return the generated text.

        Args:
            system_prompt: The reviewer instructions
            user_message: The chunk's diff embedded in the review template
            tool: Label for logging (e.g. "review_chunk[2/5]")
            on_progress: Optional callback called during streaming with
                         (chars_so_far, elapsed_seconds, message)

        Returns:
            Tuple of (text, stop_reason). stop_reason is 'end_turn',
            'max_tokens', 'stop_sequence' or 'unknown'.

        Raises:
            GenerationFailure: If the request or the stream fails
        """
        body = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_message}],
        }

        start = time.monotonic()
        logger.info("Bedrock stream starting [%s] model=%s", tool, self.settings.model_id)

        text_parts: list[str] = []
        total_chars = 0
        input_tokens = 0
        output_tokens = 0
        stop_reason = "unknown"

        try:
            response = self.client.invoke_model_with_response_stream(
                modelId=self.settings.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )

            for event in response["body"]:
                if "chunk" not in event:
                    for key in _STREAM_ERROR_KEYS:
                        if key in event:
                            err_msg = event[key].get("message", str(event[key]))
                            raise GenerationFailure(
                                f"Bedrock stream error ({key}): {err_msg}",
                                origin="bedrock",
                            )
                    logger.warning("Unknown non-chunk event in stream: %s", list(event))
                    continue

                try:
                    payload = json.loads(event["chunk"]["bytes"])
                except (json.JSONDecodeError, KeyError) as parse_err:
                    logger.warning("Malformed stream chunk, skipping: %s", parse_err)
                    continue

                kind = payload.get("type", "")
                if kind == "content_block_delta":
                    delta = payload.get("delta", {})
                    if delta.get("type") == "text_delta":
                        text = delta.get("text", "")
                        text_parts.append(text)
                        total_chars += len(text)
                        if on_progress and len(text_parts) % 20 == 0:
                            elapsed = time.monotonic() - start
                            _report(
                                on_progress,
                                total_chars,
                                elapsed,
                                f"streaming {total_chars} chars, {elapsed:.0f}s",
                            )
                elif kind == "message_delta":
                    stop_reason = payload.get("delta", {}).get("stop_reason", "unknown")
                    output_tokens = payload.get("usage", {}).get("output_tokens", 0)
                elif kind == "message_start":
                    input_tokens = (
                        payload.get("message", {}).get("usage", {}).get("input_tokens", 0)
                    )

        except GenerationFailure:
            raise
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.error("Bedrock inference failed after %dms: %s", latency_ms, e)
            raise GenerationFailure(
                f"Bedrock inference failed: {e}", origin="bedrock"
            ) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        self._log_usage(tool, input_tokens, output_tokens, latency_ms)

        if stop_reason == "max_tokens":
            logger.warning(
                "Response truncated (hit max_tokens=%d) for tool=%s",
                self.settings.max_tokens,
                tool,
            )

        full_text = "".join(text_parts)
        if not full_text:
            logger.warning("Empty response from Bedrock stream for tool=%s", tool)
        return full_text, stop_reason
