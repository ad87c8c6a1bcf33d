"""MCP tool definitions for the pull-request reviewer."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import traceback
from typing import Optional

from fastmcp import Context, FastMCP

from prreview.analyzer import review_diff as _review_diff
from prreview.chunking import segment
from prreview.config import ReviewSettings
from prreview.diff_parser import changed_files
from prreview.llm import BedrockClient, TextGenerator
from prreview.llm_parsing import parse_review_response

logger = logging.getLogger(__name__)


def _error_response(tool_name: str, error: Exception) -> str:
    """Build a structured JSON error response for MCP tool failures."""
    logger.error("Tool %s failed: %s\n%s", tool_name, error, traceback.format_exc())
    return json.dumps(
        {
            "summary": f"Tool '{tool_name}' failed: {error}",
            "stats": {"critical": 0, "high": 0, "medium": 0, "low": 0, "total": 0},
            "issues": [],
            "suggestions": [],
            "reviewCount": 0,
            "error": str(error),
        },
        indent=2,
    )


def _parse_files(files: Optional[str], diff: str) -> list[str]:
    """Decode the optional JSON file list; default to the diff's headers."""
    if not files:
        return changed_files(diff)
    parsed = json.loads(files)
    if not isinstance(parsed, list):
        raise ValueError("files must be a JSON array of paths")
    return [str(f) for f in parsed]


def _make_progress_bridge(ctx: Context, loop: asyncio.AbstractEventLoop):
    """Sync callback that forwards streaming progress as MCP log notifications."""

    def on_progress(chars_so_far: int, elapsed: float, message: str) -> None:
        try:
            future = asyncio.run_coroutine_threadsafe(
                ctx.log(message=f"[review] {message}", level="info", logger_name="prreview.llm"),
                loop,
            )
            future.result(timeout=2.0)
        except Exception as e:
            logger.warning("Log notification failed: %s", e)

    return on_progress


def register_tools(
    mcp: FastMCP,
    settings: ReviewSettings,
    generator: Optional[TextGenerator] = None,
) -> None:
    """Register the review tools on the given FastMCP server instance."""
    generator = generator or BedrockClient(settings)

    def _settings_for(max_chunk_size: Optional[int]) -> ReviewSettings:
        if max_chunk_size is None:
            return settings
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        return dataclasses.replace(settings, max_chunk_size=max_chunk_size)

    @mcp.tool()
    async def review_diff(
        diff: str,
        ctx: Context,
        files: Optional[str] = None,
        max_chunk_size: Optional[int] = None,
    ) -> str:
        """Review a unified diff and return merged findings.

        The diff is split into chunks, each chunk is reviewed separately and
        the findings are merged and de-duplicated into one report.

        Args:
            diff: The unified diff (e.g., from `git diff main...HEAD`)
            files: Optional JSON array of changed file paths; defaults to
                   the paths found in the diff headers
            max_chunk_size: Optional chunk size in characters (default 4000)
        """
        try:
            run_settings = _settings_for(max_chunk_size)
            file_list = _parse_files(files, diff)
            loop = asyncio.get_running_loop()

            report = await asyncio.to_thread(
                _review_diff,
                diff,
                file_list,
                generator,
                run_settings,
                _make_progress_bridge(ctx, loop),
            )
            return report.to_json()
        except Exception as e:
            return _error_response("review_diff", e)

    @mcp.tool()
    def segment_diff(
        diff: str,
        files: Optional[str] = None,
        max_chunk_size: Optional[int] = None,
    ) -> str:
        """Preview how a diff would be split into review chunks.

        Args:
            diff: The unified diff
            files: Optional JSON array of changed file paths
            max_chunk_size: Optional chunk size in characters (default 4000)
        """
        try:
            run_settings = _settings_for(max_chunk_size)
            chunks = segment(diff, _parse_files(files, diff), run_settings.max_chunk_size)
            return json.dumps([c.to_dict() for c in chunks], indent=2)
        except Exception as e:
            return _error_response("segment_diff", e)

    @mcp.tool()
    def parse_review(text: str, files: Optional[str] = None) -> str:
        """Extract summary, issues and suggestions from a free-form review text.

        Args:
            text: The review text to parse
            files: Optional JSON array of file paths; the first one is used
                   for issues that do not name a file
        """
        try:
            file_list = json.loads(files) if files else []
            return json.dumps(
                parse_review_response(text, file_list).to_dict(),
                indent=2,
                ensure_ascii=False,
            )
        except Exception as e:
            return _error_response("parse_review", e)
