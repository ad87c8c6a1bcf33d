"""Review orchestration: segment, generate per chunk, parse, aggregate."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from prreview.aggregator import aggregate
from prreview.chunking import segment
from prreview.config import ReviewSettings
from prreview.diff_parser import diff_stats, parse_diff
from prreview.llm import ProgressCallback, TextGenerator
from prreview.llm_parsing import degraded_result, parse_review_response
from prreview.models import Chunk, FileRef, FinalReport, ParsedResult
from prreview.prompts import build_review_message
from prreview.sinks import ReportSink
from prreview.sources import DiffSource

logger = logging.getLogger(__name__)

EMPTY_DIFF_SUMMARY = "No changes to review."


# ── Per-chunk Review ─────────────────────────────────────────────────────────


def review_chunk(
    chunk: Chunk,
    generator: TextGenerator,
    settings: ReviewSettings,
    index: int = 0,
    total: int = 1,
    on_progress: Optional[ProgressCallback] = None,
) -> ParsedResult:
    """Send one chunk for review and parse the reply.

    A failed generation call does not propagate: it is logged and replaced
    by the degraded result so the remaining chunks still get reviewed.
    """
    tool_label = f"review_chunk[{index + 1}/{total}]" if total > 1 else "review_chunk"
    logger.info(
        "Reviewing chunk %d/%d: files=[%s] (%d chars)",
        index + 1,
        total,
        ", ".join(chunk.files),
        chunk.size,
    )

    user_message = build_review_message(chunk.content, chunk.files)
    try:
        response_text, stop_reason = generator.invoke(
            system_prompt=settings.system_prompt,
            user_message=user_message,
            tool=tool_label,
            on_progress=on_progress,
        )
    except RuntimeError as e:
        # GenerationFailure, or a RuntimeError from a non-Bedrock generator
        logger.error("Generation failed for chunk %d/%d: %s", index + 1, total, e)
        return degraded_result(str(e))

    if stop_reason == "max_tokens":
        logger.warning("Chunk %d/%d reply was truncated; parsing what arrived", index + 1, total)

    return parse_review_response(response_text, chunk.files)


# ── Main Review Functions ────────────────────────────────────────────────────


def review_diff(
    diff_text: str,
    files: Sequence[FileRef],
    generator: TextGenerator,
    settings: Optional[ReviewSettings] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> FinalReport:
    """
    Review a unified diff chunk by chunk and merge the findings.

    Chunks are processed strictly in order; chunk N+1 is not requested
    until chunk N has been answered and parsed.

    Args:
        diff_text: Unified diff of the change under review
        files: Changed files (paths or GitHub file payloads)
        generator: Text-generation collaborator
        settings: Run settings; defaults to ReviewSettings()
        on_progress: Optional callback for streaming progress updates
    """
    settings = settings or ReviewSettings()

    if not diff_text.strip():
        logger.info("Empty diff, nothing to review")
        return FinalReport(summary=EMPTY_DIFF_SUMMARY)

    stats = diff_stats(parse_diff(diff_text))
    chunks = segment(diff_text, files, settings.max_chunk_size)
    logger.info(
        "Analyzing %d changed file(s) (+%d/-%d lines), split into %d chunk(s)",
        len(files),
        stats["lines_added"],
        stats["lines_removed"],
        len(chunks),
    )

    results: list[ParsedResult] = []
    for index, chunk in enumerate(chunks):
        results.append(
            review_chunk(
                chunk,
                generator,
                settings,
                index=index,
                total=len(chunks),
                on_progress=on_progress,
            )
        )

    report = aggregate(results, len(files))
    logger.info(
        "Review complete: %d issue(s), %d suggestion(s) across %d section(s)",
        len(report.issues),
        len(report.suggestions),
        report.review_count,
    )
    return report


def run_review(
    source: DiffSource,
    generator: TextGenerator,
    sink: ReportSink,
    settings: Optional[ReviewSettings] = None,
) -> FinalReport:
    """Fetch, review and deliver.

    Raises:
        SourceUnavailable: The diff could not be obtained
        DeliveryFailure: The sink rejected the report
    """
    diff_text, files = source.fetch()
    report = review_diff(diff_text, files, generator, settings)
    sink.deliver(report)
    return report
