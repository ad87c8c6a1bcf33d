"""Merge per-chunk results into one final report."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from prreview.models import FinalReport, IssueRecord, ParsedResult

logger = logging.getLogger(__name__)


def dedupe_issues(issues: Iterable[IssueRecord]) -> list[IssueRecord]:
    """Keep the first issue per case-insensitive title+file key."""
    seen: dict[str, IssueRecord] = {}
    for issue in issues:
        seen.setdefault(issue.dedupe_key, issue)
    return list(seen.values())


def aggregate(results: Sequence[ParsedResult], total_file_count: int) -> FinalReport:
    """Combine chunk results in order.

    Issues are de-duplicated across the whole run; suggestions are
    concatenated as-is, so the same suggestion from two chunks appears twice.
    """
    all_issues = [issue for r in results for issue in r.issues]
    all_suggestions = [s for r in results for s in r.suggestions]

    issues = dedupe_issues(all_issues)
    if len(issues) < len(all_issues):
        logger.debug(
            "Dropped %d duplicate issue(s) across chunks",
            len(all_issues) - len(issues),
        )

    return FinalReport(
        summary=f"Analyzed {total_file_count} file(s) across {len(results)} section(s)",
        issues=issues,
        suggestions=all_suggestions,
        review_count=len(results),
    )
