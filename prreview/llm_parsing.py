"""Review reply parsing: recover issues and suggestions from free-form text."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Optional

from prreview.models import (
    FileRef,
    IssueRecord,
    ParsedResult,
    Severity,
    file_path,
)

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Code review completed"

FAILED_SUMMARY = "Review failed due to API error. Please check logs."
FAILED_TITLE = "API Error"
FAILED_SUGGESTION = "Fix API configuration and try again"

MIN_SUGGESTION_LENGTH = 10
MIN_BULLET_LENGTH = 20
BULLET_TITLE_LENGTH = 50

# ── Pattern Tables ───────────────────────────────────────────────────────────
# "<label>: rest of line". Emphasis markers around the label and colon are
# tolerated ("**HIGH:** ..."); the body starts at its first real character.
_REST_OF_LINE = r"[*_]*[ \t]*:[*_ \t]*(?P<body>[^\s*][^\n]*)"


def _label(alternatives: str) -> re.Pattern:
    return re.compile(
        rf"(?P<label>{alternatives}){_REST_OF_LINE}", re.IGNORECASE
    )


# Evaluated in order, each independently of the others. A row with a
# severity forces it; rows with None resolve through SEVERITY_LABELS.
ISSUE_PATTERNS: tuple[tuple[re.Pattern, Optional[Severity]], ...] = (
    (_label(r"\bCRITICAL\b|🚨"), Severity.CRITICAL),
    (_label(r"\bHIGH\b|🔴"), Severity.HIGH),
    (_label(r"\bMEDIUM\b|🟡"), Severity.MEDIUM),
    (_label(r"\bLOW\b|🔵"), Severity.LOW),
    (_label(r"\bIssue"), None),
    (_label(r"\bProblem"), None),
    (_label(r"\bBug"), None),
)

SEVERITY_LABELS: dict[str, Severity] = {
    "CRITICAL": Severity.CRITICAL,
    "🚨": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "🔴": Severity.HIGH,
    "MEDIUM": Severity.MEDIUM,
    "🟡": Severity.MEDIUM,
    "LOW": Severity.LOW,
    "🔵": Severity.LOW,
}

SUGGESTION_PATTERNS: tuple[re.Pattern, ...] = (
    _label(r"\bSuggestions?"),
    _label(r"\bRecommend(?:ations?)?"),
    _label(r"\bConsider"),
    _label(r"💡"),
)

SUMMARY_PATTERN = re.compile(
    r"^[ \t#>*_]*(?:Summary|Overview)[*_ \t]*:[*_ \t]*"
    r"(?P<first>[^\n]*)"
    r"(?P<rest>(?:\n(?![ \t]*$)(?![ \t]*#)[^\n]+)*)",
    re.IGNORECASE | re.MULTILINE,
)

HEADING_MARKER = re.compile(r"^#+\s*")
ENUMERATION_MARKER = re.compile(r"^\d+\.\s*")
BULLET_PATTERN = re.compile(r"^[ \t]*[-•*][ \t]+(?P<body>[^\n]+)", re.MULTILINE)
FILE_MENTION = re.compile(
    r"\b(?:in|file|at)\s+[`'\"]?([^\s`'\"]+\.[a-zA-Z]+)[`'\"]?", re.IGNORECASE
)
LINE_MENTION = re.compile(r"\blines?\s+(\d+)", re.IGNORECASE)


# ── Field Extraction ─────────────────────────────────────────────────────────


def extract_summary(text: str) -> str:
    """Summary/Overview paragraph, else the first non-blank line."""
    match = SUMMARY_PATTERN.search(text)
    if match:
        summary = (match.group("first") + match.group("rest")).strip()
        if summary:
            return summary

    for line in text.split("\n"):
        if line.strip():
            return HEADING_MARKER.sub("", line.strip())
    return DEFAULT_SUMMARY


def resolve_severity(label: str) -> Optional[Severity]:
    """Map a matched label to a severity via SEVERITY_LABELS."""
    upper = label.upper()
    for marker, severity in SEVERITY_LABELS.items():
        if marker in upper:
            return severity
    return None


def _default_file(files: Sequence[FileRef]) -> Optional[str]:
    return file_path(files[0]) if files else None


def _title_from(description: str) -> str:
    head = description.split(":", 1)[0]
    return ENUMERATION_MARKER.sub("", head).strip()


def _issue_from(
    description: str,
    severity: Severity,
    files: Sequence[FileRef],
) -> IssueRecord:
    file_match = FILE_MENTION.search(description)
    line_match = LINE_MENTION.search(description)
    return IssueRecord(
        title=_title_from(description),
        description=description,
        severity=severity,
        file=file_match.group(1) if file_match else _default_file(files),
        line=int(line_match.group(1)) if line_match else None,
    )


def extract_issues(text: str, files: Sequence[FileRef] = ()) -> list[IssueRecord]:
    """Apply every issue pattern to the text; duplicates are kept here."""
    issues: list[IssueRecord] = []

    for pattern, forced in ISSUE_PATTERNS:
        for match in pattern.finditer(text):
            description = match.group("body").strip()
            severity = (
                forced or resolve_severity(match.group("label")) or Severity.MEDIUM
            )
            issues.append(_issue_from(description, severity, files))

    return issues


def extract_suggestions(text: str) -> list[str]:
    suggestions: list[str] = []
    for pattern in SUGGESTION_PATTERNS:
        for match in pattern.finditer(text):
            suggestion = match.group("body").strip()
            if len(suggestion) > MIN_SUGGESTION_LENGTH:
                suggestions.append(suggestion)
    return suggestions


def extract_bullet_issues(text: str) -> list[IssueRecord]:
    """Fallback for replies without labels: each long bullet is an issue."""
    issues: list[IssueRecord] = []
    for match in BULLET_PATTERN.finditer(text):
        body = match.group("body").strip()
        if len(body) > MIN_BULLET_LENGTH:
            issues.append(
                IssueRecord(
                    title=body[:BULLET_TITLE_LENGTH],
                    description=body,
                    severity=Severity.MEDIUM,
                )
            )
    return issues


# ── Entry Points ─────────────────────────────────────────────────────────────


def parse_review_response(
    text: str, files: Sequence[FileRef] = ()
) -> ParsedResult:
    """Parse one free-form review reply into a ParsedResult.

    Never raises: text without any recognizable structure yields a one-line
    summary and empty (or bullet-derived) issue lists.
    """
    summary = extract_summary(text)
    issues = extract_issues(text, files)
    suggestions = extract_suggestions(text)

    if not issues:
        issues = extract_bullet_issues(text)
        if issues:
            logger.debug("No labelled issues; took %d from bullet points", len(issues))

    unique_issues: list[IssueRecord] = []
    seen: set[str] = set()
    for issue in issues:
        if issue.description not in seen:
            seen.add(issue.description)
            unique_issues.append(issue)

    result = ParsedResult(
        summary=summary,
        issues=unique_issues,
        suggestions=list(dict.fromkeys(suggestions)),
    )
    logger.debug(
        "Parsed reply: %d issue(s), %d suggestion(s)",
        len(result.issues),
        len(result.suggestions),
    )
    return result


def degraded_result(reason: str) -> ParsedResult:
    """Stand-in result for a chunk whose generation call failed."""
    return ParsedResult(
        summary=FAILED_SUMMARY,
        issues=[
            IssueRecord(
                title=FAILED_TITLE,
                description=reason,
                severity=Severity.CRITICAL,
            )
        ],
        suggestions=[FAILED_SUGGESTION],
    )
