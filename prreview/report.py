"""Markdown rendering of a final report for pull request comments."""

from __future__ import annotations

from prreview.models import FinalReport, IssueRecord, Severity

REPORT_HEADER = "## 🤖 AI Code Review"
COMMENT_TAG = "<!-- pr-review-bot -->"

SEVERITY_ICONS = {
    Severity.CRITICAL: "🚨",
    Severity.HIGH: "🔴",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
}


def _location(issue: IssueRecord) -> str:
    if not issue.file:
        return ""
    if issue.line is not None:
        return f"`{issue.file}:{issue.line}`"
    return f"`{issue.file}`"


def render_issue(issue: IssueRecord) -> list[str]:
    icon = SEVERITY_ICONS.get(issue.severity, "ℹ️")
    lines = [f"#### {icon} **[{issue.severity}]** {issue.title}"]
    location = _location(issue)
    if location:
        lines.append(location)
    if issue.description and issue.description != issue.title:
        lines.append("")
        lines.append(issue.description)
    lines.append("")
    return lines


def render_markdown(report: FinalReport) -> str:
    """Render the report as a single markdown comment body."""
    lines = [COMMENT_TAG, REPORT_HEADER, "", report.summary, ""]

    lines.append("| Severity | Count |")
    lines.append("|----------|-------|")
    for severity in Severity:
        lines.append(f"| {SEVERITY_ICONS[severity]} {severity} | {report.count(severity)} |")
    lines.append("")

    if report.issues:
        lines.append("### Issues")
        lines.append("")
        # Stable sort keeps chunk order within a severity
        for issue in sorted(report.issues, key=lambda i: i.severity.rank):
            lines.extend(render_issue(issue))
    else:
        lines.append("✅ No issues found!")
        lines.append("")

    if report.suggestions:
        lines.append("### 💡 Suggestions")
        lines.append("")
        lines.extend(f"- {s}" for s in report.suggestions)
        lines.append("")

    lines.append(f"_Reviewed in {report.review_count} section(s)._")
    return "\n".join(lines)
