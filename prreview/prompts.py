"""System prompt and user message builder for chunk reviews."""

from __future__ import annotations

from collections.abc import Sequence


# ── review_chunk ─────────────────────────────────────────────────────────────

REVIEW_SYSTEM = """You are a senior engineer reviewing a pull request.
You receive one section of a unified diff and the files it touches.
Other sections of the same pull request are reviewed separately.

Look for:
- Correctness bugs, off-by-one errors, unhandled null/empty paths
- Security vulnerabilities (injection, secrets, unsafe deserialization)
- Performance problems (N+1 queries, unbounded growth, blocking I/O)
- Maintainability and readability problems
- Deviations from common best practices

Write your answer as plain text using these labels, one finding per line:

Summary: one or two sentences about this section.
CRITICAL: <title>: <details> (in `path/to/file.ext`, line N)
HIGH: <title>: <details> (in `path/to/file.ext`, line N)
MEDIUM: <title>: <details> (in `path/to/file.ext`, line N)
LOW: <title>: <details> (in `path/to/file.ext`, line N)
Suggestion: <an improvement that is not a defect>

Only report what the diff supports. If the section has no problems, say so
in the summary and list no findings."""


def build_review_message(diff_text: str, files: Sequence[str] | None) -> str:
    """Build the user message for one diff chunk."""
    file_list = ", ".join(files) if files else "Multiple files"
    return "\n".join(
        [
            "Please review the following code changes:\n",
            f"**Files changed:** {file_list}\n",
            "**Diff:**",
            f"```diff\n{diff_text}\n```\n",
            "Provide a structured review focusing on:",
            "1. Code correctness and potential bugs",
            "2. Security vulnerabilities",
            "3. Performance issues",
            "4. Code quality and maintainability",
            "5. Best practices\n",
            "Format your response with clear sections for issues and suggestions.",
        ]
    )
