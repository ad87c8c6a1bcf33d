"""Reporting sinks: where a finished report is delivered."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Protocol, TextIO

from prreview.errors import DeliveryFailure
from prreview.github import GitHubAPIError, GitHubClient
from prreview.models import FinalReport
from prreview.report import render_markdown

logger = logging.getLogger(__name__)


class ReportSink(Protocol):
    def deliver(self, report: FinalReport) -> None:
        """Deliver the report; raise DeliveryFailure on rejection."""
        ...


class GitHubCommentSink:
    """Posts the report as a pull request conversation comment."""

    def __init__(self, client: GitHubClient, owner: str, repo: str, number: int):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.number = number

    def deliver(self, report: FinalReport) -> None:
        body = render_markdown(report)
        try:
            comment = self.client.post_issue_comment(
                self.owner, self.repo, self.number, body
            )
        except GitHubAPIError as e:
            raise DeliveryFailure(
                f"Could not comment on {self.owner}/{self.repo}#{self.number}: {e}",
                origin="github",
            ) from e
        logger.info("Posted review comment: %s", comment.get("html_url", "<no url>"))


class StreamSink:
    """Writes the report to a text stream as markdown or JSON."""

    FORMATS = ("markdown", "json")

    def __init__(self, stream: Optional[TextIO] = None, fmt: str = "markdown"):
        if fmt not in self.FORMATS:
            raise ValueError(f"Unknown format {fmt!r}, expected one of {self.FORMATS}")
        self.stream = stream
        self.fmt = fmt

    def deliver(self, report: FinalReport) -> None:
        stream = self.stream or sys.stdout
        text = report.to_json() if self.fmt == "json" else render_markdown(report)
        try:
            stream.write(text + "\n")
            stream.flush()
        except OSError as e:
            raise DeliveryFailure(f"Could not write report: {e}", origin="stream") from e
