"""Diff sources: where a review run gets its diff and changed-file list."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Optional, Protocol

from prreview.diff_parser import changed_files
from prreview.errors import SourceUnavailable
from prreview.github import GitHubAPIError, GitHubClient
from prreview.models import FileRef

logger = logging.getLogger(__name__)


class DiffSource(Protocol):
    def fetch(self) -> tuple[str, Sequence[FileRef]]:
        """Return ``(diff, files)``; raise SourceUnavailable on failure."""
        ...


class StaticDiffSource:
    """A diff already in memory. Files default to the diff's own headers."""

    def __init__(self, diff: str, files: Optional[Sequence[FileRef]] = None):
        self.diff = diff
        self.files = files

    @classmethod
    def from_path(cls, path: str | Path) -> "StaticDiffSource":
        try:
            return cls(Path(path).read_text(encoding="utf-8"))
        except OSError as e:
            raise SourceUnavailable(f"Cannot read diff file {path}: {e}", origin="file") from e

    def fetch(self) -> tuple[str, Sequence[FileRef]]:
        files = self.files if self.files is not None else changed_files(self.diff)
        return self.diff, files


class GitDiffSource:
    """``git diff`` of a local repository."""

    def __init__(self, repo_path: str | Path | None = None, diff_args: Sequence[str] = ()):
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.diff_args = list(diff_args)

    def fetch(self) -> tuple[str, Sequence[FileRef]]:
        cmd = ["git", "diff", *self.diff_args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise SourceUnavailable("git executable not found", origin="git") from e
        except subprocess.CalledProcessError as e:
            raise SourceUnavailable(
                f"{' '.join(cmd)} failed: {e.stderr.strip() or e.returncode}",
                origin="git",
            ) from e

        diff = result.stdout
        files = changed_files(diff)
        logger.info("git diff in %s: %d file(s), %d chars", self.repo_path, len(files), len(diff))
        return diff, files


class GitHubPullRequestSource:
    """Diff and changed files of one pull request."""

    def __init__(self, client: GitHubClient, owner: str, repo: str, number: int):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.number = number

    def fetch(self) -> tuple[str, Sequence[FileRef]]:
        try:
            diff = self.client.get_pull_request_diff(self.owner, self.repo, self.number)
            files = self.client.list_pull_request_files(self.owner, self.repo, self.number)
        except GitHubAPIError as e:
            raise SourceUnavailable(
                f"Could not fetch {self.owner}/{self.repo}#{self.number}: {e}",
                origin="github",
            ) from e
        return diff, files


def pull_request_from_env(number: Optional[int] = None) -> tuple[str, str, int]:
    """Resolve ``(owner, repo, number)`` from GitHub Actions variables.

    Uses ``GITHUB_REPOSITORY`` and either the explicit number, ``PR_NUMBER``
    or the ``pull_request.number`` of the event payload at
    ``GITHUB_EVENT_PATH``.
    """
    repository = os.getenv("GITHUB_REPOSITORY", "")
    if "/" not in repository:
        raise SourceUnavailable(
            "GITHUB_REPOSITORY must be set as owner/repo", origin="environment"
        )
    owner, repo = repository.split("/", 1)

    if number is None and os.getenv("PR_NUMBER"):
        try:
            number = int(os.environ["PR_NUMBER"])
        except ValueError as e:
            raise SourceUnavailable(
                f"PR_NUMBER is not a number: {os.environ['PR_NUMBER']!r}",
                origin="environment",
            ) from e

    if number is None:
        event_path = os.getenv("GITHUB_EVENT_PATH")
        if event_path:
            try:
                event = json.loads(Path(event_path).read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise SourceUnavailable(
                    f"Cannot read event payload {event_path}: {e}", origin="environment"
                ) from e
            pr = event.get("pull_request") or {}
            number = pr.get("number") or event.get("number")

    if not number:
        raise SourceUnavailable(
            "No pull request number (set PR_NUMBER or run on a pull_request event)",
            origin="environment",
        )
    return owner, repo, int(number)
