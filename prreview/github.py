"""GitHub REST client: pull request diff, changed files, issue comments."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from prreview.config import GITHUB_API_URL, GITHUB_FILES_PER_PAGE, GITHUB_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DIFF_ACCEPT_HEADER = "application/vnd.github.v3.diff"
DEFAULT_API_VERSION = "2022-11-28"


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GitHubClient:
    """Synchronous GitHub client scoped to the calls a review run needs."""

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = GITHUB_TIMEOUT,
        user_agent: str = "pr-review-bot/0.1",
        client: Optional[httpx.Client] = None,
    ):
        headers = {
            "Accept": DEFAULT_ACCEPT_HEADER,
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": DEFAULT_API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout
        )
        self._headers = headers

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client:
            self._client.close()

    def _request(
        self,
        method: str,
        url: str,
        *,
        accept: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if accept:
            headers["Accept"] = accept

        try:
            response = self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"{method} {url} failed: {e}", status_code=0) from e

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            raise GitHubAPIError(
                f"GitHub returned {response.status_code} for {method} {url}",
                response.status_code,
                detail,
            )
        return response

    def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        """Unified diff of a pull request."""
        url = f"/repos/{owner}/{repo}/pulls/{number}"
        response = self._request("GET", url, accept=DIFF_ACCEPT_HEADER)
        logger.info("Fetched diff for %s/%s#%d (%d chars)", owner, repo, number, len(response.text))
        return response.text

    def list_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> list[dict[str, Any]]:
        """Every changed file of a pull request, following pagination."""
        url = f"/repos/{owner}/{repo}/pulls/{number}/files"
        files: list[dict[str, Any]] = []
        page = 1

        while True:
            response = self._request(
                "GET", url, params={"per_page": GITHUB_FILES_PER_PAGE, "page": page}
            )
            batch = response.json()
            files.extend(batch)
            if len(batch) < GITHUB_FILES_PER_PAGE:
                break
            page += 1

        logger.info("Listed %d changed file(s) for %s/%s#%d", len(files), owner, repo, number)
        return files

    def post_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> dict[str, Any]:
        """Post a conversation-level comment on a pull request."""
        url = f"/repos/{owner}/{repo}/issues/{number}/comments"
        response = self._request("POST", url, json={"body": body})
        return response.json()
