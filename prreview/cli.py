"""Command-line entry point: review a pull request, a git diff or a diff file."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from prreview.analyzer import run_review
from prreview.config import ReviewSettings
from prreview.errors import ReviewError
from prreview.github import GitHubClient
from prreview.llm import BedrockClient
from prreview.sinks import GitHubCommentSink, ReportSink, StreamSink
from prreview.sources import (
    DiffSource,
    GitDiffSource,
    GitHubPullRequestSource,
    StaticDiffSource,
    pull_request_from_env,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-review",
        description="Review a diff chunk by chunk with an LLM and report the findings.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--pr",
        type=int,
        metavar="NUMBER",
        help="pull request number in GITHUB_REPOSITORY (default in GitHub Actions)",
    )
    source.add_argument(
        "--git",
        nargs="*",
        metavar="ARG",
        help="review `git diff ARG...` of the repository in --repo-path",
    )
    source.add_argument(
        "--diff-file",
        metavar="PATH",
        help="review a diff file, or '-' for stdin",
    )
    parser.add_argument("--repo-path", default=None, help="repository for --git (default: cwd)")
    parser.add_argument(
        "--max-chunk-size",
        type=int,
        default=None,
        help="max characters per review request (default: REVIEW_MAX_CHUNK_SIZE or 4000)",
    )
    parser.add_argument(
        "--format",
        choices=StreamSink.FORMATS,
        default="markdown",
        help="output format when printing the report",
    )
    parser.add_argument(
        "--post",
        action="store_true",
        help="post the report as a pull request comment instead of printing it",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    for name in ("botocore", "boto3", "urllib3", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _github_mode(args: argparse.Namespace) -> bool:
    if args.pr is not None:
        return True
    if args.git is not None or args.diff_file:
        return False
    return os.getenv("GITHUB_ACTIONS") == "true"


def build_pipeline(
    args: argparse.Namespace,
    settings: ReviewSettings,
    github: Optional[GitHubClient] = None,
) -> tuple[DiffSource, ReportSink]:
    """Pick the diff source and report sink the arguments ask for."""
    if _github_mode(args):
        github = github or GitHubClient(token=settings.github_token, base_url=settings.github_api_url)
        owner, repo, number = pull_request_from_env(args.pr)
        source: DiffSource = GitHubPullRequestSource(github, owner, repo, number)
        if args.post:
            return source, GitHubCommentSink(github, owner, repo, number)
        return source, StreamSink(fmt=args.format)

    if args.post:
        raise ValueError("--post requires a pull request (--pr or GitHub Actions)")

    if args.diff_file == "-":
        source = StaticDiffSource(sys.stdin.read())
    elif args.diff_file:
        source = StaticDiffSource.from_path(args.diff_file)
    else:
        source = GitDiffSource(args.repo_path, args.git or ())
    return source, StreamSink(fmt=args.format)


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = ReviewSettings.from_env()
    except (OSError, ValueError) as e:
        parser.error(str(e))
    if args.max_chunk_size is not None:
        if args.max_chunk_size <= 0:
            parser.error("--max-chunk-size must be positive")
        settings = dataclasses.replace(settings, max_chunk_size=args.max_chunk_size)

    github: Optional[GitHubClient] = None
    try:
        if _github_mode(args):
            github = GitHubClient(token=settings.github_token, base_url=settings.github_api_url)
        try:
            source, sink = build_pipeline(args, settings, github)
        except ValueError as e:
            parser.error(str(e))
        report = run_review(source, BedrockClient(settings), sink, settings)
    except ReviewError as e:
        logger.error("Review failed (%s): %s", e.origin, e)
        raise SystemExit(1) from e
    finally:
        if github is not None:
            github.close()

    logger.info(
        "Done: %d critical, %d high, %d total issue(s)",
        report.critical_count,
        report.high_count,
        len(report.issues),
    )


if __name__ == "__main__":
    main()
