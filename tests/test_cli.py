"""
Tests for the ``pr-review`` command line and for settings from the
environment.
"""

import json
from pathlib import Path

import pytest

from prreview import cli
from prreview.config import DIFF_CHUNK_MAX_CHARS, ReviewSettings
from prreview.sinks import GitHubCommentSink, StreamSink
from prreview.sources import GitDiffSource, GitHubPullRequestSource, StaticDiffSource


@pytest.fixture(autouse=True)
def local_env(monkeypatch, tmp_path: Path):
    """Run outside GitHub Actions with the usage log in a temp dir."""
    for name in ("GITHUB_ACTIONS", "GITHUB_REPOSITORY", "PR_NUMBER", "GITHUB_EVENT_PATH",
                 "REVIEW_MAX_CHUNK_SIZE", "BEDROCK_MAX_TOKENS", "REVIEW_SYSTEM_PROMPT_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REVIEW_USAGE_LOG", str(tmp_path / "usage.log"))
    monkeypatch.chdir(tmp_path)


# =============================================================================
# SETTINGS
# =============================================================================

class TestSettingsFromEnv:
    """ReviewSettings.from_env()."""

    def test_defaults(self):
        settings = ReviewSettings.from_env()
        assert settings.max_chunk_size == DIFF_CHUNK_MAX_CHARS
        assert settings.max_tokens == 2000

    def test_overrides(self, monkeypatch, tmp_path: Path):
        prompt = tmp_path / "prompt.txt"
        prompt.write_text("Be brief.", encoding="utf-8")
        monkeypatch.setenv("REVIEW_MAX_CHUNK_SIZE", "1500")
        monkeypatch.setenv("REVIEW_SYSTEM_PROMPT_FILE", str(prompt))
        monkeypatch.setenv("GITHUB_TOKEN", "abc")

        settings = ReviewSettings.from_env()

        assert settings.max_chunk_size == 1500
        assert settings.system_prompt == "Be brief."
        assert settings.github_token == "abc"
        assert "abc" not in repr(settings)

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("REVIEW_MAX_CHUNK_SIZE", "big")
        with pytest.raises(ValueError, match="REVIEW_MAX_CHUNK_SIZE"):
            ReviewSettings.from_env()


# =============================================================================
# PIPELINE SELECTION
# =============================================================================

class TestBuildPipeline:
    """Arguments pick the source and the sink."""

    def _build(self, argv, settings):
        args = cli.build_parser().parse_args(argv)
        return cli.build_pipeline(args, settings)

    def test_default_is_git(self, settings):
        source, sink = self._build([], settings)
        assert isinstance(source, GitDiffSource)
        assert isinstance(sink, StreamSink)

    def test_git_args(self, settings):
        source, _ = self._build(["--git", "main...HEAD"], settings)
        assert source.diff_args == ["main...HEAD"]

    def test_diff_file(self, settings, tmp_path: Path, small_diff):
        path = tmp_path / "x.diff"
        path.write_text(small_diff)
        source, sink = self._build(["--diff-file", str(path), "--format", "json"], settings)
        assert isinstance(source, StaticDiffSource)
        assert sink.fmt == "json"

    def test_pull_request_with_post(self, settings, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo/repo")
        source, sink = self._build(["--pr", "9", "--post"], settings)
        assert isinstance(source, GitHubPullRequestSource)
        assert source.number == 9
        assert isinstance(sink, GitHubCommentSink)

    def test_github_actions_default(self, settings, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo/repo")
        monkeypatch.setenv("PR_NUMBER", "4")
        source, _ = self._build([], settings)
        assert isinstance(source, GitHubPullRequestSource)

    def test_post_needs_pull_request(self, settings):
        with pytest.raises(ValueError):
            self._build(["--git", "--post"], settings)


# =============================================================================
# MAIN
# =============================================================================

class TestMain:
    """End to end with a fake generator."""

    def test_json_report_on_stdout(self, monkeypatch, capsys, tmp_path: Path, small_diff, fake_generator):
        generator = fake_generator(["Summary: ok\nHIGH: Missing test for the new flag"])
        monkeypatch.setattr(cli, "BedrockClient", lambda settings: generator)
        path = tmp_path / "x.diff"
        path.write_text(small_diff)

        cli.main(["--diff-file", str(path), "--format", "json", "--max-chunk-size", "2000"])

        data = json.loads(capsys.readouterr().out)
        assert data["summary"] == "Analyzed 2 file(s) across 1 section(s)"
        assert data["stats"]["high"] == 1

    def test_missing_diff_file_exits_1(self, monkeypatch, fake_generator, tmp_path: Path):
        monkeypatch.setattr(cli, "BedrockClient", lambda settings: fake_generator())

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--diff-file", str(tmp_path / "missing.diff")])

        assert exc_info.value.code == 1

    def test_invalid_chunk_size(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--max-chunk-size", "0"])
        assert exc_info.value.code == 2
