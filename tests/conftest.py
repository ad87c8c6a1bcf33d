"""
Shared fixtures for the reviewer tests.

Provides diff builders, settings pointed at a temporary usage log and
in-memory stand-ins for the generation, source and sink collaborators.
"""

from pathlib import Path
from typing import Callable, Optional

import pytest

from prreview.config import ReviewSettings
from prreview.errors import GenerationFailure
from prreview.models import FinalReport


# =============================================================================
# DIFF FIXTURES
# =============================================================================

def build_section(path: str, n_lines: int, width: int = 49) -> str:
    """One ``diff --git`` file section adding ``n_lines`` lines of ``width`` chars."""
    header = [
        f"diff --git a/{path} b/{path}",
        "index 1111111..2222222 100644",
        f"--- a/{path}",
        f"+++ b/{path}",
        f"@@ -1,{n_lines} +1,{n_lines} @@",
    ]
    body = ["+" + (path[0] * (width - 1)) for _ in range(n_lines)]
    return "\n".join(header + body)


@pytest.fixture
def make_section() -> Callable[..., str]:
    return build_section


@pytest.fixture
def make_diff() -> Callable[..., str]:
    """Join sections into a diff ending with a newline, like ``git diff``."""

    def _make(*sections: str) -> str:
        return "\n".join(sections) + "\n"

    return _make


SMALL_DIFF = """\
diff --git a/src/app.py b/src/app.py
index 83db48f..bf269f4 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
+import sys
 def main():
-    print(os.name)
+    print(os.name, sys.argv)
diff --git a/README.md b/README.md
index 1234567..89abcde 100644
--- a/README.md
+++ b/README.md
@@ -1 +1,2 @@
 # Project
+Usage notes.
"""


@pytest.fixture
def small_diff() -> str:
    return SMALL_DIFF


# =============================================================================
# SETTINGS
# =============================================================================

@pytest.fixture
def settings(tmp_path: Path) -> ReviewSettings:
    return ReviewSettings(
        max_chunk_size=4000,
        bedrock_profile=None,
        usage_log_path=str(tmp_path / "usage.log"),
        github_token="test-token",
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeGenerator:
    """Returns canned replies in call order; ``fail_on`` call indexes raise."""

    def __init__(self, replies: Optional[list[str]] = None, fail_on: tuple[int, ...] = ()):
        self.replies = replies or ["Summary: Looks fine."]
        self.fail_on = fail_on
        self.calls: list[dict] = []

    def invoke(self, system_prompt, user_message, tool="unknown", on_progress=None):
        index = len(self.calls)
        self.calls.append(
            {"system_prompt": system_prompt, "user_message": user_message, "tool": tool}
        )
        if index in self.fail_on:
            raise GenerationFailure("throttled by upstream", origin="bedrock")
        return self.replies[index % len(self.replies)], "end_turn"


class RecordingSink:
    """Keeps every delivered report."""

    def __init__(self):
        self.reports: list[FinalReport] = []

    def deliver(self, report: FinalReport) -> None:
        self.reports.append(report)


@pytest.fixture
def fake_generator() -> Callable[..., FakeGenerator]:
    return FakeGenerator


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
