"""Data models for the chunked pull-request reviewer."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """Severity levels for review issues."""

    CRITICAL = "CRITICAL"  # Must fix before merge
    HIGH = "HIGH"  # Should fix
    MEDIUM = "MEDIUM"  # Default when the reply carries no marker
    LOW = "LOW"  # Minor

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


# A changed file as handed to us: a bare path, a GitHub "pull request files"
# payload dict, or any object with a ``filename`` attribute.
FileRef = Any


def file_path(ref: FileRef) -> str:
    """Normalize a FileRef to its path string."""
    if isinstance(ref, str):
        return ref
    if isinstance(ref, Mapping):
        name = ref.get("filename")
    else:
        name = getattr(ref, "filename", None)
    return name if name else str(ref)


def file_paths(refs: Iterable[FileRef]) -> tuple[str, ...]:
    """Normalize FileRefs to unique path strings, keeping first-seen order."""
    return tuple(dict.fromkeys(file_path(r) for r in refs))


@dataclass(frozen=True)
class Chunk:
    """A size-bounded slice of a diff sent as one review request."""

    content: str
    files: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict:
        return {"content": self.content, "files": list(self.files), "size": self.size}


@dataclass
class IssueRecord:
    """A single issue recovered from a review reply."""

    title: str
    description: str
    severity: Severity = Severity.MEDIUM
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def dedupe_key(self) -> str:
        return f"{self.title}-{self.file or ''}".lower()

    def to_dict(self) -> dict:
        d = asdict(self)
        d["severity"] = str(self.severity)
        return d


@dataclass
class ParsedResult:
    """Structured findings parsed out of one chunk's reply."""

    summary: str
    issues: list[IssueRecord] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "issues": [i.to_dict() for i in self.issues],
            "suggestions": list(self.suggestions),
        }


@dataclass
class FinalReport:
    """Merged review across every chunk of a run."""

    summary: str
    issues: list[IssueRecord] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    review_count: int = 0

    def count(self, severity: Severity) -> int:
        return sum(1 for i in self.issues if i.severity == severity)

    @property
    def critical_count(self) -> int:
        return self.count(Severity.CRITICAL)

    @property
    def high_count(self) -> int:
        return self.count(Severity.HIGH)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "stats": {
                **{str(s).lower(): self.count(s) for s in Severity},
                "total": len(self.issues),
            },
            "issues": [i.to_dict() for i in self.issues],
            "suggestions": list(self.suggestions),
            "reviewCount": self.review_count,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
