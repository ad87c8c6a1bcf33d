"""Diff parsing: per-file summaries of a unified diff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from prreview.chunking import FILE_HEADER_PREFIX, FILE_HEADER


@dataclass
class DiffFile:
    """Summary of one file section in a unified diff."""

    old_path: Optional[str]
    new_path: Optional[str]
    added: int = 0
    removed: int = 0
    is_new: bool = False
    is_deleted: bool = False
    is_renamed: bool = False
    is_binary: bool = False

    @property
    def path(self) -> str:
        return self.new_path or self.old_path or "<unknown>"

    @property
    def filename(self) -> str:
        # Lets a DiffFile be passed anywhere a FileRef is accepted.
        return self.path


def parse_diff(diff_text: str) -> list[DiffFile]:
    """Parse a unified diff into one DiffFile per ``diff --git`` section."""
    files: list[DiffFile] = []
    current: Optional[DiffFile] = None
    in_hunk = False

    for line in diff_text.splitlines():
        if line.startswith(FILE_HEADER_PREFIX):
            match = FILE_HEADER.match(line)
            if match:
                current = DiffFile(old_path=match.group(1), new_path=match.group(2))
            else:
                current = DiffFile(old_path=None, new_path=None)
            files.append(current)
            in_hunk = False
            continue

        if current is None:
            continue

        if line.startswith("@@"):
            in_hunk = True
            continue

        if not in_hunk:
            # File metadata before the first hunk
            if line.startswith("new file"):
                current.is_new = True
            elif line.startswith("deleted file"):
                current.is_deleted = True
            elif line.startswith("rename from") or line.startswith("rename to"):
                current.is_renamed = True
            elif line.startswith("Binary files"):
                current.is_binary = True
            continue

        if line.startswith("+"):
            current.added += 1
        elif line.startswith("-"):
            current.removed += 1

    return files


def changed_files(diff_text: str) -> list[str]:
    """Paths of every file section, in diff order, without duplicates."""
    return list(dict.fromkeys(f.path for f in parse_diff(diff_text)))


def diff_stats(files: list[DiffFile]) -> dict:
    """Generate summary statistics for parsed diff files."""
    return {
        "files_changed": len(files),
        "lines_added": sum(f.added for f in files),
        "lines_removed": sum(f.removed for f in files),
        "new_files": [f.path for f in files if f.is_new],
        "deleted_files": [f.path for f in files if f.is_deleted],
        "renamed_files": [f.path for f in files if f.is_renamed],
    }
