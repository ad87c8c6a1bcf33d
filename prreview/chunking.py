"""Diff chunking: split a unified diff into size-bounded review requests."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from prreview.config import DIFF_CHUNK_MAX_CHARS
from prreview.models import Chunk, FileRef, file_paths

logger = logging.getLogger(__name__)

FILE_HEADER_PREFIX = "diff --git"
FILE_HEADER = re.compile(r"diff --git a/(\S+) b/(\S+)")

# Once a chunk is past this share of the limit, the next file header closes it
# so the following file starts a fresh chunk with its header attached.
PRE_FLUSH_RATIO = 0.8

CHARS_PER_TOKEN = 4


@dataclass
class _Draft:
    """The chunk currently being assembled."""

    parts: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    length: int = 0

    def add(self, lines: list[str], path: Optional[str]) -> None:
        text = "\n".join(lines) + "\n"
        self.parts.append(text)
        self.length += len(text)
        if path and path not in self.files:
            self.files.append(path)

    def freeze(self) -> Chunk:
        return Chunk(content="".join(self.parts), files=tuple(self.files))


def header_path(line: str) -> Optional[str]:
    """Return the post-image path of a ``diff --git`` header, if it parses."""
    match = FILE_HEADER.match(line)
    return match.group(2) if match else None


def whole_diff_chunk(diff: str, files: Sequence[FileRef]) -> Chunk:
    return Chunk(content=diff, files=file_paths(files))


def segment(
    diff: str,
    files: Sequence[FileRef] = (),
    max_size: int = DIFF_CHUNK_MAX_CHARS,
) -> list[Chunk]:
    """Split a unified diff into an ordered list of chunks.

    Small diffs come back as a single chunk carrying the full file list.
    Larger diffs are cut at file headers where possible: a chunk that is
    already past 80% of ``max_size`` is closed when the next file starts, and
    a file section that would overflow the chunk moves whole into a new one.
    Keeping a section whole takes priority over the size bound, so a chunk
    may end up larger than ``max_size``.

    A file path is attributed to the chunk that received its header line.
    When one section overflows several chunks, the continuation chunks hold
    its lines without listing the path.

    Never raises; input without any recognizable header degrades to the
    single whole-diff chunk.
    """
    if len(diff) <= max_size:
        return [whole_diff_chunk(diff, files)]

    chunks: list[Chunk] = []
    draft = _Draft()

    current_file: Optional[str] = None
    buffer: list[str] = []
    buffer_file: Optional[str] = None  # path whose header opened the buffer
    buffer_chars = 0  # sum of line lengths, separators excluded

    for line in diff.split("\n"):
        if line.startswith(FILE_HEADER_PREFIX):
            if current_file and draft.length > max_size * PRE_FLUSH_RATIO:
                if buffer:
                    draft.add(buffer, buffer_file)
                chunks.append(draft.freeze())
                draft = _Draft()
            elif buffer:
                draft.add(buffer, buffer_file)

            current_file = header_path(line)
            buffer = [line]
            buffer_file = current_file
            buffer_chars = len(line)
        else:
            buffer.append(line)
            buffer_chars += len(line)

        buffer_len = buffer_chars + len(buffer) - 1 if buffer else 0
        if draft.length + buffer_len > max_size and draft.length > 0:
            chunks.append(draft.freeze())
            draft = _Draft()
            draft.add(buffer, buffer_file)
            buffer = []
            buffer_file = None
            buffer_chars = 0

    if buffer:
        draft.add(buffer, buffer_file)

    last = draft.freeze()
    if last.content.strip():
        chunks.append(last)

    if not chunks:
        return [whole_diff_chunk(diff, files)]

    logger.debug(
        "Segmented %d chars into %d chunk(s) (max_size=%d)",
        len(diff),
        len(chunks),
        max_size,
    )
    return chunks


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def split_by_file(chunks: Sequence[Chunk]) -> list[Chunk]:
    """Re-slice chunks into one chunk per attributed file.

    Each file's slice runs from its header to the next header in the same
    chunk. Returns the input unchanged when no slice could be located.
    """
    file_chunks: list[Chunk] = []

    for chunk in chunks:
        for path in chunk.files:
            pattern = re.compile(
                rf"^diff --git a/\S+ b/{re.escape(path)}$.*?(?=^diff --git |\Z)",
                re.MULTILINE | re.DOTALL,
            )
            match = pattern.search(chunk.content)
            if match:
                file_chunks.append(Chunk(content=match.group(0), files=(path,)))

    return file_chunks if file_chunks else list(chunks)
