"""Text chunking utilities for transcript indexing."""
import re
from dataclasses import dataclass
from typing import List

MAX_CHUNK_CHARS = 1000

_SPEAKER_PREFIX = re.compile(r"^\s*([^:\n]{1,50}?)\s*:")


@dataclass(frozen=True)
class TextChunk:
    """A contiguous span of canonical transcript text."""
    chunk_index: int
    content: str


def chunk_transcript(text: str, max_chars: int = MAX_CHUNK_CHARS) -> List[TextChunk]:
    """
    Split canonical transcript text into line-aligned chunks.

    Lines are packed into a chunk until adding the next one would exceed
    ``max_chars``. A single line longer than ``max_chars`` is split on word
    boundaries first. Chunk indexes start at 0 and are deterministic for a
    given input.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    pieces = []
    for line in lines:
        if len(line) <= max_chars:
            pieces.append(line)
        else:
            pieces.extend(_split_by_chars(line, max_chars))

    chunks: List[TextChunk] = []
    current: List[str] = []
    current_len = 0
    for piece in pieces:
        added = len(piece) + (1 if current else 0)
        if current and current_len + added > max_chars:
            chunks.append(TextChunk(chunk_index=len(chunks), content="\n".join(current)))
            current, current_len = [], 0
            added = len(piece)
        current.append(piece)
        current_len += added

    if current:
        chunks.append(TextChunk(chunk_index=len(chunks), content="\n".join(current)))
    return chunks


def extract_speaker(content: str) -> str:
    """Speaker name from the first ``"Name: ..."`` line, or "Unknown"."""
    match = _SPEAKER_PREFIX.match(content)
    if match:
        return match.group(1).strip()
    return "Unknown"


def _split_by_chars(line: str, max_chars: int) -> List[str]:
    pieces = []
    current = ""
    for word in line.split():
        while len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces
