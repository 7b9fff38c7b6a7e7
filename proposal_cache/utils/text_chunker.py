"""
Text preparation and chunking for embedding generation.

Chunking is deterministic: the same input and options always yield the
same chunk texts, so stored ``chunk_text`` values can be diffed against a
fresh chunking to detect stale embeddings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

DEFAULT_CHUNK_SIZE = 500
DEFAULT_OVERLAP = 50

# How far back from the window end to look for a natural break
_BREAK_SEARCH_WINDOW = 100

_SENTENCE_END = re.compile(r"[.!?]\s+(?=[A-Z])")

_MARKDOWN_RULES = [
    (re.compile(r"#{1,6}\s+"), ""),  # headers
    (re.compile(r"\*{1,2}([^*]+)\*{1,2}"), r"\1"),  # bold / italic
    (re.compile(r"`{1,3}[^`]+`{1,3}"), ""),  # code
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),  # links -> text
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),  # bullet markers
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),  # numbered markers
]


@dataclass(frozen=True)
class TextChunk:
    """A bounded slice of proposal text, the unit of embedding."""

    text: str
    index: int


def prepare_proposal_text(title: str, description: str) -> str:
    """
    Build the searchable text of a proposal.

    Markdown formatting is stripped from the description so that syntax
    does not dominate the embedding.
    """
    cleaned = description or ""
    for pattern, replacement in _MARKDOWN_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return f"{title or ''}\n\n{cleaned}".strip()


def _normalize(text: str) -> str:
    text = text.replace("\r\n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _find_break(text: str, start: int, end: int) -> int:
    """
    Pick the end offset of a chunk within ``text[start:end]``.

    Prefers the last sentence boundary near the end of the window, then a
    paragraph break, then a line break; falls back to ``end``.
    """
    search_start = max(end - _BREAK_SEARCH_WINDOW, start)
    window = text[search_start:end]

    matches = list(_SENTENCE_END.finditer(window))
    if matches:
        last = matches[-1]
        if last.start() > 0:
            return search_start + last.end()
        return end

    paragraph = window.rfind("\n\n")
    if paragraph > 0:
        return search_start + paragraph + 2

    line = window.rfind("\n")
    if line > 0:
        return search_start + line + 1

    return end


def chunk_text(
    text: str,
    *,
    max_chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> List[TextChunk]:
    """
    Split text into overlapping chunks of at most ``max_chunk_size`` chars.

    Returns an empty list for empty or whitespace-only text.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap < 0 or overlap >= max_chunk_size:
        raise ValueError("overlap must be in [0, max_chunk_size)")

    cleaned = _normalize(text or "")
    if not cleaned:
        return []
    if len(cleaned) <= max_chunk_size:
        return [TextChunk(text=cleaned, index=0)]

    chunks: List[TextChunk] = []
    position = 0
    length = len(cleaned)

    while position < length:
        end = min(position + max_chunk_size, length)
        if end < length:
            end = _find_break(cleaned, position, end)

        piece = cleaned[position:end].strip()
        if piece:
            chunks.append(TextChunk(text=piece, index=len(chunks)))

        if end >= length:
            break

        # Step back by the overlap, but always move forward
        position = max(end - overlap, position + 1)
        if position >= length - overlap:
            break

    return chunks
