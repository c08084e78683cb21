"""Split contract text into oracle-sized chunks along structural boundaries."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from .models import Chunk

LOGGER = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

# Zero-width matches at the start of lines that open a new clause or section
# in German contracts.
_STRUCTURAL_BREAK_RE = re.compile(
    r"^(?=.{0,6}(?:(?:Kapitel|Abschnitt|Artikel|Ziffer|Anhang)\b|Art\.|§))"
    r"|^(?=[ \t]*[IVXLC]+\.\s)"
    r"|^(?=[ \t]*\d{1,2}\.\s)"
    r"|^(?=[ \t]*[A-ZÄÖÜ][A-ZÄÖÜ \-/]{5,}[ \t]*$)",
    re.MULTILINE,
)
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")

Span = Tuple[int, int]


def estimate_tokens(text: str) -> int:
    """Cheap token estimate used for every budget decision."""

    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _span_tokens(span: Span) -> int:
    return math.ceil((span[1] - span[0]) / CHARS_PER_TOKEN)


@dataclass(slots=True)
class ChunkingConfig:
    target_tokens: int = 8_000
    hard_max_tokens: int = 9_500
    max_chunks: int = 8

    def validate(self) -> None:
        if self.target_tokens <= 0 or self.hard_max_tokens <= 0:
            raise ValueError("token budgets must be positive integers")
        if self.target_tokens > self.hard_max_tokens:
            raise ValueError("target_tokens must not exceed hard_max_tokens")
        if self.max_chunks <= 0:
            raise ValueError("max_chunks must be a positive integer")


class SemanticTextChunker:
    """Pack structural units of a contract into token-bounded chunks.

    Chunks are exact slices of the input, so joining their texts gives back
    the input unchanged (up to the ``max_chunks`` cut-off).
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        self.config.validate()

    def chunk(self, text: str) -> List[Chunk]:
        if not text or not text.strip():
            return []

        spans = self._pack(self._units(text))
        if len(spans) > self.config.max_chunks:
            dropped = len(text) - spans[self.config.max_chunks - 1][1]
            LOGGER.warning(
                "Document needs %s chunks; keeping the first %s and dropping %s trailing characters",
                len(spans),
                self.config.max_chunks,
                dropped,
            )
            spans = spans[: self.config.max_chunks]

        total = len(spans)
        chunks = [
            Chunk(
                index=index,
                total=total,
                text=text[start:end],
                char_start=start,
                char_end=end,
                estimated_tokens=_span_tokens((start, end)),
            )
            for index, (start, end) in enumerate(spans, start=1)
        ]
        LOGGER.debug(
            "Chunked %s characters into %s chunks (target=%s, hard_max=%s)",
            len(text),
            total,
            self.config.target_tokens,
            self.config.hard_max_tokens,
        )
        return chunks

    def _units(self, text: str) -> Iterator[Span]:
        hard_max = self.config.hard_max_tokens
        blocks = _split_at(text, (0, len(text)), _structural_breaks(text))
        if len(blocks) <= 1:
            blocks = _split_at(text, (0, len(text)), _paragraph_breaks(text, 0, len(text)))

        for block in blocks:
            if _span_tokens(block) <= hard_max:
                yield block
                continue
            for paragraph in _split_at(text, block, _paragraph_breaks(text, *block)):
                if _span_tokens(paragraph) <= hard_max:
                    yield paragraph
                else:
                    yield from _hard_split(paragraph, hard_max * CHARS_PER_TOKEN)

    def _pack(self, units: Iterator[Span]) -> List[Span]:
        target = self.config.target_tokens
        spans: List[Span] = []
        start: int | None = None
        end = 0
        for unit_start, unit_end in units:
            if start is None:
                start, end = unit_start, unit_end
                continue
            if _span_tokens((start, unit_end)) > target:
                spans.append((start, end))
                start = unit_start
            end = unit_end
        if start is not None:
            spans.append((start, end))
        return spans


def _structural_breaks(text: str) -> List[int]:
    return [match.start() for match in _STRUCTURAL_BREAK_RE.finditer(text)]


def _paragraph_breaks(text: str, start: int, end: int) -> List[int]:
    return [match.end() for match in _PARAGRAPH_BREAK_RE.finditer(text, start, end)]


def _split_at(text: str, span: Span, positions: List[int]) -> List[Span]:
    start, end = span
    cuts = sorted({position for position in positions if start < position < end})
    bounds = [start, *cuts, end]
    return [(left, right) for left, right in zip(bounds, bounds[1:]) if right > left]


def _hard_split(span: Span, max_chars: int) -> Iterator[Span]:
    start, end = span
    for offset in range(start, end, max_chars):
        yield offset, min(offset + max_chars, end)


def chunk_text(
    text: str,
    target_tokens: int = 8_000,
    hard_max_tokens: int = 9_500,
    max_chunks: int = 8,
) -> List[Chunk]:
    """Functional entry point around :class:`SemanticTextChunker`."""

    config = ChunkingConfig(
        target_tokens=target_tokens,
        hard_max_tokens=hard_max_tokens,
        max_chunks=max_chunks,
    )
    return SemanticTextChunker(config).chunk(text)


__all__ = ["CHARS_PER_TOKEN", "ChunkingConfig", "SemanticTextChunker", "chunk_text", "estimate_tokens"]
