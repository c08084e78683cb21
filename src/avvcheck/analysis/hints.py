"""Keyword snippets that point the oracle at likely evidence passages."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .categories import CATEGORY_ORDER, Category, find_keyword
from .models import Chunk, Document

SNIPPET_WINDOW = 260
MAX_SNIPPETS_PER_CATEGORY = 6


@dataclass(frozen=True, slots=True)
class Snippet:
    page: Optional[int]
    text: str


def _segments(document: Document, chunk: Chunk) -> List[tuple[Optional[int], int, int]]:
    """Split the chunk span at page boundaries."""

    starts = [offset for offset in document.page_starts if chunk.char_start < offset < chunk.char_end]
    bounds = [chunk.char_start, *starts, chunk.char_end]
    return [
        (document.page_at(left), left, right)
        for left, right in zip(bounds, bounds[1:])
        if right > left
    ]


def build_snippets(
    document: Document,
    chunk: Chunk,
    *,
    window: int = SNIPPET_WINDOW,
    max_per_category: int = MAX_SNIPPETS_PER_CATEGORY,
) -> Dict[Category, List[Snippet]]:
    """Collect at most one keyword hit per page and category inside *chunk*."""

    segments = _segments(document, chunk)
    snippets: Dict[Category, List[Snippet]] = {}
    for category in CATEGORY_ORDER:
        found: List[Snippet] = []
        for page, start, end in segments:
            segment = document.text[start:end]
            match = find_keyword(category, segment)
            if match is None:
                continue
            left = max(0, match.start() - window)
            right = min(len(segment), match.end() + window)
            found.append(Snippet(page=page, text=" ".join(segment[left:right].split())))
            if len(found) == max_per_category:
                break
        if found:
            snippets[category] = found
    return snippets


def render_hints(snippets: Dict[Category, List[Snippet]]) -> str:
    if not snippets:
        return ""
    lines = ["Hinweise (Snippets je Kategorie; bitte vorrangig durchsuchen):"]
    for category in CATEGORY_ORDER:
        entries = snippets.get(category)
        if not entries:
            continue
        lines.append(f"- {category.value}:")
        for entry in entries:
            location = f"Seite {entry.page}: " if entry.page is not None else ""
            lines.append(f"  • {location}{entry.text}")
    return "\n".join(lines)


__all__ = ["MAX_SNIPPETS_PER_CATEGORY", "SNIPPET_WINDOW", "Snippet", "build_snippets", "render_hints"]
