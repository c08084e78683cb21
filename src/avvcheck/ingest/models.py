"""Data models used by the text extraction adapter."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PageContent:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str
