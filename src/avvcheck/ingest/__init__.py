"""Turn uploaded files into pipeline documents."""
from __future__ import annotations

import logging
from typing import List, Optional

from avvcheck.analysis.models import Document
from avvcheck.errors import ExtractionFailedError

from .extractors import DocxExtractor, PDFExtractor, TextExtractor
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import PageContent
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)

PAGE_MARKER = "Seite {page}:"


def assemble_document(pages: List[PageContent], *, paginated: bool) -> Document:
    """Join normalised pages, prefixing each with a page marker when *paginated*."""

    texts = [normalize_text(page.text) for page in pages]
    if not paginated:
        return Document(text="\n\n".join(text for text in texts if text))
    if not any(texts):
        # markers alone must not pass as content
        return Document(text="")

    parts: List[str] = []
    page_starts: List[int] = []
    offset = 0
    for page, text in zip(pages, texts):
        page_starts.append(offset)
        block = f"{PAGE_MARKER.format(page=page.page_number)}\n{text}\n\n"
        parts.append(block)
        offset += len(block)
    return Document(text="".join(parts), page_starts=tuple(page_starts))


def extract_document(data: bytes, file_name: str, mime_type: Optional[str] = None) -> Document:
    """Extract a :class:`Document` from raw upload bytes."""

    try:
        document_format = DocumentFormatDetector.detect(file_name, mime_type, head=data[:8])
    except ValueError as error:
        raise ExtractionFailedError(str(error), cause=error) from error

    if document_format is DocumentFormat.PDF:
        pages = PDFExtractor().extract(data)
    elif document_format is DocumentFormat.DOCX:
        pages = DocxExtractor().extract(data)
    else:
        pages = TextExtractor().extract(data)

    document = assemble_document(pages, paginated=document_format is DocumentFormat.PDF)
    LOGGER.info(
        "Extracted %s characters from %s (%s, %s pages)",
        len(document.text),
        file_name,
        document_format.value,
        len(pages),
    )
    return document


__all__ = [
    "DocumentFormat",
    "DocumentFormatDetector",
    "PAGE_MARKER",
    "PageContent",
    "assemble_document",
    "extract_document",
    "normalize_text",
]
