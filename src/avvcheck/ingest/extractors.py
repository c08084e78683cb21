"""Extractors for supported document types."""
from __future__ import annotations

import io
import logging
from typing import Iterable, List, Sequence

from docx import Document as load_docx
from PyPDF2 import PdfReader

from avvcheck.errors import ExtractionFailedError

from .models import PageContent

LOGGER = logging.getLogger(__name__)

TEXT_ENCODINGS: Sequence[str] = ("utf-8-sig", "cp1252", "latin-1")


class PDFExtractor:
    """Extract text page by page from PDF documents."""

    def extract(self, data: bytes) -> List[PageContent]:
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                reader.decrypt("")
            page_objects = list(reader.pages)
        except Exception as error:
            raise ExtractionFailedError(f"Could not read PDF: {error}", cause=error) from error

        pages: List[PageContent] = []
        for index, page in enumerate(page_objects, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on PDF internals
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            pages.append(PageContent(page_number=index, text=text))
        return pages


class DocxExtractor:
    """Extract paragraph and table text from Microsoft Word documents."""

    def extract(self, data: bytes) -> List[PageContent]:
        try:
            document = load_docx(io.BytesIO(data))
        except Exception as error:
            raise ExtractionFailedError(f"Could not read DOCX: {error}", cause=error) from error

        parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return [PageContent(page_number=1, text="\n\n".join(parts))]


class TextExtractor:
    """Extract text from plaintext documents."""

    def __init__(self, encodings: Iterable[str] = TEXT_ENCODINGS) -> None:
        self.encodings = tuple(encodings)

    def extract(self, data: bytes) -> List[PageContent]:
        for encoding in self.encodings:
            try:
                text = data.decode(encoding)
            except UnicodeDecodeError:
                continue
            if encoding != self.encodings[0]:
                LOGGER.info("Decoded plain text using fallback encoding %s", encoding)
            return [PageContent(page_number=1, text=text)]
        raise ExtractionFailedError(f"Could not decode text with any of {', '.join(self.encodings)}")
