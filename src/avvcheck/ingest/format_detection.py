"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


class DocumentFormatDetector:
    """Detects the document format based on file name, MIME type and magic bytes."""

    _MIME_MAP = {
        "application/pdf": DocumentFormat.PDF,
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
        "text/plain": DocumentFormat.TXT,
        "text/markdown": DocumentFormat.TXT,
    }
    _SUFFIX_MAP = {
        "pdf": DocumentFormat.PDF,
        "docx": DocumentFormat.DOCX,
        "txt": DocumentFormat.TXT,
        "md": DocumentFormat.TXT,
    }

    @classmethod
    def detect(
        cls,
        file_name: str,
        mime_type: Optional[str] = None,
        head: bytes = b"",
    ) -> DocumentFormat:
        """Return the detected document format.

        An explicit MIME type wins, then ``mimetypes.guess_type``, then the file
        suffix and finally the leading bytes of the payload.
        """

        if mime_type:
            base_type = mime_type.split(";", 1)[0].strip().lower()
            if base_type in cls._MIME_MAP:
                return cls._MIME_MAP[base_type]

        guessed_type, _ = mimetypes.guess_type(file_name)
        if guessed_type and guessed_type in cls._MIME_MAP:
            return cls._MIME_MAP[guessed_type]

        suffix = Path(file_name).suffix.lower().lstrip(".")
        if suffix in cls._SUFFIX_MAP:
            return cls._SUFFIX_MAP[suffix]

        if head.startswith(b"%PDF"):
            return DocumentFormat.PDF
        raise ValueError(f"Unsupported file format: {file_name}")
