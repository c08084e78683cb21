"""Pure analysis core: chunking, extraction, reconciliation and scoring."""
from __future__ import annotations

from .categories import Category, Severity, Status
from .chunking import ChunkingConfig, SemanticTextChunker, chunk_text
from .extraction import extract_json
from .models import AnalysisRecord, Chunk, Document, ScoreBreakdown
from .reconciliation import reconcile
from .scoring import score, score_record

__all__ = [
    "AnalysisRecord",
    "Category",
    "Chunk",
    "ChunkingConfig",
    "Document",
    "ScoreBreakdown",
    "SemanticTextChunker",
    "Severity",
    "Status",
    "chunk_text",
    "extract_json",
    "reconcile",
    "score",
    "score_record",
]
