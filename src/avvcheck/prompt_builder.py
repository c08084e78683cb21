"""Utilities for constructing prompts for the contract analysis oracle."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from avvcheck.analysis.models import Chunk

_TEMPLATE_DIR = Path(__file__).resolve().parent / "prompts" / "de"
_SYSTEM_PROMPT_PATH = _TEMPLATE_DIR / "system.txt"
_CHUNK_PROMPT_PATH = _TEMPLATE_DIR / "chunk.md"
_MERGE_PROMPT_PATH = _TEMPLATE_DIR / "merge.md"


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


SYSTEM_PROMPT = _load_template(_SYSTEM_PROMPT_PATH)
_CHUNK_TEMPLATE = _load_template(_CHUNK_PROMPT_PATH)
_MERGE_TEMPLATE = _load_template(_MERGE_PROMPT_PATH)


def build_chunk_prompt(chunk: Chunk, hints: str = "") -> str:
    """Compose the prompt for one chunk, with an optional keyword hints block."""

    body = _CHUNK_TEMPLATE.format(index=chunk.index, total=chunk.total, text=chunk.text)
    if hints:
        return f"{body}\n\n{hints}"
    return body


def build_merge_prompt(partials: List[Dict[str, Any]]) -> str:
    """Compose the merge prompt carrying every usable partial result."""

    if not partials:
        raise ValueError("merge prompt needs at least one partial result")
    rendered = json.dumps(partials, ensure_ascii=False, indent=2)
    return _MERGE_TEMPLATE.format(count=len(partials), partials=rendered)


__all__ = ["SYSTEM_PROMPT", "build_chunk_prompt", "build_merge_prompt"]
