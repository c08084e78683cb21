import json
from pathlib import Path

import pytest

from avvcheck.analysis.models import Chunk
from avvcheck.prompt_builder import SYSTEM_PROMPT, build_chunk_prompt, build_merge_prompt


def _chunk(text: str, index: int = 2, total: int = 3) -> Chunk:
    return Chunk(index=index, total=total, text=text, char_start=0, char_end=len(text), estimated_tokens=1)


def test_system_prompt_is_loaded_from_template() -> None:
    system_path = Path(__file__).resolve().parents[1] / "src" / "avvcheck" / "prompts" / "de" / "system.txt"

    assert SYSTEM_PROMPT == system_path.read_text(encoding="utf-8").strip()
    assert "article_28_analysis" in SYSTEM_PROMPT


def test_chunk_prompt_has_position_header() -> None:
    prompt = build_chunk_prompt(_chunk("§ 4 Unterauftragsverarbeiter {Anlage 2}"))

    assert prompt == "Teil 2/3:\n\n§ 4 Unterauftragsverarbeiter {Anlage 2}"


def test_chunk_prompt_appends_hints() -> None:
    prompt = build_chunk_prompt(_chunk("Text"), hints="Hinweise")

    assert prompt.endswith("Text\n\nHinweise")


def test_merge_prompt_embeds_partials_in_order() -> None:
    partials = [{"executive_summary": "Erster Teil"}, {"executive_summary": "Zweiter Teil"}]

    prompt = build_merge_prompt(partials)

    assert prompt.startswith("Hier sind 2 JSON-Ergebnisse aus AVV-Teilanalysen.")
    embedded = json.loads(prompt[prompt.index("[") :])
    assert embedded == partials


def test_merge_prompt_requires_partials() -> None:
    with pytest.raises(ValueError):
        build_merge_prompt([])
