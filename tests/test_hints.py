from avvcheck.analysis.categories import Category
from avvcheck.analysis.chunking import chunk_text
from avvcheck.analysis.hints import build_snippets, render_hints
from avvcheck.analysis.models import Chunk, Document


def _whole(document: Document) -> Chunk:
    return chunk_text(document.text)[0]


def test_snippets_carry_page_numbers() -> None:
    first = "Seite 1:\nDer Auftragsverarbeiter handelt nur auf Weisung.\n\n"
    second = "Seite 2:\nEs gilt deutsches Recht, Gerichtsstand ist Berlin.\n\n"
    document = Document(text=first + second, page_starts=(0, len(first)))

    snippets = build_snippets(document, _whole(document))

    assert [snippet.page for snippet in snippets[Category.INSTRUCTIONS_ONLY]] == [1]
    assert [snippet.page for snippet in snippets[Category.JURISDICTION]] == [2]
    assert Category.AUDIT_RIGHTS not in snippets


def test_one_snippet_per_page_and_category() -> None:
    text = "Weisung eins. Weisung zwei. Weisung drei."
    document = Document(text=text)

    snippets = build_snippets(document, _whole(document))

    assert len(snippets[Category.INSTRUCTIONS_ONLY]) == 1
    assert snippets[Category.INSTRUCTIONS_ONLY][0].page is None
    assert snippets[Category.INSTRUCTIONS_ONLY][0].text == text


def test_snippet_window_is_bounded() -> None:
    text = "a " * 400 + "Weisung" + " b" * 400
    document = Document(text=text)

    snippet = build_snippets(document, _whole(document), window=20)[Category.INSTRUCTIONS_ONLY][0]

    assert "Weisung" in snippet.text
    assert len(snippet.text) <= 20 * 2 + len("Weisung")


def test_render_hints() -> None:
    first = "Seite 1:\nDer Auftragsverarbeiter handelt nur auf Weisung.\n\n"
    document = Document(text=first, page_starts=(0,))

    rendered = render_hints(build_snippets(document, _whole(document)))

    lines = rendered.splitlines()
    assert lines[0] == "Hinweise (Snippets je Kategorie; bitte vorrangig durchsuchen):"
    assert "- instructions_only:" in lines
    assert any(line.startswith("  • Seite 1: ") for line in lines)
    assert render_hints({}) == ""
