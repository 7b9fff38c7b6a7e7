import pytest

from proposal_cache.utils.text_chunker import chunk_text, prepare_proposal_text


def _sentences(count: int) -> str:
    return " ".join(
        f"Sentence {i} describes the skate park build in some detail." for i in range(count)
    )


def test_blank_text_yields_no_chunks() -> None:
    assert chunk_text("") == []
    assert chunk_text("   \n\t ") == []


def test_short_text_is_a_single_chunk() -> None:
    chunks = chunk_text("  Fund a new ramp  ")

    assert len(chunks) == 1
    assert chunks[0].text == "Fund a new ramp"
    assert chunks[0].index == 0


def test_long_text_chunks_are_bounded_and_indexed() -> None:
    chunks = chunk_text(_sentences(40), max_chunk_size=500, overlap=50)

    assert len(chunks) > 1
    assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
    assert all(len(chunk.text) <= 500 for chunk in chunks)


def test_chunks_prefer_sentence_boundaries() -> None:
    chunks = chunk_text(_sentences(40), max_chunk_size=500, overlap=50)

    for chunk in chunks[:-1]:
        assert chunk.text.endswith(".")


def test_consecutive_chunks_overlap() -> None:
    chunks = chunk_text(_sentences(40), max_chunk_size=500, overlap=50)

    for previous, current in zip(chunks, chunks[1:]):
        assert current.text[:20] in previous.text


def test_paragraph_break_used_without_sentences() -> None:
    first = "word " * 90
    second = "more " * 90
    chunks = chunk_text(f"{first.strip()}\n\n{second.strip()}", max_chunk_size=500, overlap=50)

    assert chunks[0].text == first.strip()


def test_chunking_is_deterministic() -> None:
    text = _sentences(25)

    assert chunk_text(text) == chunk_text(text)


def test_invalid_overlap_rejected() -> None:
    with pytest.raises(ValueError):
        chunk_text("some text", max_chunk_size=100, overlap=100)


def test_prepare_proposal_text_strips_markdown() -> None:
    description = (
        "# Summary\n"
        "We want **bold** plans and *italic* ideas.\n"
        "- first item\n"
        "1. numbered item\n"
        "See [the deck](https://example.com/deck) and `code`."
    )

    text = prepare_proposal_text("Fund a new ramp", description)

    assert text.startswith("Fund a new ramp\n\nSummary")
    assert "**" not in text and "#" not in text
    assert "the deck" in text and "https://" not in text
    assert "first item" in text and "- first" not in text
    assert "numbered item" in text and "1." not in text
    assert "`" not in text


def test_prepare_proposal_text_with_empty_description() -> None:
    assert prepare_proposal_text("Title only", "") == "Title only"
    assert prepare_proposal_text("", "") == ""
