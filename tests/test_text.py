"""Unit tests for split_text: fixed-size overlapping character windows."""

import random
import string

import pytest

from cerebro.errors import InvalidConfiguration
from cerebro.utils.text import split_text, word_count


def _random_text(length: int, seed: int) -> str:
    rng = random.Random(seed)
    return "".join(rng.choice(string.ascii_letters + "  \n") for _ in range(length))


def _boundaries(chunks):
    return [(c.index, c.content, c.start_offset, c.end_offset) for c in chunks]


class TestScenarios:
    def test_2400_chars_gives_three_overlapping_chunks(self) -> None:
        text = _random_text(2400, seed=1)
        chunks = split_text(text, 1000, 200)

        assert [(c.start_offset, c.end_offset) for c in chunks] == [(0, 1000), (800, 1800), (1600, 2400)]
        assert [c.index for c in chunks] == [0, 1, 2]
        assert chunks[1].content == text[800:1800]

    def test_short_text_is_one_chunk(self) -> None:
        chunks = split_text("hello world", 1000, 200)
        assert len(chunks) == 1
        assert chunks[0].content == "hello world"
        assert (chunks[0].start_offset, chunks[0].end_offset) == (0, 11)

    def test_text_exactly_chunk_size_is_one_chunk(self) -> None:
        text = "x" * 1000
        chunks = split_text(text, 1000, 200)
        assert len(chunks) == 1
        assert chunks[0].content == text

    def test_empty_text_yields_nothing(self) -> None:
        assert split_text("", 1000, 200) == []

    def test_last_chunk_may_be_shorter(self) -> None:
        chunks = split_text("a" * 25, 10, 0)
        assert [len(c.content) for c in chunks] == [10, 10, 5]

    def test_chunks_have_no_embedding(self) -> None:
        assert all(c.embedding is None for c in split_text("abc" * 500, 100, 10))


class TestInvalidConfiguration:
    @pytest.mark.parametrize(
        "chunk_size, overlap",
        [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)],
    )
    def test_bad_parameters_raise(self, chunk_size: int, overlap: int) -> None:
        with pytest.raises(InvalidConfiguration):
            split_text("some text", chunk_size, overlap)


class TestProperties:
    @pytest.mark.parametrize("seed", range(8))
    def test_windows_are_ordered_and_cover_the_text(self, seed: int) -> None:
        rng = random.Random(seed)
        chunk_size = rng.randint(1, 300)
        overlap = rng.randint(0, chunk_size - 1)
        text = _random_text(rng.randint(1, 3000), seed)

        chunks = split_text(text, chunk_size, overlap)

        assert chunks[0].start_offset == 0
        assert chunks[-1].end_offset == len(text)
        for pos, chunk in enumerate(chunks):
            assert chunk.index == pos
            assert chunk.end_offset - chunk.start_offset == len(chunk.content)
            assert chunk.content == text[chunk.start_offset:chunk.end_offset]
            assert len(chunk.content) <= chunk_size
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start_offset > prev.start_offset
            # no gap between consecutive windows
            assert nxt.start_offset <= prev.end_offset

    def test_split_is_deterministic(self) -> None:
        text = _random_text(5000, seed=42)
        assert _boundaries(split_text(text, 700, 123)) == _boundaries(split_text(text, 700, 123))


def test_word_count_splits_on_whitespace() -> None:
    assert word_count("one two\tthree\n\nfour  ") == 4
    assert word_count("") == 0
