"""Tests for edit distance and normalized similarity."""

import pytest

from voicetrack.similarity import edit_distance, match_confidence, similarity


class TestEditDistance:
    """Tests for edit_distance()."""

    def test_classic_example(self) -> None:
        assert edit_distance("kitten", "sitting") == 3

    def test_identical(self) -> None:
        assert edit_distance("same", "same") == 0

    def test_against_empty(self) -> None:
        assert edit_distance("", "abc") == 3
        assert edit_distance("abc", "") == 3

    @pytest.mark.parametrize("a,b", [
        ("kitten", "sitting"),
        ("the quick brown", "quick brown fox"),
        ("", "x"),
    ])
    def test_symmetric(self, a: str, b: str) -> None:
        assert edit_distance(a, b) == edit_distance(b, a)


class TestSimilarity:
    """Tests for similarity() and match_confidence()."""

    def test_identical_is_one(self) -> None:
        assert similarity("abc", "abc") == 1.0
        assert similarity("", "") == 1.0

    def test_one_empty_is_zero(self) -> None:
        assert similarity("", "abc") == 0.0
        assert similarity("abc", "") == 0.0

    def test_normalized_by_longer_string(self) -> None:
        assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    @pytest.mark.parametrize("a,b", [
        ("hello", "help"),
        ("one two three", "three two one"),
        ("a", "completely different"),
    ])
    def test_bounded(self, a: str, b: str) -> None:
        value: float = similarity(a, b)
        assert 0.0 <= value <= 1.0

    def test_confidence_ignores_case(self) -> None:
        assert match_confidence("HELLO there", "hello THERE") == 1.0

    def test_confidence_empty_is_zero(self) -> None:
        assert match_confidence("", "hello") == 0.0
        assert match_confidence("hello", "") == 0.0
