"""Tests for trigram similarity."""

import pytest

from .trigram import trigram_similarity, trigrams


def test_trigrams_pad_each_word():
    assert trigrams("cat") == frozenset({"  c", " ca", "cat", "at "})


def test_trigrams_ignore_case_and_punctuation():
    assert trigrams("React!") == trigrams("react")
    assert trigrams("a-b") == trigrams("a b")


def test_identical_strings():
    assert trigram_similarity("React Hooks", "react hooks") == pytest.approx(1.0)


def test_typo_stays_above_threshold():
    assert trigram_similarity("Tailwind", "tailwnd") >= 0.3


def test_unrelated_strings():
    assert trigram_similarity("Kubernetes", "react") < 0.3


def test_null_and_empty_inputs():
    assert trigram_similarity(None, "react") == 0.0
    assert trigram_similarity("react", "") == 0.0
    assert trigram_similarity("!!!", "react") == 0.0
