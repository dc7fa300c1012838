"""
tests/test_profanity.py — Chat Word Filter Tests
=================================================
"""

from __future__ import annotations

import pytest

from plaza.engine.profanity import ProfanityFilter


@pytest.fixture
def f():
    return ProfanityFilter(["darn", "heck"])


class TestProfanityFilter:
    def test_clean_text_unchanged(self, f):
        assert f("hello there") == "hello there"

    def test_masks_with_equal_length(self, f):
        assert f("oh darn") == "oh ****"

    def test_case_insensitive(self, f):
        assert f("DaRn HECK") == "**** ****"

    def test_every_occurrence_masked(self, f):
        out = f("darn darn, heck!")
        assert out == "**** ****, ****!"
        assert "darn" not in out.lower()

    def test_ignores_word_boundaries(self, f):
        assert f("darned heckler") == "****ed ****ler"

    def test_regex_metacharacters_are_literal(self):
        f = ProfanityFilter(["a.b"])
        assert f("axb a.b") == "axb ***"

    def test_longer_entry_wins_on_overlap(self):
        f = ProfanityFilter(["dam", "damnit"])
        assert f("damnit") == "******"

    def test_empty_word_list_is_identity(self):
        f = ProfanityFilter([])
        assert f("anything goes") == "anything goes"

    def test_blank_entries_ignored(self):
        f = ProfanityFilter(["", "  ", "heck"])
        assert f.words == ("heck",)
