"""
plaza.engine.profanity — Chat Word Filter
==========================================

Masks every occurrence of a banned word with ``*`` characters of the same
length.  Matching is case-insensitive and ignores word boundaries, so a
banned word embedded in a longer word is masked too.

The chat pipeline only needs a ``Callable[[str], str]``; this class is the
default implementation, built from the ``banned_words`` config list.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

MASK_CHAR = "*"


class ProfanityFilter:
    """Callable word masker.

    >>> f = ProfanityFilter(["darn"])
    >>> f("Darn it, DARNED thing")
    '**** it, ****ED thing'
    """

    def __init__(self, words: Iterable[str], mask_char: str = MASK_CHAR) -> None:
        cleaned = {w.strip().lower() for w in words if w and w.strip()}
        self.words: tuple[str, ...] = tuple(sorted(cleaned, key=len, reverse=True))
        self.mask_char = mask_char
        # Longest first so overlapping entries mask the widest match.
        self._pattern = (
            re.compile("|".join(re.escape(w) for w in self.words), re.IGNORECASE)
            if self.words
            else None
        )

    def __call__(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: self.mask_char * len(m.group(0)), text)
