"""Answer normalization and comparison."""
from __future__ import annotations

import re
import unicodedata

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")


def normalize(text: str) -> str:
    """Lowercase, trim and strip diacritics so answers compare loosely."""

    decomposed = unicodedata.normalize("NFD", text.lower().strip())
    return _COMBINING_MARKS.sub("", decomposed).strip()


def validate(user_input: str, correct_answer: str) -> bool:
    """Return ``True`` when both strings are equal after normalization."""

    return normalize(user_input) == normalize(correct_answer)


def collation_key(text: str) -> tuple[str, str]:
    """Sort key ordering labels alphabetically regardless of case and accents.

    Labels that differ only by case or accents fall back to their raw form so
    ordering stays deterministic.
    """

    return normalize(text).casefold(), text
