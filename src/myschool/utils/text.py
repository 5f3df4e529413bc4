"""Hangul helpers for initial-consonant matching."""

from __future__ import annotations

SYLLABLE_FIRST = 0xAC00
SYLLABLE_LAST = 0xD7A3
_VOWELS = 21
_FINALS = 28

INITIALS = (
    "ㄱ", "ㄲ", "ㄴ", "ㄷ", "ㄸ", "ㄹ", "ㅁ", "ㅂ", "ㅃ", "ㅅ",
    "ㅆ", "ㅇ", "ㅈ", "ㅉ", "ㅊ", "ㅋ", "ㅌ", "ㅍ", "ㅎ",
)


def is_syllable(char: str) -> bool:
    return SYLLABLE_FIRST <= ord(char) <= SYLLABLE_LAST


def initial_consonant(char: str) -> str:
    """Return the leading consonant of a precomposed syllable, else the char."""
    if not is_syllable(char):
        return char
    return INITIALS[(ord(char) - SYLLABLE_FIRST) // (_VOWELS * _FINALS)]


def extract_initials(text: str) -> str:
    """Collapse every syllable to its leading consonant and drop spaces.

    Anything else is kept as is, so ``"서울 Global고"`` becomes ``"ㅅㅇGlobalㄱ"``.
    """
    parts = []
    for char in text:
        if is_syllable(char):
            parts.append(initial_consonant(char))
        elif char != " ":
            parts.append(char)
    return "".join(parts)


def is_initial_query(query: str) -> bool:
    """True when the query holds no syllables, ASCII letters or ASCII digits."""
    for char in query:
        if is_syllable(char):
            return False
        if "a" <= char <= "z" or "A" <= char <= "Z" or "0" <= char <= "9":
            return False
    return True
