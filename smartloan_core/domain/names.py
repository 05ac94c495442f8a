"""Person-name normalisation and word-overlap similarity"""

import re
from typing import List

_NON_LETTERS = re.compile(r"[^A-Z\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Uppercase, drop everything that is not a letter or space, collapse spaces"""
    upper = (name or "").upper()
    return _WHITESPACE.sub(" ", _NON_LETTERS.sub("", upper)).strip()


def name_words(name: str) -> List[str]:
    """Normalised words of a name, ignoring single-letter initials"""
    return [word for word in normalize_name(name).split(" ") if len(word) > 1]


def name_similarity(first: str, second: str) -> float:
    """
    Word-overlap similarity of two names in [0, 1].

    similarity = 2 * shared_words / (words_in_first + words_in_second)

    Word order and case are ignored, so "JOHN OTIENO KAMAU" and
    "Otieno Kamau John" score 1.0. Symmetric in its arguments.
    """
    n1 = normalize_name(first)
    n2 = normalize_name(second)

    if n1 and n1 == n2:
        return 1.0

    words1 = name_words(n1)
    words2 = name_words(n2)
    if not words1 or not words2:
        return 0.0

    shared = len(set(words1) & set(words2))
    return (2.0 * shared) / (len(words1) + len(words2))
