"""
Answer normalization and fuzzy matching for free-text quiz answers.
"""
import unicodedata
from typing import Iterable, List

DEFAULT_TOLERANCE_RATIO = 0.25

# Full-width ASCII variants map onto U+0021..U+007E
_FULLWIDTH_FIRST = 0xFF01
_FULLWIDTH_LAST = 0xFF5E
_FULLWIDTH_OFFSET = 0xFF00 - 0x20

# Katakana small A .. small KE fold onto hiragana
_KATAKANA_FIRST = 0x30A1
_KATAKANA_LAST = 0x30F6
_KANA_OFFSET = 0x60


def _is_letter_or_number(char: str) -> bool:
    return unicodedata.category(char)[0] in ("L", "N")


def _to_halfwidth(char: str) -> str:
    code_point = ord(char)
    if _FULLWIDTH_FIRST <= code_point <= _FULLWIDTH_LAST:
        return chr(code_point - _FULLWIDTH_OFFSET)
    return char


def _to_hiragana(char: str) -> str:
    code_point = ord(char)
    if _KATAKANA_FIRST <= code_point <= _KATAKANA_LAST:
        return chr(code_point - _KANA_OFFSET)
    return char


def normalize(text: str) -> str:
    """
    Canonicalize text for answer comparison.

    Lowercases, drops everything that is not a Unicode letter or number,
    folds full-width characters to their ASCII forms and katakana to
    hiragana.

    Args:
        text: Raw user or sheet text

    Returns:
        Normalized comparison form (empty for empty input)
    """
    kept = (char for char in text.lower() if _is_letter_or_number(char))
    return "".join(_to_hiragana(_to_halfwidth(char)) for char in kept)


def edit_distance(first: str, second: str) -> int:
    """Levenshtein distance with unit costs."""
    if len(first) < len(second):
        return edit_distance(second, first)
    if not second:
        return len(first)

    previous_row = list(range(len(second) + 1))
    for i, c1 in enumerate(first):
        current_row = [i + 1]
        for j, c2 in enumerate(second):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def is_match(accepted: str, candidate: str, ratio: float = DEFAULT_TOLERANCE_RATIO) -> bool:
    """
    Decide whether a candidate answer matches an accepted answer.

    Both sides are normalized; the candidate matches when the edit distance
    is at most floor(len(normalized accepted) * ratio).

    Args:
        accepted: Accepted answer text
        candidate: Text submitted by a participant
        ratio: Fraction of the accepted answer that may be corrupted

    Returns:
        True if the candidate is within tolerance
    """
    normalized_accepted = normalize(accepted)
    normalized_candidate = normalize(candidate)
    tolerance = int(len(normalized_accepted) * ratio)
    return edit_distance(normalized_accepted, normalized_candidate) <= tolerance


def matches_any(accepted_answers: Iterable[str], candidate: str,
                ratio: float = DEFAULT_TOLERANCE_RATIO) -> bool:
    """True if the candidate matches at least one accepted answer."""
    return any(is_match(answer, candidate, ratio) for answer in accepted_answers)


def suggest_candidates(query: str, names: Iterable[str],
                       ratio: float = DEFAULT_TOLERANCE_RATIO) -> List[str]:
    """Return the names that ``query`` could be a misspelling of."""
    return [name for name in names if is_match(name, query, ratio)]
