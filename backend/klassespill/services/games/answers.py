"""Free-text answer matching for quiz, gjett-bildet and slange.

Answers are compared after normalization (case, whitespace, punctuation,
diacritics and the Norwegian letters æ/ø/å). Numbers must match exactly;
text may differ by a small, length-adaptive number of edits.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union


_PUNCTUATION_RE = re.compile(r"[.,\-!?'\"()]")
_WHITESPACE_RE = re.compile(r'\s+')
_DIGITS_RE = re.compile(r'^\d+$')
_NATIONAL_LETTERS = (('æ', 'ae'), ('ø', 'o'), ('å', 'aa'))


@dataclass(frozen=True)
class AnswerCheck:
    is_correct: bool
    matched_answer: Optional[str]
    distance: float


def levenshtein_distance(a: str, b: str) -> int:
    """Number of single-character insertions, deletions or substitutions."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j - 1] + (ca != cb),
                current[j - 1] + 1,
                previous[j] + 1,
            ))
        previous = current
    return previous[-1]


def normalize_answer(text) -> str:
    if not text or not isinstance(text, str):
        return ''
    value = _WHITESPACE_RE.sub(' ', text.lower().strip())
    value = _PUNCTUATION_RE.sub('', value)
    for letter, replacement in _NATIONAL_LETTERS:
        value = value.replace(letter, replacement)
    value = unicodedata.normalize('NFD', value)
    return ''.join(ch for ch in value if not unicodedata.combining(ch))


def _match_key(text) -> str:
    # "en blomst" and "enblomst" compare the same
    return normalize_answer(text).replace(' ', '')


def _is_number(text) -> bool:
    return isinstance(text, str) and bool(_DIGITS_RE.match(text.strip()))


def check_answer(
    answer,
    accepted: Union[str, Iterable[str]],
    threshold: int = 2,
    exact_match: bool = False,
) -> AnswerCheck:
    """Check ``answer`` against one or more accepted answers.

    Returns the first accepted answer within tolerance, or, on failure, the
    closest candidate seen so callers can show "almost" feedback.
    """
    if isinstance(answer, (int, float)) and not isinstance(answer, bool):
        answer = str(answer)
    player_key = _match_key(answer)
    if not player_key:
        return AnswerCheck(False, None, float('inf'))

    candidates = [accepted] if isinstance(accepted, str) else list(accepted or [])
    player_is_number = _is_number(answer)

    best_match = None
    best_distance = float('inf')

    for candidate in candidates:
        key = _match_key(candidate)
        if not key:
            continue

        if player_key == key:
            return AnswerCheck(True, candidate, 0)

        # Numbers only match exactly: "6" must never be accepted for "8"
        if player_is_number or _is_number(candidate):
            continue

        if exact_match:
            continue

        if player_key in key or key in player_key:
            delta = abs(len(player_key) - len(key))
            if delta < best_distance:
                best_distance = delta
                best_match = candidate
            if delta <= threshold:
                return AnswerCheck(True, candidate, delta)

        distance = levenshtein_distance(player_key, key)
        if distance < best_distance:
            best_distance = distance
            best_match = candidate
        # tolerance grows with the answer as written, spaces included
        if distance <= max(threshold, len(normalize_answer(candidate)) // 5):
            return AnswerCheck(True, candidate, distance)

    return AnswerCheck(False, best_match, best_distance)


def accepted_answers(value) -> Optional[List[str]]:
    """Accepted answers as a list of non-empty strings, or ``None`` if the
    host sent something else. Plain numbers are taken as their text."""
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, list) or not value:
        return None
    answers = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            return None
        text = item.strip() if isinstance(item, str) else str(item)
        if not text:
            return None
        answers.append(text)
    return answers


def starts_with_letter(word, letter) -> bool:
    if not word or not letter:
        return False
    return word.strip().casefold().startswith(letter.strip().casefold())


def last_letter(word) -> str:
    if not word:
        return ''
    trimmed = word.strip()
    return trimmed[-1].upper() if trimmed else ''
