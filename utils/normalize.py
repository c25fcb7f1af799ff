"""Normalization applied to trigger words wherever they enter the system."""
import re
from typing import Iterable, List

from .exceptions import InvalidTriggerWordError

def normalize_word(word) -> str:
    """Lower-case and trim a single trigger word.

    Raises:
        InvalidTriggerWordError: If the word is not a string or is blank.
    """
    if not isinstance(word, str):
        raise InvalidTriggerWordError(word)
    normalized = word.strip().lower()
    if not normalized:
        raise InvalidTriggerWordError(word)
    return normalized

def normalize_trigger_words(words: Iterable) -> List[str]:
    """Normalize a collection of words, dropping blanks and duplicates.

    Order of first appearance is preserved. Non-string entries are skipped.
    """
    seen = []
    for word in words or []:
        if not isinstance(word, str):
            continue
        normalized = word.strip().lower()
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen

def parse_word_list(raw: str) -> List[str]:
    """Split a comma separated command argument into normalized words."""
    return normalize_trigger_words(raw.split(","))

def find_trigger_words(content: str, trigger_words: Iterable[str]) -> List[str]:
    """Return the trigger words that appear as whole words in a message."""
    text = content.lower()
    return [
        word for word in trigger_words
        if re.search(rf"(?<!\w){re.escape(word)}(?!\w)", text)
    ]
