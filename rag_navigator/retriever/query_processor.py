"""
Query Processor

Turns a free-text prompt into the search terms used by the hybrid search.
"""

import re
from typing import Set

from ..common.errors import InvalidInput

# Space, comma, period, semicolon, colon, newline, tab, exclamation, question mark
KEYWORD_DELIMITERS = re.compile(r"[ ,.;:\n\t!?]+")

MIN_KEYWORD_LENGTH = 3


def extract_keywords(text: str) -> Set[str]:
    """
    Extract the deduplicated set of significant lowercase terms from text.

    Tokens of two characters or fewer are dropped.

    Raises:
        InvalidInput: text is empty or whitespace-only
    """
    if not text or not text.strip():
        raise InvalidInput("Prompt text cannot be null or empty.")

    keywords = set()
    for token in KEYWORD_DELIMITERS.split(text):
        word = token.strip().lower()
        if len(word) >= MIN_KEYWORD_LENGTH:
            keywords.add(word)

    return keywords


def count_keyword_hits(terms: Set[str], *fields: str) -> int:
    """Number of terms appearing as whole words (case-insensitively) in any of the given fields."""
    if not terms:
        return 0
    words = set()
    for value in fields:
        if value:
            words.update(token.lower() for token in KEYWORD_DELIMITERS.split(value))
    return len(terms & words)
