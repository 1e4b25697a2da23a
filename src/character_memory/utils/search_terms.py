"""Lexical fallback: keyword and exact-phrase extraction and scoring.

Used when no embedding is available for a query. Both functions are pure:
identical input always yields identical output.
"""

import re
from dataclasses import dataclass, field

# Double-quoted substrings, extracted verbatim
_QUOTED_PHRASE = re.compile(r'"([^"]+)"')

# Anything that is not a word character or whitespace
_PUNCTUATION = re.compile(r"[^\w\s]")

# Tokens of this length or shorter are never keywords
MIN_KEYWORD_LENGTH = 3

EXACT_PHRASE_WEIGHT = 3
KEYWORD_WEIGHT = 1

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "shall", "can", "need", "dare", "ought", "used",
        "to", "of", "in", "for", "on", "with", "at", "by", "from", "as", "into",
        "through", "during", "before", "after", "above", "below", "between",
        "and", "but", "or", "nor", "so", "yet", "both", "either", "neither",
        "not", "only", "own", "same", "than", "too", "very", "just", "also",
        "i", "me", "my", "myself", "we", "our", "ours", "ourselves",
        "you", "your", "yours", "yourself", "yourselves",
        "he", "him", "his", "himself", "she", "her", "hers", "herself",
        "it", "its", "itself", "they", "them", "their", "theirs", "themselves",
        "what", "which", "who", "whom", "this", "that", "these", "those",
        "am", "here", "there", "when", "where", "why", "how",
        "all", "each", "few", "more", "most", "other", "some", "such", "no",
        "any", "if", "then", "because", "while", "although", "though", "once",
    }
)  # fmt: skip


@dataclass(frozen=True)
class SearchTerms:
    """Keywords and exact phrases extracted from a query."""

    keywords: list[str] = field(default_factory=list)
    exact_phrases: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.keywords and not self.exact_phrases

    @property
    def total_points(self) -> int:
        return EXACT_PHRASE_WEIGHT * len(self.exact_phrases) + KEYWORD_WEIGHT * len(self.keywords)


def extract_search_terms(text: str) -> SearchTerms:
    """Extract quoted exact phrases and ranked keywords from ``text``.

    Quoted phrases keep their case and are removed before keyword
    extraction. Keywords are lower-cased, stripped of punctuation, longer
    than two characters, not stop words, deduplicated, and ordered by
    descending length (ties keep first-seen order).

    >>> extract_search_terms('He said "hello world" to the old friend').exact_phrases
    ['hello world']
    """
    exact_phrases = _QUOTED_PHRASE.findall(text)
    remaining = _QUOTED_PHRASE.sub(" ", text)

    tokens = _PUNCTUATION.sub(" ", remaining.lower()).split()

    seen: dict[str, None] = {}
    for token in tokens:
        if len(token) >= MIN_KEYWORD_LENGTH and token not in STOP_WORDS:
            seen.setdefault(token, None)

    # sorted() is stable, so equal-length tokens stay in first-seen order
    keywords = sorted(seen, key=len, reverse=True)

    return SearchTerms(keywords=keywords, exact_phrases=exact_phrases)


def text_similarity(terms: SearchTerms, candidate_text: str) -> float:
    """Score ``candidate_text`` against ``terms`` in ``[0, 1]``.

    Exact phrases weigh three points, keywords one point each. Matching is
    case-insensitive substring containment. Empty terms score 0.
    """
    total = terms.total_points
    if total == 0:
        return 0.0

    target = candidate_text.lower()
    score = 0

    for phrase in terms.exact_phrases:
        if phrase.lower() in target:
            score += EXACT_PHRASE_WEIGHT

    keyword_matches = sum(1 for kw in terms.keywords if kw in target)
    score += KEYWORD_WEIGHT * min(keyword_matches, len(terms.keywords))

    return score / total
