"""
Dynamic stopwords.

Words that saturate a niche corpus (e.g. "velo" on a bike shop, present in
most queries) say nothing about intent. The most frequent words of the run's
non-branded records are excluded from example-overlap scoring so they cannot
inflate similarity between unrelated phrases.
"""
import logging
from collections import Counter
from typing import FrozenSet, Iterable

from .constants import STOPWORD_TOP_N
from .models import Record
from .utils import words, is_eligible_word

logger = logging.getLogger(__name__)


def document_frequency(records: Iterable[Record]) -> Counter:
    """Number of records each eligible word appears in (once per record)."""
    frequency = Counter()
    for record in records:
        unique = dict.fromkeys(w for w in words(record.phrase) if is_eligible_word(w))
        frequency.update(unique.keys())
    return frequency


def detect_stopwords(records: Iterable[Record], top_n: int = STOPWORD_TOP_N) -> FrozenSet[str]:
    """
    Return the top_n words by document frequency.

    Ties keep first-seen order. A corpus with fewer than top_n eligible words
    returns all of them.
    """
    if top_n <= 0:
        return frozenset()

    frequency = document_frequency(records)
    ranked = sorted(frequency.items(), key=lambda item: item[1], reverse=True)[:top_n]

    if ranked:
        logger.info(
            "Dynamic stopwords detected: %s",
            ', '.join(f"{word} ({count})" for word, count in ranked),
        )
    return frozenset(word for word, _ in ranked)
