"""
Near-duplicate phrase grouping.

jaccard() works on the raw phrase text (length filter only, no dynamic
stopwords); it is independent from intent scoring.
"""
from typing import List, Sequence, Set

from .constants import MIN_WORD_LENGTH, SIMILARITY_THRESHOLD
from .models import Record
from .utils import words, permutation_key


def _long_words(phrase: str) -> Set[str]:
    return {w for w in words(phrase) if len(w) >= MIN_WORD_LENGTH}


def jaccard(a: str, b: str) -> float:
    """Intersection over union of the phrases' long words."""
    words_a, words_b = _long_words(a), _long_words(b)
    union = words_a | words_b
    if not union:
        # Only short words on both sides: identical text is still a match
        return 1.0 if words(a) == words(b) else 0.0
    return len(words_a & words_b) / len(union)


def group_and_pick_best(records: Sequence[Record], threshold: float = SIMILARITY_THRESHOLD) -> List[Record]:
    """
    Greedy grouping: each record joins the first group whose first member is
    at least threshold-similar, else starts a new group. Returns the
    best-ranked (lowest position) member of each group, in group order.
    """
    groups: List[List[Record]] = []
    for record in records:
        for group in groups:
            if jaccard(group[0].phrase, record.phrase) >= threshold:
                group.append(record)
                break
        else:
            groups.append([record])

    return [min(group, key=lambda r: r.position) for group in groups]


def dedupe_by_permutation_key(records: Sequence[Record]) -> List[Record]:
    """
    Collapse phrases made of the same words in a different order, keeping
    the member with the most impressions. Order of first appearance is kept.
    """
    best = {}
    for record in records:
        key = permutation_key(record.phrase)
        current = best.get(key)
        if current is None or record.impressions > current.impressions:
            best[key] = record
    return list(best.values())
