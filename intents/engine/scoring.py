"""
Confidence scoring of a phrase against an intention.

Two independent evidence terms are summed (uncapped, so agreement between
signals can push the score above 1.0):

1. Linguistic signal: every signal token of the intention found inside the
   phrase adds SIGNAL_WEIGHT. Not stopword-filtered; signal tokens ("how",
   "price", "vs", "2025") are deliberate markers chosen by the intention author.
2. Example overlap: for each example, shared content words divided by the
   larger word set, times EXAMPLE_WEIGHT. Stopword-filtered.
"""
import re
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .config import AnalysisConfig
from .constants import SIGNAL_SEPARATORS
from .models import Intention
from .utils import content_words

_DEFAULT_CONFIG = AnalysisConfig()


def signal_tokens(linguistic_signal: str) -> List[str]:
    """Split a "how, price; vs" style signal into clean lowercase tokens."""
    if not linguistic_signal:
        return []
    tokens = (t.strip().lower() for t in re.split(SIGNAL_SEPARATORS, linguistic_signal))
    # Empty tokens ("prix,,") are dropped: an empty string would match every phrase
    return [t for t in tokens if t]


def signal_score(phrase: str, intention: Intention, config: AnalysisConfig = _DEFAULT_CONFIG) -> float:
    lowered = (phrase or '').lower()
    return sum(
        config.signal_weight
        for token in signal_tokens(intention.linguistic_signal)
        if token in lowered
    )


def example_score(phrase: str, intention: Intention, stopwords: Iterable[str] = frozenset(),
                  config: AnalysisConfig = _DEFAULT_CONFIG) -> float:
    query_words = content_words(phrase, stopwords)
    if not query_words:
        return 0.0

    total = 0.0
    for example in intention.examples:
        example_words = content_words(example, stopwords)
        if not example_words:
            continue
        common = len(example_words & query_words)
        total += common / max(len(example_words), len(query_words)) * config.example_weight
    return total


def score(phrase: str, intention: Intention, stopwords: Iterable[str] = frozenset(),
          config: Optional[AnalysisConfig] = None) -> float:
    """Confidence (>= 0) that phrase belongs to intention."""
    config = config or _DEFAULT_CONFIG
    stop = frozenset(stopwords)
    return signal_score(phrase, intention, config) + example_score(phrase, intention, stop, config)


def rank_intentions(phrase: str, intentions: Sequence[Intention], stopwords: FrozenSet[str] = frozenset(),
                    config: Optional[AnalysisConfig] = None) -> List[Tuple[str, float]]:
    """(name, score) for every intention, best first. Stable on ties."""
    scored = [(i.name, score(phrase, i, stopwords, config)) for i in intentions]
    return sorted(scored, key=lambda item: item[1], reverse=True)
