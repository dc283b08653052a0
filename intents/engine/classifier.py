"""
Confidence-tiered classification.

Every record gets the intention with the highest score, then lands in one of
three tiers:

- HIGH      (score >= high_confidence): accepted as is.
- DOUBTFUL  (doubtful_confidence <= score < high_confidence): may be refined
            by an external collaborator; refinement is advisory only.
- LOW       (score < doubtful_confidence): forced to "unclassified" with
            confidence 0 and never refined.

Final order is HIGH, DOUBTFUL, LOW, input order within a tier.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import AnalysisConfig
from .constants import UNCLASSIFIED, TIER_HIGH, TIER_DOUBTFUL, TIER_LOW
from .models import ClassificationResult, DoubtfulPhrase, Intention, Record, SeamStatus
from .scoring import score, rank_intentions
from .seams import ErrorKind, SeamResult, call_seam

logger = logging.getLogger(__name__)

# (doubtful phrases, intentions, site theme) -> SeamResult[{phrase: intention}]
Refiner = Callable[[List[DoubtfulPhrase], Sequence[Intention], Optional[str]], SeamResult]


@dataclass
class ClassificationOutcome:
    results: List[ClassificationResult]
    tier_counts: Dict[str, int]
    refinement: SeamStatus = field(default_factory=SeamStatus)


def best_match(record: Record, intentions: Sequence[Intention], stopwords: FrozenSet[str] = frozenset(),
               config: Optional[AnalysisConfig] = None) -> Tuple[str, float]:
    """Arg-max intention for a record. First intention wins ties."""
    best_name, best_score = UNCLASSIFIED, 0.0
    for intention in intentions:
        confidence = score(record.phrase, intention, stopwords, config)
        if confidence > best_score:
            best_name, best_score = intention.name, confidence
    return best_name, best_score


def tier_for(confidence: float, config: AnalysisConfig) -> str:
    if confidence >= config.high_confidence:
        return TIER_HIGH
    if confidence >= config.doubtful_confidence:
        return TIER_DOUBTFUL
    return TIER_LOW


def classify(
    records: Sequence[Record],
    intentions: Sequence[Intention],
    stopwords: FrozenSet[str] = frozenset(),
    config: Optional[AnalysisConfig] = None,
    refiner: Optional[Refiner] = None,
    site_theme: Optional[str] = None,
) -> ClassificationOutcome:
    """Classify every record; optionally refine the doubtful tier."""
    config = config or AnalysisConfig()

    high, doubtful, low = [], [], []
    for record in records:
        name, confidence = best_match(record, intentions, stopwords, config)
        tier = tier_for(confidence, config)
        if tier == TIER_HIGH:
            high.append(ClassificationResult(record, name, confidence, TIER_HIGH))
        elif tier == TIER_DOUBTFUL:
            doubtful.append(ClassificationResult(record, name, confidence, TIER_DOUBTFUL))
        else:
            low.append(ClassificationResult(record, UNCLASSIFIED, 0.0, TIER_LOW))

    logger.info(
        "Classification: %d high / %d doubtful / %d low",
        len(high), len(doubtful), len(low),
    )

    refinement = SeamStatus()
    if doubtful and refiner is not None:
        doubtful, refinement = _refine(doubtful, intentions, stopwords, config, refiner, site_theme)

    return ClassificationOutcome(
        results=high + doubtful + low,
        tier_counts={TIER_HIGH: len(high), TIER_DOUBTFUL: len(doubtful), TIER_LOW: len(low)},
        refinement=refinement,
    )


# =============================================================================
# REFINEMENT
# =============================================================================

def build_refinement_payload(doubtful: Sequence[ClassificationResult], intentions: Sequence[Intention],
                             stopwords: FrozenSet[str], config: AnalysisConfig) -> List[DoubtfulPhrase]:
    """Largest-impression doubtful phrases with their best tentative intentions."""
    ordered = sorted(doubtful, key=lambda r: r.record.impressions, reverse=True)
    payload = []
    for result in ordered[:config.refinement_max_phrases]:
        ranked = rank_intentions(result.record.phrase, intentions, stopwords, config)
        candidates = [(name, s) for name, s in ranked if s > 0][:config.refinement_candidates]
        payload.append(DoubtfulPhrase(
            phrase=result.record.phrase,
            impressions=result.record.impressions,
            candidates=candidates,
        ))
    return payload


def _refine(doubtful, intentions, stopwords, config, refiner, site_theme):
    payload = build_refinement_payload(doubtful, intentions, stopwords, config)
    result = call_seam('refinement', refiner, payload, intentions, site_theme, timeout=config.seam_timeout)

    if result.ok and not isinstance(result.value, dict):
        result = SeamResult.failure(ErrorKind.SCHEMA, "Refinement must map phrases to intentions")
    if not result.ok:
        return doubtful, result.to_status()

    known = {i.name for i in intentions} | {UNCLASSIFIED}
    overrides = {}
    for phrase, intention in result.value.items():
        if isinstance(phrase, str) and isinstance(intention, str) and intention in known:
            overrides[phrase.lower()] = intention

    refined = []
    applied = 0
    for item in doubtful:
        override = overrides.get(item.record.phrase.lower())
        if override is None:
            refined.append(item)
            continue
        applied += 1
        refined.append(ClassificationResult(
            record=item.record,
            intention=override,
            confidence=0.0 if override == UNCLASSIFIED else config.refined_confidence,
            tier=TIER_DOUBTFUL,
            refined=True,
        ))

    logger.info("Refinement applied to %d of %d doubtful phrases", applied, len(doubtful))
    return refined, result.to_status()
