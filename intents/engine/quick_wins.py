"""
Quick-win selection.

A quick win is a phrase ranking in the mid band (positions 4-20 by default)
with real impression volume: a small ranking gain there moves traffic.

Per intention the deterministic pool is: filter, permutation-key dedupe,
optional near-duplicate collapse, sort by position. A curator may reorder or
trim the pool; if it is absent or fails, the first quick_win_limit entries
of the pool are returned and the failure is reported to the caller.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import AnalysisConfig
from .models import ClassificationResult, Intention, QuickWinSet, Record, SeamStatus
from .seams import ErrorKind, SeamResult, call_seam
from .similarity import dedupe_by_permutation_key, group_and_pick_best

logger = logging.getLogger(__name__)

# {intention: [candidate records]} -> SeamResult[{intention: [phrases]}]
Curator = Callable[[Dict[str, List[Record]]], SeamResult]


def is_candidate(record: Record, config: AnalysisConfig) -> bool:
    return (
        config.quick_win_min_position <= record.position <= config.quick_win_max_position
        and record.impressions >= config.quick_win_min_impressions
    )


def candidate_pool(results: Sequence[ClassificationResult], intention_name: str,
                   config: Optional[AnalysisConfig] = None) -> List[Record]:
    """Deterministic, position-sorted candidates for one intention."""
    config = config or AnalysisConfig()
    records = [
        r.record for r in results
        if r.intention == intention_name and is_candidate(r.record, config)
    ]
    records = dedupe_by_permutation_key(records)
    if config.collapse_near_duplicates:
        records = group_and_pick_best(records, config.similarity_threshold)
    return sorted(records, key=lambda r: r.position)


def presentation_pool(pool: Sequence[Record], limit: int) -> List[Record]:
    """Highest-impression candidates, as shown to the curator."""
    return sorted(pool, key=lambda r: r.impressions, reverse=True)[:limit]


def select_quick_wins(
    results: Sequence[ClassificationResult],
    intentions: Sequence[Intention],
    config: Optional[AnalysisConfig] = None,
    curator: Optional[Curator] = None,
) -> Tuple[List[QuickWinSet], SeamStatus]:
    """Quick wins for every intention, plus the curation outcome."""
    config = config or AnalysisConfig()
    pools = {i.name: candidate_pool(results, i.name, config) for i in intentions}

    curated: Dict[str, List[Record]] = {}
    status = SeamStatus()
    if curator is not None and any(pools.values()):
        curated, status = _curate(pools, config, curator)

    quick_win_sets = []
    for intention in intentions:
        pool = pools[intention.name]
        if intention.name in curated:
            quick_win_sets.append(QuickWinSet(
                intention=intention.name,
                quick_wins=curated[intention.name],
                candidate_count=len(pool),
                curated=True,
            ))
        else:
            quick_win_sets.append(QuickWinSet(
                intention=intention.name,
                quick_wins=pool[:config.quick_win_limit],
                candidate_count=len(pool),
                curated=False,
            ))

    return quick_win_sets, status


def _curate(pools: Dict[str, List[Record]], config: AnalysisConfig,
            curator: Curator) -> Tuple[Dict[str, List[Record]], SeamStatus]:
    shown = {
        name: presentation_pool(pool, config.quick_win_presentation_limit)
        for name, pool in pools.items() if pool
    }
    result = call_seam('curation', curator, shown, timeout=config.seam_timeout)

    if result.ok and not isinstance(result.value, dict):
        result = SeamResult.failure(ErrorKind.SCHEMA, "Curation must map intentions to phrases")
    if not result.ok:
        return {}, result.to_status()

    curated = {}
    for name, picks in result.value.items():
        if name not in pools or not isinstance(picks, (list, tuple)):
            continue
        by_phrase = {r.phrase.lower(): r for r in pools[name]}
        chosen = []
        for pick in picks:
            phrase = pick.phrase if isinstance(pick, Record) else pick
            record = by_phrase.get(phrase.lower()) if isinstance(phrase, str) else None
            if record is not None and record not in chosen:
                chosen.append(record)
        if not chosen and pools[name]:
            # Nothing matched the candidates: the ranked pool stands for this intention
            logger.warning("Curation picked no known candidate for %s, keeping the ranked pool", name)
            continue
        curated[name] = chosen[:config.quick_win_limit]

    if not curated:
        logger.warning("Curation matched no candidate in any intention, keeping the ranked pools")
        return {}, SeamResult.failure(
            ErrorKind.SCHEMA, "Curated phrases do not match any candidate"
        ).to_status()

    logger.info("Curation returned quick wins for %d of %d intentions", len(curated), len(pools))
    return curated, result.to_status()
