"""
Cannibalization detection from per-phrase ranking pages.

Logic:
- Work on permutation-key deduplicated records (most impressions wins)
- Only pages ranking between positions 1 and 20 compete
- Share = page impressions / phrase impressions * 100; pages under 5% are noise
- 2+ significant pages for one phrase = candidate group
- Keep a candidate if it has 3+ URLs (structural symptom) OR at least 1% of
  all candidate impressions (business symptom); top 20 by impressions
"""
import logging
from typing import List, Optional, Sequence

from .config import AnalysisConfig
from .models import CannibalizationGroup, PageShare, Record
from .similarity import dedupe_by_permutation_key

logger = logging.getLogger(__name__)


def detect_cannibalization(records: Sequence[Record], config: Optional[AnalysisConfig] = None) -> List[CannibalizationGroup]:
    config = config or AnalysisConfig()

    candidates = []
    for record in dedupe_by_permutation_key(records):
        group = _analyze_record(record, config)
        if group:
            candidates.append(group)

    candidates.sort(key=lambda g: g.total_impressions, reverse=True)

    grand_total = sum(g.total_impressions for g in candidates)
    min_impressions = grand_total * config.cannibalization_min_traffic_share
    kept = [
        g for g in candidates
        if g.urls_count >= config.cannibalization_min_urls or g.total_impressions >= min_impressions
    ]

    logger.info(
        "Cannibalization: %d candidate phrases, %d kept (cap %d)",
        len(candidates), len(kept), config.max_groups,
    )
    return kept[:config.max_groups]


def _analyze_record(record: Record, config: AnalysisConfig) -> Optional[CannibalizationGroup]:
    """Significant competing pages for one phrase, or None."""
    if len(record.pages) < 2 or record.impressions <= 0:
        return None

    ranking = [p for p in record.pages if config.min_position <= p.position <= config.max_position]
    shares = [PageShare.from_hit(p, record.impressions) for p in ranking]
    significant = [s for s in shares if s.impression_share >= config.min_impression_share]

    if len(significant) < 2:
        return None

    significant.sort(key=lambda s: s.impressions, reverse=True)
    return CannibalizationGroup(
        phrase=record.phrase,
        total_clicks=sum(s.clicks for s in significant),
        total_impressions=sum(s.impressions for s in significant),
        avg_position=sum(s.position for s in significant) / len(significant),
        pages=significant,
    )
