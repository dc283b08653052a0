"""
URL-variant fragmentation.

The same logical page indexed under several raw URLs (www vs bare host,
trailing slash, http vs https) splits ranking signals. For every phrase,
ranking pages are grouped by canonical URL; a canonical group holding 2+ raw
URLs that differ on at least one of those axes is reported.

Unlike cannibalization, this runs on the raw records (no permutation-key
dedupe), so shares are computed within each group's own impressions.
"""
import logging
from collections import OrderedDict
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import AnalysisConfig
from .constants import ISSUE_WWW, ISSUE_TRAILING_SLASH, ISSUE_PROTOCOL
from .models import PageHit, PageShare, Record, URLVariantGroup
from .utils import canonical_url, has_www, has_trailing_slash, url_scheme

logger = logging.getLogger(__name__)


def issue_types(urls: Sequence[str]) -> FrozenSet[str]:
    """Axes along which the raw URLs disagree."""
    issues = set()
    if len({has_www(u) for u in urls}) > 1:
        issues.add(ISSUE_WWW)
    if len({has_trailing_slash(u) for u in urls}) > 1:
        issues.add(ISSUE_TRAILING_SLASH)
    if len({url_scheme(u) for u in urls}) > 1:
        issues.add(ISSUE_PROTOCOL)
    return frozenset(issues)


def detect_url_variants(records: Sequence[Record], config: Optional[AnalysisConfig] = None) -> List[URLVariantGroup]:
    config = config or AnalysisConfig()

    # Same URL set can show up under many phrases: keep its biggest occurrence
    by_url_set: Dict[Tuple[str, ...], URLVariantGroup] = {}
    for record in records:
        for group in _record_variants(record, config):
            current = by_url_set.get(group.url_set)
            if current is None or group.total_impressions > current.total_impressions:
                by_url_set[group.url_set] = group

    groups = sorted(by_url_set.values(), key=lambda g: g.total_impressions, reverse=True)
    logger.info("URL variants: %d distinct URL sets (cap %d)", len(groups), config.max_groups)
    return groups[:config.max_groups]


def _record_variants(record: Record, config: AnalysisConfig) -> List[URLVariantGroup]:
    ranking = [p for p in record.pages if config.min_position <= p.position <= config.max_position]
    if len(ranking) < 2:
        return []

    buckets: Dict[str, 'OrderedDict[str, PageHit]'] = OrderedDict()
    for hit in ranking:
        key = canonical_url(hit.url, ignore_scheme=config.url_variant_ignore_scheme)
        bucket = buckets.setdefault(key, OrderedDict())
        # A repeated raw URL is one variant; the first hit stands for it
        bucket.setdefault(hit.url.strip(), hit)

    groups = []
    for key, bucket in buckets.items():
        if len(bucket) < 2:
            continue
        issues = issue_types(list(bucket.keys()))
        if not issues:
            continue
        total = sum(h.impressions for h in bucket.values())
        variants = sorted(
            (PageShare.from_hit(h, total) for h in bucket.values()),
            key=lambda v: v.impressions, reverse=True,
        )
        groups.append(URLVariantGroup(
            phrase=record.phrase,
            canonical_url=key,
            issue_types=issues,
            variants=variants,
        ))
    return groups
