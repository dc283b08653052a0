"""
Data model for one analysis run.

Everything here is created fresh from the request and thrown away when the
run ends. Input types (PageHit, Record, Intention) are frozen.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .constants import UNCLASSIFIED, TIER_LOW


# =============================================================================
# INPUT
# =============================================================================

@dataclass(frozen=True)
class PageHit:
    """One page ranking for a phrase."""
    url: str
    clicks: int = 0
    impressions: int = 0
    position: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'clicks': self.clicks,
            'impressions': self.impressions,
            'position': self.position,
        }


@dataclass(frozen=True)
class Record:
    """Search performance for one phrase. ctr is always a fraction."""
    phrase: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0
    pages: Tuple[PageHit, ...] = ()

    @property
    def display_ctr(self) -> float:
        """CTR recomputed from clicks and impressions."""
        if self.impressions <= 0:
            return 0.0
        return self.clicks / self.impressions

    def to_dict(self, recompute_ctr: bool = False) -> Dict[str, Any]:
        return {
            'phrase': self.phrase,
            'clicks': self.clicks,
            'impressions': self.impressions,
            'ctr': self.display_ctr if recompute_ctr else self.ctr,
            'position': self.position,
            'pages': [p.to_dict() for p in self.pages],
        }


@dataclass(frozen=True)
class Intention:
    """A named search intention, supplied by the caller or a discovery service."""
    name: str
    description: str = ''
    examples: Tuple[str, ...] = ()
    linguistic_signal: str = ''
    ctr_avg: float = 0.0
    position_avg: float = 0.0
    volume: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'examples': list(self.examples),
            'linguistic_signal': self.linguistic_signal,
            'ctr_avg': self.ctr_avg,
            'position_avg': self.position_avg,
            'volume': self.volume,
        }


@dataclass(frozen=True)
class AnalyzeRequest:
    records: Tuple[Record, ...]
    intentions: Optional[Tuple[Intention, ...]]
    brand: Optional[str] = None
    sector: Optional[str] = None
    site_theme: Optional[str] = None


# =============================================================================
# CLASSIFICATION
# =============================================================================

@dataclass
class ClassificationResult:
    record: Record
    intention: str = UNCLASSIFIED
    confidence: float = 0.0
    tier: str = TIER_LOW
    refined: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.record.to_dict(),
            'intention': self.intention,
            'confidence': self.confidence,
            'tier': self.tier,
            'refined': self.refined,
        }


@dataclass
class DoubtfulPhrase:
    """A mid-confidence phrase as shown to the refinement collaborator."""
    phrase: str
    impressions: int
    candidates: List[Tuple[str, float]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phrase': self.phrase,
            'impressions': self.impressions,
            'candidates': [
                {'intention': name, 'confidence': round(score, 3)}
                for name, score in self.candidates
            ],
        }


@dataclass
class SeamStatus:
    """Outcome of an optional external step."""
    status: str = 'skipped'  # applied | skipped | failed
    error_kind: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'error_kind': self.error_kind,
            'detail': self.detail,
        }


# =============================================================================
# QUICK WINS
# =============================================================================

@dataclass
class QuickWinSet:
    intention: str
    quick_wins: List[Record] = field(default_factory=list)
    candidate_count: int = 0
    curated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'intention': self.intention,
            'quick_wins': [r.to_dict(recompute_ctr=True) for r in self.quick_wins],
            'candidate_count': self.candidate_count,
            'curated': self.curated,
        }


# =============================================================================
# STRUCTURAL HEALTH
# =============================================================================

@dataclass(frozen=True)
class PageShare:
    """A PageHit with its share (0-100) of a reference impression total."""
    url: str
    clicks: int
    impressions: int
    position: float
    impression_share: float

    @classmethod
    def from_hit(cls, hit: PageHit, total_impressions: int) -> 'PageShare':
        share = hit.impressions / total_impressions * 100 if total_impressions > 0 else 0.0
        return cls(
            url=hit.url,
            clicks=hit.clicks,
            impressions=hit.impressions,
            position=hit.position,
            impression_share=share,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'clicks': self.clicks,
            'impressions': self.impressions,
            'position': round(self.position, 1),
            'impression_share': round(self.impression_share, 1),
        }


@dataclass
class CannibalizationGroup:
    phrase: str
    total_clicks: int
    total_impressions: int
    avg_position: float
    pages: List[PageShare]

    @property
    def urls_count(self) -> int:
        return len(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phrase': self.phrase,
            'total_clicks': self.total_clicks,
            'total_impressions': self.total_impressions,
            'avg_position': round(self.avg_position, 1),
            'urls_count': self.urls_count,
            'pages': [p.to_dict() for p in self.pages],
        }


@dataclass
class URLVariantGroup:
    phrase: str
    canonical_url: str
    issue_types: FrozenSet[str]
    variants: List[PageShare]

    @property
    def total_impressions(self) -> int:
        return sum(v.impressions for v in self.variants)

    @property
    def total_clicks(self) -> int:
        return sum(v.clicks for v in self.variants)

    @property
    def url_set(self) -> Tuple[str, ...]:
        return tuple(sorted(v.url for v in self.variants))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phrase': self.phrase,
            'canonical_url': self.canonical_url,
            'issue_types': sorted(self.issue_types),
            'total_clicks': self.total_clicks,
            'total_impressions': self.total_impressions,
            'variants': [v.to_dict() for v in self.variants],
        }


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class AnalyzeResult:
    classifications: List[ClassificationResult] = field(default_factory=list)
    quick_wins_by_intention: List[QuickWinSet] = field(default_factory=list)
    cannibalizations: List[CannibalizationGroup] = field(default_factory=list)
    url_variant_issues: List[URLVariantGroup] = field(default_factory=list)
    brand_records: List[Record] = field(default_factory=list)
    stopwords: FrozenSet[str] = frozenset()
    tier_counts: Dict[str, int] = field(default_factory=dict)
    refinement: SeamStatus = field(default_factory=SeamStatus)
    curation: SeamStatus = field(default_factory=SeamStatus)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'classifications': [r.to_dict() for r in self.classifications],
            'quick_wins_by_intention': [q.to_dict() for q in self.quick_wins_by_intention],
            'cannibalizations': [g.to_dict() for g in self.cannibalizations],
            'url_variant_issues': [g.to_dict() for g in self.url_variant_issues],
            'brand_records': [r.to_dict() for r in self.brand_records],
            'stopwords': sorted(self.stopwords),
            'tier_counts': dict(self.tier_counts),
            'refinement': self.refinement.to_dict(),
            'curation': self.curation.to_dict(),
        }
