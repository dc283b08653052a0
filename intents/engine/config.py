"""
Per-run tunables for the analysis engine.
"""
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from . import constants as c


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Thresholds and caps used by one analysis run.

    Defaults come from constants.py. Use from_mapping() to apply overrides
    coming from Django settings or a request.
    """
    # Stopwords
    stopword_top_n: int = c.STOPWORD_TOP_N

    # Scoring / tiers
    signal_weight: float = c.SIGNAL_WEIGHT
    example_weight: float = c.EXAMPLE_WEIGHT
    high_confidence: float = c.HIGH_CONFIDENCE
    doubtful_confidence: float = c.DOUBTFUL_CONFIDENCE
    refined_confidence: float = c.REFINED_CONFIDENCE
    refinement_max_phrases: int = c.REFINEMENT_MAX_PHRASES
    refinement_candidates: int = c.REFINEMENT_CANDIDATES

    # Similarity
    similarity_threshold: float = c.SIMILARITY_THRESHOLD

    # Quick wins
    quick_win_min_position: float = c.QUICK_WIN_MIN_POSITION
    quick_win_max_position: float = c.QUICK_WIN_MAX_POSITION
    quick_win_min_impressions: int = c.QUICK_WIN_MIN_IMPRESSIONS
    quick_win_limit: int = c.QUICK_WIN_LIMIT
    quick_win_presentation_limit: int = c.QUICK_WIN_PRESENTATION_LIMIT
    collapse_near_duplicates: bool = False

    # Structural health
    min_position: float = c.MIN_POSITION
    max_position: float = c.MAX_POSITION
    min_impression_share: float = c.MIN_IMPRESSION_SHARE
    cannibalization_min_urls: int = c.CANNIBALIZATION_MIN_URLS
    cannibalization_min_traffic_share: float = c.CANNIBALIZATION_MIN_TRAFFIC_SHARE
    max_groups: int = c.MAX_GROUPS
    url_variant_ignore_scheme: bool = True

    # Seams
    seam_timeout: float = c.SEAM_TIMEOUT

    def __post_init__(self):
        if not 0 <= self.doubtful_confidence <= self.high_confidence:
            raise ValueError(
                f"doubtful_confidence ({self.doubtful_confidence}) must be between 0 "
                f"and high_confidence ({self.high_confidence})"
            )
        if self.quick_win_min_position > self.quick_win_max_position:
            raise ValueError("quick_win_min_position is greater than quick_win_max_position")
        if self.min_position > self.max_position:
            raise ValueError("min_position is greater than max_position")
        if self.seam_timeout <= 0:
            raise ValueError("seam_timeout must be positive")

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None,
                     base: Optional['AnalysisConfig'] = None) -> 'AnalysisConfig':
        """
        Build a config from a plain mapping (e.g. settings.INTENT_ANALYSIS).
        Unknown keys raise ValueError so typos do not pass silently.
        """
        base = base or cls()
        if not overrides:
            return base

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown analysis settings: {', '.join(unknown)}")

        return replace(base, **dict(overrides))
