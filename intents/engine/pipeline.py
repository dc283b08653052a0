"""
Analysis pipeline.

One call = one stateless run over one dataset snapshot:

1. Split branded / non-branded records
2. Dynamic stopwords from the non-branded corpus
3. Classification (+ optional refinement of the doubtful tier)
4. Quick wins per intention (+ optional curation)
5. Cannibalization and URL-variant detection over all records
"""
import logging
from typing import Optional

from .cannibalization import detect_cannibalization
from .classifier import Refiner, classify
from .config import AnalysisConfig
from .models import AnalyzeRequest, AnalyzeResult
from .quick_wins import Curator, select_quick_wins
from .stopwords import detect_stopwords
from .url_variants import detect_url_variants
from .utils import split_branded

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """A run cannot produce a meaningful result (e.g. no intentions at all)."""


def run_analysis(
    request: AnalyzeRequest,
    config: Optional[AnalysisConfig] = None,
    refiner: Optional[Refiner] = None,
    curator: Optional[Curator] = None,
) -> AnalyzeResult:
    """
    Run the full analysis.

    refiner and curator are optional external collaborators; when they are
    missing or fail, the deterministic results are returned and the outcome
    is reported in AnalyzeResult.refinement / .curation.

    Raises:
        AnalysisError: request.intentions is None. An empty list is allowed
            and simply leaves everything unclassified.
    """
    if request.intentions is None:
        raise AnalysisError("Intentions are required to classify records")

    config = config or AnalysisConfig()
    intentions = list(request.intentions)

    non_branded, branded = split_branded(request.records, request.brand)
    logger.info(
        "Analyzing %d records (%d branded set aside) against %d intentions",
        len(request.records), len(branded), len(intentions),
    )

    stopwords = detect_stopwords(non_branded, config.stopword_top_n)

    outcome = classify(
        non_branded, intentions, stopwords, config,
        refiner=refiner, site_theme=request.site_theme,
    )

    quick_wins, curation = select_quick_wins(outcome.results, intentions, config, curator=curator)

    return AnalyzeResult(
        classifications=outcome.results,
        quick_wins_by_intention=quick_wins,
        cannibalizations=detect_cannibalization(request.records, config),
        url_variant_issues=detect_url_variants(request.records, config),
        brand_records=branded,
        stopwords=stopwords,
        tier_counts=outcome.tier_counts,
        refinement=outcome.refinement,
        curation=curation,
    )
