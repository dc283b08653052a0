"""
Search intent analysis engine.

Pure Python, no Django imports:
- Tokenization, URL canonicalization, brand split (utils)
- Dynamic stopwords (stopwords)
- Confidence scoring and tiered classification (scoring, classifier)
- Near-duplicate grouping and quick wins (similarity, quick_wins)
- Cannibalization and URL-variant detection (cannibalization, url_variants)
"""

from .config import AnalysisConfig
from .models import AnalyzeRequest, AnalyzeResult, Intention, PageHit, Record
from .pipeline import AnalysisError, run_analysis

__version__ = '1.0.0'
__all__ = [
    'AnalysisConfig',
    'AnalysisError',
    'AnalyzeRequest',
    'AnalyzeResult',
    'Intention',
    'PageHit',
    'Record',
    'run_analysis',
]
