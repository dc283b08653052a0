"""
Tokenization and URL normalization helpers shared by every engine stage.
"""
import re
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

from .constants import MIN_WORD_LENGTH
from .models import Record

_SCHEME_WWW_RE = re.compile(r'^(https?://)www\.')
_SCHEME_RE = re.compile(r'^https?://')


# =============================================================================
# PHRASES
# =============================================================================

def words(phrase: str) -> List[str]:
    """Lowercase whitespace tokens, in order."""
    return (phrase or '').lower().split()


def is_eligible_word(word: str) -> bool:
    """Long enough and not a bare number."""
    return len(word) >= MIN_WORD_LENGTH and not word.isdigit()


def content_words(phrase: str, stopwords: Iterable[str] = ()) -> Set[str]:
    """Eligible tokens of a phrase minus the given stopwords."""
    stop = stopwords if isinstance(stopwords, (set, frozenset)) else set(stopwords)
    return {w for w in words(phrase) if is_eligible_word(w) and w not in stop}


def permutation_key(phrase: str) -> str:
    """
    Word-order independent key.

    "cheap paris hotel" and "paris cheap hotel" both give "cheap hotel paris".
    """
    return ' '.join(sorted(words(phrase)))


# =============================================================================
# URLS
# =============================================================================

def canonical_url(url: str, ignore_scheme: bool = False) -> str:
    """
    Normalize a URL for variant grouping: lowercase, trim, drop one trailing
    slash and a leading "www." host prefix. ignore_scheme also drops http(s)://.
    """
    key = (url or '').strip().lower()
    if key.endswith('/'):
        key = key[:-1]
    key = _SCHEME_WWW_RE.sub(r'\1', key)
    if ignore_scheme:
        key = _SCHEME_RE.sub('', key)
    return key


def url_scheme(url: str) -> str:
    return urlparse((url or '').strip().lower()).scheme


def has_www(url: str) -> bool:
    return urlparse((url or '').strip().lower()).netloc.startswith('www.')


def has_trailing_slash(url: str) -> bool:
    return (url or '').strip().endswith('/')


# =============================================================================
# BRAND
# =============================================================================

def brand_variants(brand: Optional[str]) -> List[str]:
    """Spellings of a brand as typed in searches ("Le Vélo" → "le vélo", "levélo", ...)."""
    if not brand or not brand.strip():
        return []
    lowered = brand.strip().lower()
    variants = [
        lowered,
        re.sub(r'\s+', '', lowered),
        re.sub(r'\s+', '-', lowered),
        re.sub(r'\s+', '_', lowered),
    ]
    # Keep order, drop repeats for single-word brands
    return list(dict.fromkeys(variants))


def is_branded(phrase: str, variants: List[str]) -> bool:
    lowered = (phrase or '').lower()
    return any(v in lowered for v in variants)


def split_branded(records: Iterable[Record], brand: Optional[str]) -> Tuple[List[Record], List[Record]]:
    """Split records into (non_branded, branded)."""
    variants = brand_variants(brand)
    non_branded, branded = [], []
    for record in records:
        if variants and is_branded(record.phrase, variants):
            branded.append(record)
        else:
            non_branded.append(record)
    return non_branded, branded
