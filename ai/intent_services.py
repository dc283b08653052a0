"""
AI collaborators for the intent engine.

- discover_intentions: propose 3-6 intentions from a sample of records
- refine_doubtful: re-classify mid-confidence phrases
- curate_quick_wins: pick at most 10 real opportunities per intention

Every function returns a SeamResult and never raises: provider errors,
unparseable answers and wrong shapes become failures the engine falls back
from.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ai.providers import call_ai, is_configured
from intents.engine.constants import UNCLASSIFIED
from intents.engine.models import DoubtfulPhrase, Intention, Record
from intents.engine.seams import ErrorKind, SeamResult

logger = logging.getLogger(__name__)

DISCOVERY_SAMPLE_SIZE = 200
DISCOVERY_MAX_TOKENS = 4096
REFINEMENT_MAX_TOKENS = 8192
CURATION_MAX_TOKENS = 16384


@dataclass
class IntentionDiscovery:
    site_theme: str
    intentions: List[Intention]
    insights: Dict[str, str] = field(default_factory=dict)
    patterns: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'site_theme': self.site_theme,
            'intentions': [i.to_dict() for i in self.intentions],
            'insights': self.insights,
            'patterns': self.patterns,
        }


# =============================================================================
# PROMPTS
# =============================================================================

DISCOVERY_SYSTEM_PROMPT = """You are a senior SEO consultant specialised in search intent analysis.
You receive search phrases exported from Google Search Console (branded phrases already removed).

1. Describe the site's overall theme in one sentence.
2. Without predefined categories, identify 3 to 6 concrete user intentions in the data.
   For each: name (max 4 words), description, volume (phrases matching), 3-5 example phrases
   taken from the data, linguistic_signal (comma-separated recurring marker words such as
   "how, price, vs, 2025"), ctr_avg (fraction) and position_avg.
3. List recurring words, question structures, temporal modifiers and comparison terms.
4. Give detailed, data-backed insights: biggest_opportunity, biggest_friction, quick_win.

Constraints: white-hat recommendations only, never suggest targeting misspellings,
never invent URLs, never estimate future clicks. Do not create a brand/navigation intention.

Respond with strict JSON:
{"site_theme": str,
 "intentions": [{"name": str, "description": str, "volume": int, "examples": [str],
                 "linguistic_signal": str, "ctr_avg": float, "position_avg": float}],
 "patterns": {"recurring_words": [str], "question_structures": [str],
              "temporal_modifiers": [str], "comparison_terms": [str]},
 "insights": {"biggest_opportunity": str, "biggest_friction": str, "quick_win": str}}"""

REFINEMENT_SYSTEM_PROMPT = """You are an SEO expert refining the intent classification of search phrases.
For each phrase pick the single best intention from the list, or "unclassified" when none fits.

Rules:
- Use the site theme for context: domain words (e.g. "bike" on a bike shop) are normal and are not evidence.
- The discriminating word decides: "training app bike" fits a training intention, "bike dynamo" does not.
- Prefer precision: when in doubt, answer "unclassified".

Respond with strict JSON:
{"classifications": [{"phrase": str, "intention": str, "justification": str}]}"""

CURATION_SYSTEM_PROMPT = """You are an SEO expert selecting the best quick-win opportunities per intention.
Candidates rank in positions 4-20 with at least 100 impressions.

Rules:
1. Never keep two phrases that target the same results page ("bike for kid" / "bikes for kids"):
   keep the one with the most impressions. Genuinely different variants (other quantities,
   sizes or quality tiers) may both stay.
2. Prefer high volume (500+ impressions), positions 4-15 and low CTR (< 10%).
3. At most 10 phrases per intention. Fewer is fine; do not pad.
4. Only return phrases from the candidate lists, spelled exactly as given.

Respond with strict JSON:
{"quick_wins_by_intention": [{"intention": str, "phrases": [str]}]}"""


def _build_user_message(context_payload: dict, task: str) -> str:
    return (
        f"<context>\n{json.dumps(context_payload, indent=2, ensure_ascii=False)}\n</context>\n\n"
        f"{task}"
    )


def _record_line(record: Record) -> Dict[str, Any]:
    return {
        'phrase': record.phrase,
        'position': round(record.position, 1),
        'ctr': round(record.display_ctr, 4),
        'clicks': record.clicks,
        'impressions': record.impressions,
    }


def _intention_context(intention: Intention) -> Dict[str, Any]:
    return {
        'name': intention.name,
        'description': intention.description,
        'examples': list(intention.examples),
        'linguistic_signal': intention.linguistic_signal or 'none',
    }


def _ask(name: str, system_prompt: str, user_message: str, max_tokens: int) -> SeamResult:
    """Call the provider and map every failure mode to an ErrorKind."""
    if not is_configured():
        return SeamResult.failure(ErrorKind.UNAVAILABLE, "No AI provider configured")
    try:
        parsed, provider, model = call_ai(system_prompt, user_message, max_tokens=max_tokens)
    except json.JSONDecodeError as e:
        logger.warning(f"{name}: provider answered with invalid JSON: {e}")
        return SeamResult.failure(ErrorKind.MALFORMED, str(e))
    except Exception as e:
        logger.warning(f"{name}: provider call failed: {e}")
        return SeamResult.failure(ErrorKind.TRANSPORT, str(e))

    if not isinstance(parsed, dict):
        return SeamResult.failure(ErrorKind.SCHEMA, "Expected a JSON object")
    logger.info(f"{name}: answered by {provider} ({model})")
    return SeamResult.success(parsed)


# =============================================================================
# DISCOVERY
# =============================================================================

def discovery_sample(records: Sequence[Record], limit: int = DISCOVERY_SAMPLE_SIZE) -> List[Record]:
    """Largest-impression records shown to the discovery prompt."""
    return sorted(records, key=lambda r: r.impressions, reverse=True)[:limit]


def parse_intention(raw: Any) -> Optional[Intention]:
    """Build an Intention from a provider dict; None when required fields are missing."""
    if not isinstance(raw, dict):
        return None
    name = raw.get('name')
    if not isinstance(name, str) or not name.strip():
        return None
    examples = raw.get('examples') or []
    if not isinstance(examples, list):
        return None
    signal = raw.get('linguistic_signal') or ''
    if isinstance(signal, list):
        signal = ', '.join(str(s) for s in signal)
    try:
        return Intention(
            name=name.strip(),
            description=str(raw.get('description') or ''),
            examples=tuple(str(e) for e in examples if isinstance(e, str) and e.strip()),
            linguistic_signal=str(signal),
            ctr_avg=float(raw.get('ctr_avg') or 0),
            position_avg=float(raw.get('position_avg') or 0),
            volume=int(raw.get('volume') or 0),
        )
    except (TypeError, ValueError):
        return None


def discover_intentions(sample: Sequence[Record], brand: Optional[str] = None,
                        sector: Optional[str] = None) -> SeamResult:
    """SeamResult[IntentionDiscovery]."""
    payload = {
        'brand': brand or 'not specified',
        'sector': sector or 'not specified',
        'phrase_count': len(sample),
        'phrases': [_record_line(r) for r in sample],
    }
    result = _ask(
        'discovery',
        DISCOVERY_SYSTEM_PROMPT,
        _build_user_message(payload, "Discover the search intentions in these phrases."),
        DISCOVERY_MAX_TOKENS,
    )
    if not result.ok:
        return result

    data = result.value
    intentions = [i for i in (parse_intention(raw) for raw in data.get('intentions') or []) if i]
    if not intentions:
        return SeamResult.failure(ErrorKind.SCHEMA, "No usable intentions in discovery response")

    insights = data.get('insights') if isinstance(data.get('insights'), dict) else {}
    patterns = data.get('patterns') if isinstance(data.get('patterns'), dict) else {}
    return SeamResult.success(IntentionDiscovery(
        site_theme=str(data.get('site_theme') or ''),
        intentions=intentions,
        insights={k: str(v) for k, v in insights.items()},
        patterns={k: [str(x) for x in v] for k, v in patterns.items() if isinstance(v, list)},
    ))


# =============================================================================
# REFINEMENT
# =============================================================================

def refine_doubtful(doubtful: Sequence[DoubtfulPhrase], intentions: Sequence[Intention],
                    site_theme: Optional[str] = None, sector: Optional[str] = None) -> SeamResult:
    """SeamResult[{phrase: intention name or "unclassified"}]."""
    payload = {
        'site_theme': site_theme or 'not identified',
        'sector': sector or 'not specified',
        'intentions': [_intention_context(i) for i in intentions],
        'phrases': [d.to_dict() for d in doubtful],
    }
    result = _ask(
        'refinement',
        REFINEMENT_SYSTEM_PROMPT,
        _build_user_message(payload, f"Classify these {len(doubtful)} phrases. Use \"{UNCLASSIFIED}\" when none fits."),
        REFINEMENT_MAX_TOKENS,
    )
    if not result.ok:
        return result

    rows = result.value.get('classifications')
    if not isinstance(rows, list):
        return SeamResult.failure(ErrorKind.SCHEMA, "Missing classifications list")

    overrides = {}
    for row in rows:
        if isinstance(row, dict) and isinstance(row.get('phrase'), str) and isinstance(row.get('intention'), str):
            overrides[row['phrase']] = row['intention']
    return SeamResult.success(overrides)


def build_refiner(sector: Optional[str] = None) -> Callable:
    """Refiner bound to the request's sector, in the engine's call shape."""
    def refiner(doubtful, intentions, site_theme):
        return refine_doubtful(doubtful, intentions, site_theme=site_theme, sector=sector)
    return refiner


# =============================================================================
# CURATION
# =============================================================================

def curate_quick_wins(pools: Dict[str, List[Record]], brand: Optional[str] = None,
                      sector: Optional[str] = None) -> SeamResult:
    """SeamResult[{intention: [phrases]}], at most 10 phrases each."""
    payload = {
        'brand': brand or 'not specified',
        'sector': sector or 'not specified',
        'candidates_by_intention': [
            {'intention': name, 'candidates': [_record_line(r) for r in pool]}
            for name, pool in pools.items()
        ],
    }
    result = _ask(
        'curation',
        CURATION_SYSTEM_PROMPT,
        _build_user_message(payload, "Select at most 10 quick wins per intention."),
        CURATION_MAX_TOKENS,
    )
    if not result.ok:
        return result

    rows = result.value.get('quick_wins_by_intention')
    if not isinstance(rows, list):
        return SeamResult.failure(ErrorKind.SCHEMA, "Missing quick_wins_by_intention list")

    picks = {}
    for row in rows:
        if not isinstance(row, dict) or not isinstance(row.get('intention'), str):
            continue
        phrases = row.get('phrases')
        if isinstance(phrases, list):
            picks[row['intention']] = [p for p in phrases if isinstance(p, str)][:10]
    return SeamResult.success(picks)


def build_curator(brand: Optional[str] = None, sector: Optional[str] = None) -> Callable:
    def curator(pools):
        return curate_quick_wins(pools, brand=brand, sector=sector)
    return curator
