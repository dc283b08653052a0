"""
Tests for ai app - provider fallback and the intent collaborators.
"""
import json

import pytest

from ai import intent_services, providers
from intents.engine import Intention, Record
from intents.engine.models import DoubtfulPhrase
from intents.engine.seams import ErrorKind


@pytest.fixture
def no_keys(monkeypatch):
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)


@pytest.fixture
def fake_ai(monkeypatch):
    """Replace the provider call with a canned answer; returns the list of received calls."""
    calls = []

    def _install(answer):
        def _call_ai(system_prompt, user_message, max_tokens=providers.MAX_TOKENS):
            calls.append({'system': system_prompt, 'user': user_message, 'max_tokens': max_tokens})
            if isinstance(answer, Exception):
                raise answer
            return answer, 'claude', 'test-model'

        monkeypatch.setattr(intent_services, 'is_configured', lambda: True)
        monkeypatch.setattr(intent_services, 'call_ai', _call_ai)
        return calls

    return _install


@pytest.fixture
def intentions():
    return [
        Intention(name='Prix', examples=('prix vélo',), linguistic_signal='prix'),
        Intention(name='Guides', examples=('comment régler vélo',), linguistic_signal='comment'),
    ]


class TestProviders:

    def test_clean_json_strips_fences_and_prose(self):
        text = 'Here you go:\n```json\n{"site_theme": "bikes", "intentions": []}\n```'
        assert providers._clean_json(text) == {'site_theme': 'bikes', 'intentions': []}

    def test_clean_json_invalid(self):
        with pytest.raises(json.JSONDecodeError):
            providers._clean_json('no json here')

    def test_not_configured(self, no_keys):
        assert providers.is_configured() is False
        with pytest.raises(RuntimeError):
            providers.call_ai('system', 'user')

    def test_falls_back_to_openai(self, monkeypatch):
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'a')
        monkeypatch.setenv('OPENAI_API_KEY', 'o')

        def claude_down(*args):
            raise ConnectionError('overloaded')

        monkeypatch.setattr(providers, '_call_claude', claude_down)
        monkeypatch.setattr(providers, '_call_openai', lambda *args: ({'ok': True}, 'openai', 'gpt'))
        assert providers.call_ai('system', 'user') == ({'ok': True}, 'openai', 'gpt')

    def test_invalid_json_is_not_retried(self, monkeypatch):
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'a')
        monkeypatch.setenv('OPENAI_API_KEY', 'o')

        def claude_garbage(*args):
            return providers._clean_json('garbage')

        def openai_unexpected(*args):
            raise AssertionError('should not be called')

        monkeypatch.setattr(providers, '_call_claude', claude_garbage)
        monkeypatch.setattr(providers, '_call_openai', openai_unexpected)
        with pytest.raises(json.JSONDecodeError):
            providers.call_ai('system', 'user')

    def test_claude_error_without_fallback(self, monkeypatch, no_keys):
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'a')

        def claude_down(*args):
            raise ConnectionError('overloaded')

        monkeypatch.setattr(providers, '_call_claude', claude_down)
        with pytest.raises(ConnectionError):
            providers.call_ai('system', 'user')


class TestParseIntention:

    def test_full(self):
        intention = intent_services.parse_intention({
            'name': ' Prix ',
            'description': 'Price comparison',
            'examples': ['prix vélo', '', 3],
            'linguistic_signal': ['prix', 'tarif'],
            'ctr_avg': '0.02',
            'position_avg': 7.5,
            'volume': 42,
        })
        assert intention.name == 'Prix'
        assert intention.examples == ('prix vélo',)
        assert intention.linguistic_signal == 'prix, tarif'
        assert intention.ctr_avg == 0.02
        assert intention.volume == 42

    @pytest.mark.parametrize('raw', [
        None,
        'Prix',
        {'description': 'no name'},
        {'name': '   '},
        {'name': 'Prix', 'examples': 'prix vélo'},
        {'name': 'Prix', 'volume': 'lots'},
    ])
    def test_rejected(self, raw):
        assert intent_services.parse_intention(raw) is None


class TestDiscovery:

    def test_sample_is_largest_first(self):
        records = [Record(phrase=f'p{i}', impressions=i) for i in range(5)]
        sample = intent_services.discovery_sample(records, limit=2)
        assert [r.impressions for r in sample] == [4, 3]

    def test_success(self, fake_ai):
        calls = fake_ai({
            'site_theme': 'Electric bike shop',
            'intentions': [
                {'name': 'Prix', 'examples': ['prix vélo'], 'linguistic_signal': 'prix'},
                {'description': 'missing name'},
            ],
            'insights': {'quick_win': 'Work on price pages'},
            'patterns': {'recurring_words': ['vélo'], 'ignored': 'not a list'},
        })
        sample = [Record(phrase='prix vélo électrique', clicks=3, impressions=120, position=6.0)]
        result = intent_services.discover_intentions(sample, brand='ShopVelo', sector='retail')

        assert result.ok
        discovery = result.value
        assert discovery.site_theme == 'Electric bike shop'
        assert [i.name for i in discovery.intentions] == ['Prix']
        assert discovery.patterns == {'recurring_words': ['vélo']}
        assert 'prix vélo électrique' in calls[0]['user']
        assert '"brand": "ShopVelo"' in calls[0]['user']

    def test_no_usable_intentions(self, fake_ai):
        fake_ai({'site_theme': 'x', 'intentions': [{'description': 'nameless'}]})
        result = intent_services.discover_intentions([])
        assert not result.ok
        assert result.error_kind == ErrorKind.SCHEMA

    def test_unavailable(self, monkeypatch):
        monkeypatch.setattr(intent_services, 'is_configured', lambda: False)
        result = intent_services.discover_intentions([])
        assert result.error_kind == ErrorKind.UNAVAILABLE

    def test_invalid_json(self, fake_ai):
        fake_ai(json.JSONDecodeError('Expecting value', 'oops', 0))
        assert intent_services.discover_intentions([]).error_kind == ErrorKind.MALFORMED

    def test_provider_error(self, fake_ai):
        fake_ai(TimeoutError('read timed out'))
        result = intent_services.discover_intentions([])
        assert result.error_kind == ErrorKind.TRANSPORT
        assert 'read timed out' in result.detail

    def test_not_an_object(self, fake_ai):
        fake_ai(['Prix'])
        assert intent_services.discover_intentions([]).error_kind == ErrorKind.SCHEMA


class TestRefinement:

    def test_overrides(self, fake_ai, intentions):
        calls = fake_ai({'classifications': [
            {'phrase': 'tarif vélo', 'intention': 'Prix', 'justification': 'price marker'},
            {'phrase': 'vélo bleu', 'intention': 'unclassified'},
            {'phrase': 42, 'intention': 'Prix'},
        ]})
        doubtful = [
            DoubtfulPhrase(phrase='tarif vélo', impressions=300, candidates=[('Prix', 0.2)]),
            DoubtfulPhrase(phrase='vélo bleu', impressions=100, candidates=[]),
        ]
        refiner = intent_services.build_refiner(sector='retail')
        result = refiner(doubtful, intentions, 'Bike shop')

        assert result.ok
        assert result.value == {'tarif vélo': 'Prix', 'vélo bleu': 'unclassified'}
        assert '"site_theme": "Bike shop"' in calls[0]['user']
        assert '"sector": "retail"' in calls[0]['user']
        assert calls[0]['system'] == intent_services.REFINEMENT_SYSTEM_PROMPT

    def test_missing_list(self, fake_ai, intentions):
        fake_ai({'results': []})
        result = intent_services.refine_doubtful([], intentions)
        assert result.error_kind == ErrorKind.SCHEMA


class TestCuration:

    def test_picks_capped(self, fake_ai):
        fake_ai({'quick_wins_by_intention': [
            {'intention': 'Prix', 'phrases': [f'phrase {i}' for i in range(15)]},
            {'intention': 'Guides', 'phrases': 'not a list'},
            {'phrases': ['orphan']},
        ]})
        pools = {'Prix': [Record(phrase='phrase 0', impressions=500, position=6.0)]}
        result = intent_services.build_curator(brand='ShopVelo')(pools)

        assert result.ok
        assert list(result.value) == ['Prix']
        assert len(result.value['Prix']) == 10

    def test_missing_list(self, fake_ai):
        fake_ai({'quick_wins': []})
        assert intent_services.curate_quick_wins({}).error_kind == ErrorKind.SCHEMA
