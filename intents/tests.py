"""
Tests for intents app - analysis endpoint, request validation, rate limit and gate.
"""
import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from ai.intent_services import IntentionDiscovery
from intents.engine import Intention
from intents.engine.seams import ErrorKind, SeamResult
from intents.gate import AnalysisGate, GateTimeout
from intents.serializers import AnalyzeRequestSerializer, RecordSerializer

ANALYZE_URL = '/api/v1/intents/analyze/'


@pytest.fixture(autouse=True)
def no_limits(settings, monkeypatch):
    """No rate limit and no AI provider unless a test opts in."""
    settings.ANALYSIS_THROTTLE_RATE = None
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def payload():
    return {
        'records': [
            {
                'phrase': 'prix vélo électrique',
                'clicks': 10,
                'impressions': 500,
                'ctr': 0.02,
                'position': 6.2,
                'pages': [
                    {'url': 'https://shop.com/velos', 'clicks': 6, 'impressions': 300, 'position': 5},
                    {'url': 'https://shop.com/promo', 'clicks': 4, 'impressions': 200, 'position': 8},
                ],
            },
            {'phrase': 'casque moto', 'clicks': 1, 'impressions': 40, 'position': 14},
            {'query': 'shopvelo avis', 'clicks': 30, 'impressions': 90, 'position': 1.2},
        ],
        'intentions': [
            {'name': 'Prix', 'examples': ['prix vélo électrique'], 'linguistic_signal': 'prix, tarif'},
            {'name': 'Sécurité', 'examples': ['casque vélo'], 'linguistic_signal': 'casque'},
        ],
        'brand': 'ShopVelo',
    }


@pytest.fixture
def with_ai(monkeypatch):
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'test-key')


class TestAnalyzeEndpoint:

    def test_analyze(self, api_client, payload):
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200

        data = response.data
        assert [c['phrase'] for c in data['brand_records']] == ['shopvelo avis']
        assert len(data['classifications']) == 2
        assert sum(data['tier_counts'].values()) == 2
        assert [i['name'] for i in data['intentions']] == ['Prix', 'Sécurité']

        prix = next(q for q in data['quick_wins_by_intention'] if q['intention'] == 'Prix')
        assert [q['phrase'] for q in prix['quick_wins']] == ['prix vélo électrique']
        assert prix['quick_wins'][0]['ctr'] == 0.02

        assert len(data['cannibalizations']) == 1
        assert [p['impression_share'] for p in data['cannibalizations'][0]['pages']] == [60.0, 40.0]
        assert data['url_variant_issues'] == []
        # No provider configured: both collaborators skipped
        assert data['refinement']['status'] == 'skipped'
        assert data['curation']['status'] == 'skipped'

    def test_ctr_percentage_normalized(self, api_client, payload):
        payload['records'][0]['ctr'] = 5
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200
        row = next(c for c in response.data['classifications'] if c['phrase'] == 'prix vélo électrique')
        assert row['ctr'] == 0.05

    def test_settings_overrides_apply(self, api_client, payload, settings):
        settings.INTENT_ANALYSIS = {'stopword_top_n': 0}
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.data['stopwords'] == []
        row = next(c for c in response.data['classifications'] if c['phrase'] == 'prix vélo électrique')
        assert (row['intention'], row['tier']) == ('Prix', 'high')

    def test_missing_phrase(self, api_client, payload):
        payload['records'].append({'clicks': 1, 'impressions': 10})
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Invalid analysis request'

    def test_negative_impressions(self, api_client, payload):
        payload['records'][1]['impressions'] = -3
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 400

    def test_duplicate_intention_names(self, api_client, payload):
        payload['intentions'][1]['name'] = 'Prix'
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 400
        assert 'intentions' in response.data['detail']

    def test_intentions_required_without_provider(self, api_client, payload):
        del payload['intentions']
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Intentions required'

    def test_empty_intentions_leave_everything_unclassified(self, api_client, payload):
        payload['intentions'] = []
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200
        assert {c['intention'] for c in response.data['classifications']} == {'unclassified'}

    def test_missing_trailing_slash_is_not_redirected(self, api_client, payload):
        response = api_client.post(ANALYZE_URL.rstrip('/'), data=payload, format='json')
        assert response.status_code == 200
        assert len(response.data['classifications']) == 2

    def test_get_not_allowed(self, api_client):
        response = api_client.get(ANALYZE_URL)
        assert response.status_code == 405

    def test_unexpected_error(self, api_client, payload, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError('boom')

        monkeypatch.setattr('intents.views.run_analysis', explode)
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 500
        assert response.data['error'] == 'Failed to analyze queries'


class TestAICollaborators:

    def test_discovery_when_intentions_missing(self, api_client, payload, monkeypatch, with_ai):
        seen = {}

        def fake_discover(sample, brand, sector):
            seen['phrases'] = [r.phrase for r in sample]
            return SeamResult.success(IntentionDiscovery(
                site_theme='Electric bike shop',
                intentions=[Intention(name='Prix', examples=('prix vélo',), linguistic_signal='prix')],
            ))

        monkeypatch.setattr('intents.views.discover_intentions', fake_discover)
        del payload['intentions']
        payload.update(refine=False, curate=False)

        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200
        assert 'shopvelo avis' not in seen['phrases']
        assert response.data['discovery']['site_theme'] == 'Electric bike shop'
        assert [i['name'] for i in response.data['intentions']] == ['Prix']

    def test_discovery_failure(self, api_client, payload, monkeypatch, with_ai):
        monkeypatch.setattr(
            'intents.views.discover_intentions',
            lambda sample, brand, sector: SeamResult.failure(ErrorKind.MALFORMED, 'not json'),
        )
        del payload['intentions']
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 502
        assert response.data['error_kind'] == 'malformed'

    def test_refinement_applied(self, api_client, payload, monkeypatch, with_ai):
        def fake_build_refiner(sector=None):
            return lambda doubtful, intentions, site_theme: SeamResult.success(
                {d.phrase: 'unclassified' for d in doubtful}
            )

        monkeypatch.setattr('intents.views.build_refiner', fake_build_refiner)
        payload['curate'] = False
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200
        assert response.data['refinement']['status'] == 'applied'
        assert response.data['curation']['status'] == 'skipped'

    def test_curation_failure_falls_back(self, api_client, payload, monkeypatch, with_ai):
        def fake_build_curator(brand=None, sector=None):
            return lambda pools: SeamResult.failure(ErrorKind.TRANSPORT, 'connection reset')

        monkeypatch.setattr('intents.views.build_curator', fake_build_curator)
        payload['refine'] = False
        response = api_client.post(ANALYZE_URL, data=payload, format='json')
        assert response.status_code == 200
        assert response.data['curation'] == {
            'status': 'failed', 'error_kind': 'transport', 'detail': 'connection reset',
        }
        prix = next(q for q in response.data['quick_wins_by_intention'] if q['intention'] == 'Prix')
        assert prix['curated'] is False
        assert len(prix['quick_wins']) == 1


class TestLimits:

    def test_rate_limit(self, api_client, payload, settings):
        settings.ANALYSIS_THROTTLE_RATE = '1/day'
        assert api_client.post(ANALYZE_URL, data=payload, format='json').status_code == 200
        assert api_client.post(ANALYZE_URL, data=payload, format='json').status_code == 429

    def test_rate_limit_is_per_ip(self, api_client, payload, settings):
        settings.ANALYSIS_THROTTLE_RATE = '1/day'
        first = api_client.post(ANALYZE_URL, data=payload, format='json', REMOTE_ADDR='10.0.0.1')
        other = api_client.post(ANALYZE_URL, data=payload, format='json', REMOTE_ADDR='10.0.0.2')
        assert (first.status_code, other.status_code) == (200, 200)

    def test_forwarded_for_header_does_not_reset_limit(self, api_client, payload, settings):
        settings.ANALYSIS_THROTTLE_RATE = '1/day'
        first = api_client.post(ANALYZE_URL, data=payload, format='json', HTTP_X_FORWARDED_FOR='1.1.1.1')
        second = api_client.post(ANALYZE_URL, data=payload, format='json', HTTP_X_FORWARDED_FOR='2.2.2.2')
        assert (first.status_code, second.status_code) == (200, 429)

    def test_busy_gate(self, api_client, payload, monkeypatch):
        gate = AnalysisGate(max_concurrent=1, queue_timeout=0.01)
        assert gate.acquire()
        monkeypatch.setattr('intents.views.get_gate', lambda: gate)
        try:
            response = api_client.post(ANALYZE_URL, data=payload, format='json')
        finally:
            gate.release()
        assert response.status_code == 503


class TestAnalysisGate:

    def test_stats(self):
        gate = AnalysisGate(max_concurrent=2, queue_timeout=0.01)
        assert gate.stats() == {'processing': 0, 'queued': 0, 'available': 2}
        with gate.slot():
            assert gate.stats() == {'processing': 1, 'queued': 0, 'available': 1}
        assert gate.stats()['processing'] == 0

    def test_full_gate_times_out(self):
        gate = AnalysisGate(max_concurrent=1, queue_timeout=0.01)
        with gate.slot():
            with pytest.raises(GateTimeout):
                with gate.slot():
                    pass
        # Slot released after the refusal
        with gate.slot(timeout=0.01):
            assert gate.stats()['available'] == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            AnalysisGate(max_concurrent=0)


class TestSerializers:

    def test_record_defaults(self):
        serializer = RecordSerializer(data={'query': ' vélo enfant ', 'clicks': 5, 'impressions': 100})
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['phrase'] == 'vélo enfant'
        assert serializer.validated_data['ctr'] == 0.05
        assert serializer.validated_data['pages'] == []

    def test_fraction_ctr_untouched(self):
        serializer = RecordSerializer(data={'phrase': 'vélo', 'ctr': 0.3})
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['ctr'] == 0.3

    def test_request_conversion(self, payload):
        serializer = AnalyzeRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors
        request = serializer.to_request()
        assert request.brand == 'ShopVelo'
        assert request.records[0].pages[0].url == 'https://shop.com/velos'
        assert request.intentions[0].examples == ('prix vélo électrique',)

    def test_absent_intentions(self, payload):
        del payload['intentions']
        serializer = AnalyzeRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors
        assert serializer.to_intentions() is None


class TestHealth:

    def test_health(self, api_client):
        response = api_client.get('/api/v1/health/')
        assert response.status_code == 200
        body = response.json()
        assert body['status'] == 'ok'
        assert body['ai_configured'] is False
        assert 'available' in body['analysis_slots']

    def test_unknown_route_is_json(self, api_client):
        response = api_client.get('/api/v1/unknown/')
        assert response.status_code == 404
        assert response.json()['error'] == 'Not found'
