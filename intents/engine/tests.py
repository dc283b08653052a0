"""
Tests for the intent analysis engine (no Django needed).
"""
import itertools
import json
import threading

import pytest

from intents.engine import AnalysisConfig, AnalysisError, AnalyzeRequest, Intention, PageHit, Record, run_analysis
from intents.engine.cannibalization import detect_cannibalization
from intents.engine.classifier import best_match, classify
from intents.engine.constants import UNCLASSIFIED, TIER_HIGH, TIER_DOUBTFUL, TIER_LOW
from intents.engine.models import ClassificationResult, QuickWinSet
from intents.engine.quick_wins import candidate_pool, select_quick_wins
from intents.engine.scoring import example_score, score, signal_score, signal_tokens
from intents.engine.seams import ErrorKind, SeamResult, call_seam
from intents.engine.similarity import dedupe_by_permutation_key, group_and_pick_best, jaccard
from intents.engine.stopwords import detect_stopwords, document_frequency
from intents.engine.url_variants import detect_url_variants
from intents.engine.utils import (
    brand_variants, canonical_url, content_words, permutation_key, split_branded, words,
)


def make_record(phrase, impressions=100, position=5.0, clicks=0, pages=()):
    return Record(
        phrase=phrase,
        clicks=clicks,
        impressions=impressions,
        ctr=clicks / impressions if impressions else 0.0,
        position=position,
        pages=tuple(pages),
    )


def classified(record, intention, confidence=1.0, tier=TIER_HIGH):
    return ClassificationResult(record=record, intention=intention, confidence=confidence, tier=tier)


def _provider_down(*args):
    raise ConnectionError('provider down')


@pytest.fixture
def intentions():
    return [
        Intention(name='Prix', examples=('prix vélo électrique',), linguistic_signal='prix, tarif'),
        Intention(name='Guides', examples=('comment régler vélo',), linguistic_signal='comment'),
    ]


@pytest.fixture
def records():
    return [
        make_record('prix vélo électrique', impressions=500),   # high, Prix
        make_record('régler dérailleur', impressions=300),      # doubtful, Guides
        make_record('casque moto', impressions=900),            # low
        make_record('tarif', impressions=700),                  # doubtful, Prix
    ]


class TestTokenizer:

    def test_words_lowercase_split(self):
        assert words('Vélo  Enfant\tROUGE') == ['vélo', 'enfant', 'rouge']

    def test_content_words_filters_short_digits_and_stopwords(self):
        assert content_words('le vélo 2024 pour enfant', {'pour'}) == {'vélo', 'enfant'}

    def test_permutation_key_is_order_independent(self):
        phrase = 'cheap paris hotel'
        keys = {permutation_key(' '.join(p)) for p in itertools.permutations(phrase.split())}
        assert keys == {'cheap hotel paris'}

    def test_canonical_url(self):
        assert canonical_url('  HTTPS://www.Site.com/Page/ ') == 'https://site.com/page'
        assert canonical_url('https://www.site.com/page/') == canonical_url('https://site.com/page')

    def test_canonical_url_ignore_scheme(self):
        assert canonical_url('http://www.site.com/page/', ignore_scheme=True) == 'site.com/page'
        assert canonical_url('https://site.com/page', ignore_scheme=True) == 'site.com/page'

    def test_canonical_url_strips_one_slash_only(self):
        assert canonical_url('https://site.com/page//') == 'https://site.com/page/'

    def test_brand_variants(self):
        assert brand_variants('Le Vélo') == ['le vélo', 'levélo', 'le-vélo', 'le_vélo']
        assert brand_variants('Decathlon') == ['decathlon']
        assert brand_variants('  ') == []

    def test_split_branded(self):
        records = [make_record('le-vélo avis'), make_record('vélo enfant'), make_record('levélo paris')]
        non_branded, branded = split_branded(records, 'Le Vélo')
        assert [r.phrase for r in non_branded] == ['vélo enfant']
        assert [r.phrase for r in branded] == ['le-vélo avis', 'levélo paris']

    def test_split_without_brand_keeps_everything(self):
        records = [make_record('vélo enfant')]
        assert split_branded(records, None) == (records, [])


class TestStopwords:

    def test_document_frequency_counts_once_per_record(self):
        frequency = document_frequency([make_record('velo velo rouge'), make_record('velo bleu')])
        assert frequency['velo'] == 2
        assert frequency['rouge'] == 1

    def test_size_is_min_of_top_n_and_distinct_words(self):
        records = [make_record('velo rouge'), make_record('velo bleu 12 de')]
        assert detect_stopwords(records, top_n=5) == frozenset({'velo', 'rouge', 'bleu'})
        assert len(detect_stopwords(records, top_n=2)) == 2

    def test_most_frequent_first(self):
        records = [make_record('alpha beta'), make_record('beta gamma'), make_record('beta delta')]
        assert detect_stopwords(records, top_n=1) == frozenset({'beta'})

    def test_zero_top_n(self):
        assert detect_stopwords([make_record('velo rouge')], top_n=0) == frozenset()

    def test_empty_corpus(self):
        assert detect_stopwords([]) == frozenset()

    def test_corpus_word_excluded_from_overlap_but_matches_signal(self):
        phrases = ['vélo enfant', 'vélo électrique', 'prix vélo', 'vélo route',
                   'vélo ville', 'vélo pliant', 'réparer vélo']
        stopwords = detect_stopwords([make_record(p) for p in phrases])
        assert 'vélo' in stopwords

        intention = Intention(name='Urbain', examples=('vélo ville',), linguistic_signal='vélo')
        assert 'vélo' not in content_words('vélo bleu', stopwords)
        assert example_score('vélo bleu', intention, stopwords) == 0
        assert example_score('vélo bleu', intention) == pytest.approx(0.3)
        assert signal_score('vélo bleu', intention) == pytest.approx(0.4)


class TestScoring:

    def test_signal_tokens(self):
        assert signal_tokens(' Comment, prix ;vs,, ') == ['comment', 'prix', 'vs']
        assert signal_tokens('') == []

    def test_signal_term(self):
        intention = Intention(name='i', linguistic_signal='comment, prix; vs')
        assert score('comment choisir prix', intention) == pytest.approx(0.8)

    def test_empty_signal_tokens_never_match(self):
        intention = Intention(name='i', linguistic_signal='prix,,')
        assert score('casque moto', intention) == 0

    def test_example_overlap_ratio(self):
        intention = Intention(name='i', examples=('vélo enfant pas cher',))
        # {vélo, enfant} shared, larger set has 4 words
        assert score('vélo enfant', intention) == pytest.approx(0.3)

    def test_all_words_filtered_contributes_zero(self):
        intention = Intention(name='i', examples=('vélo enfant',))
        assert score('vélo enfant', intention, stopwords={'vélo', 'enfant'}) == 0

    def test_score_is_uncapped(self):
        intention = Intention(name='i', examples=('vélo enfant',), linguistic_signal='vélo, enfant')
        assert score('vélo enfant', intention) == pytest.approx(1.4)

    def test_second_matching_example_never_decreases(self):
        one = Intention(name='i', examples=('vélo enfant rouge',))
        two = Intention(name='i', examples=('vélo enfant rouge', 'vélo enfant bleu'))
        assert score('vélo enfant', two) > score('vélo enfant', one)

    def test_signal_ignores_stopwords(self):
        intention = Intention(name='i', linguistic_signal='vélo')
        assert score('vélo rouge', intention, stopwords={'vélo'}) == pytest.approx(0.4)


class TestClassifier:

    def test_best_match_and_default(self, intentions):
        assert best_match(make_record('prix vélo électrique'), intentions) == ('Prix', pytest.approx(1.0))
        assert best_match(make_record('casque moto'), intentions) == (UNCLASSIFIED, 0.0)
        assert best_match(make_record('prix vélo'), []) == (UNCLASSIFIED, 0.0)

    def test_tiers_and_order(self, records, intentions):
        outcome = classify(records, intentions)
        assert [(r.record.phrase, r.intention, r.tier) for r in outcome.results] == [
            ('prix vélo électrique', 'Prix', TIER_HIGH),
            ('régler dérailleur', 'Guides', TIER_DOUBTFUL),
            ('tarif', 'Prix', TIER_DOUBTFUL),
            ('casque moto', UNCLASSIFIED, TIER_LOW),
        ]
        assert outcome.tier_counts == {TIER_HIGH: 1, TIER_DOUBTFUL: 2, TIER_LOW: 1}
        assert outcome.refinement.status == 'skipped'

    def test_every_record_appears_once(self, records, intentions):
        outcome = classify(records, intentions)
        assert sum(outcome.tier_counts.values()) == len(records)
        assert sorted(r.record.phrase for r in outcome.results) == sorted(r.phrase for r in records)

    def test_low_tier_forced_unclassified(self, intentions):
        config = AnalysisConfig(doubtful_confidence=0.3)
        outcome = classify([make_record('régler dérailleur')], intentions, config=config)
        result = outcome.results[0]
        assert (result.intention, result.confidence, result.tier) == (UNCLASSIFIED, 0.0, TIER_LOW)

    def test_no_intentions(self, records):
        outcome = classify(records, [])
        assert all(r.intention == UNCLASSIFIED and r.tier == TIER_LOW for r in outcome.results)

    def test_refinement_overrides(self, records, intentions):
        def refiner(doubtful, intentions, site_theme):
            return SeamResult.success({'RÉGLER DÉRAILLEUR': 'Guides', 'tarif': UNCLASSIFIED})

        outcome = classify(records, intentions, refiner=refiner)
        by_phrase = {r.record.phrase: r for r in outcome.results}
        assert by_phrase['régler dérailleur'].refined is True
        assert by_phrase['régler dérailleur'].confidence == pytest.approx(0.4)
        assert by_phrase['tarif'].intention == UNCLASSIFIED
        assert by_phrase['tarif'].confidence == 0
        assert by_phrase['prix vélo électrique'].refined is False
        assert outcome.refinement.status == 'applied'

    def test_refinement_payload_only_doubtful_largest_first(self, records, intentions):
        seen = {}

        def refiner(doubtful, intentions, site_theme):
            seen['phrases'] = [d.phrase for d in doubtful]
            seen['candidates'] = {d.phrase: d.candidates for d in doubtful}
            seen['theme'] = site_theme
            return SeamResult.success({})

        classify(records, intentions, refiner=refiner, site_theme='bike shop')
        assert seen['phrases'] == ['tarif', 'régler dérailleur']
        assert seen['candidates']['tarif'][0][0] == 'Prix'
        assert seen['theme'] == 'bike shop'

    def test_refinement_capped(self, records, intentions):
        seen = []

        def refiner(doubtful, intentions, site_theme):
            seen.extend(d.phrase for d in doubtful)
            return SeamResult.success({})

        classify(records, intentions, config=AnalysisConfig(refinement_max_phrases=1), refiner=refiner)
        assert seen == ['tarif']

    def test_unknown_intention_override_ignored(self, records, intentions):
        def refiner(doubtful, intentions, site_theme):
            return SeamResult.success({'tarif': 'Does not exist'})

        outcome = classify(records, intentions, refiner=refiner)
        tarif = next(r for r in outcome.results if r.record.phrase == 'tarif')
        assert (tarif.intention, tarif.refined) == ('Prix', False)

    @pytest.mark.parametrize('refiner, kind', [
        (_provider_down, 'transport'),
        (lambda d, i, t: {'tarif': 'Prix'}, 'malformed'),
        (lambda d, i, t: SeamResult.success(['tarif']), 'schema'),
        (lambda d, i, t: SeamResult.failure(ErrorKind.MALFORMED, 'bad json'), 'malformed'),
    ])
    def test_refinement_failure_keeps_algorithmic_result(self, records, intentions, refiner, kind):
        baseline = classify(records, intentions)
        outcome = classify(records, intentions, refiner=refiner)
        assert outcome.refinement.status == 'failed'
        assert outcome.refinement.error_kind == kind
        assert [(r.record, r.intention, r.confidence) for r in outcome.results] == \
            [(r.record, r.intention, r.confidence) for r in baseline.results]

    def test_refinement_timeout(self, records, intentions):
        release = threading.Event()

        def refiner(doubtful, intentions, site_theme):
            release.wait(5)
            return SeamResult.success({'tarif': UNCLASSIFIED})

        try:
            outcome = classify(records, intentions, config=AnalysisConfig(seam_timeout=0.05), refiner=refiner)
        finally:
            release.set()
        assert outcome.refinement.error_kind == 'timeout'
        tarif = next(r for r in outcome.results if r.record.phrase == 'tarif')
        assert tarif.intention == 'Prix'


class TestSimilarity:

    def test_jaccard_properties(self):
        assert jaccard('vélo pour enfant', 'vélo pour enfant') == 1.0
        assert jaccard('vélo pour enfant', 'vélo pour enfants') == pytest.approx(0.5)
        assert jaccard('vélo rouge', 'casque bleu') == 0
        assert jaccard('a b', 'vélo rouge') == jaccard('vélo rouge', 'a b') == 0

    def test_jaccard_short_words_only(self):
        assert jaccard('a b', 'A  b') == 1.0
        assert jaccard('a b', 'c d') == 0.0

    def test_group_and_pick_best(self):
        records = [
            make_record('cheap paris hotel', position=8),
            make_record('paris cheap hotel', position=5),
            make_record('london flights', position=3),
        ]
        best = group_and_pick_best(records)
        assert [r.phrase for r in best] == ['paris cheap hotel', 'london flights']

    def test_group_threshold(self):
        records = [make_record('vélo pour enfant', position=8), make_record('vélo pour enfants', position=6)]
        assert len(group_and_pick_best(records)) == 2
        assert [r.position for r in group_and_pick_best(records, threshold=0.5)] == [6]

    def test_dedupe_by_permutation_key_keeps_most_impressions(self):
        records = [
            make_record('paris hotel', impressions=100),
            make_record('london hotel', impressions=50),
            make_record('hotel paris', impressions=300),
            make_record('Paris Hotel', impressions=300),
        ]
        deduped = dedupe_by_permutation_key(records)
        assert [(r.phrase, r.impressions) for r in deduped] == [('hotel paris', 300), ('london hotel', 50)]


class TestQuickWins:

    @pytest.fixture
    def results(self):
        return [
            classified(make_record('prix vélo', position=3, impressions=500), 'Prix'),
            classified(make_record('vélo prix', position=6, impressions=400), 'Prix'),
            classified(make_record('prix vélo', position=9, impressions=800), 'Prix'),
            classified(make_record('tarif vélo', position=4, impressions=100), 'Prix'),
            classified(make_record('tarif vélo électrique', position=21, impressions=900), 'Prix'),
            classified(make_record('prix casque', position=12, impressions=99), 'Prix'),
            classified(make_record('comment régler', position=7, impressions=600), 'Guides'),
        ]

    def test_candidate_pool(self, results):
        pool = candidate_pool(results, 'Prix')
        assert [(r.phrase, r.position) for r in pool] == [('tarif vélo', 4), ('prix vélo', 9)]

    def test_near_duplicate_collapse(self):
        results = [
            classified(make_record('vélo pour enfant', position=8, impressions=300), 'Kids'),
            classified(make_record('vélo pour enfants', position=6, impressions=200), 'Kids'),
        ]
        config = AnalysisConfig(collapse_near_duplicates=True, similarity_threshold=0.5)
        assert [r.phrase for r in candidate_pool(results, 'Kids', config)] == ['vélo pour enfants']
        assert len(candidate_pool(results, 'Kids')) == 2

    def test_fallback_is_top_ten_by_position(self):
        results = [
            classified(make_record(f'vélo modèle{i}', position=4 + i, impressions=200), 'Prix')
            for i in range(12)
        ]
        sets, status = select_quick_wins(results, [Intention(name='Prix')])
        assert status.status == 'skipped'
        assert len(sets[0].quick_wins) == 10
        assert sets[0].quick_wins[0].position == 4
        assert sets[0].candidate_count == 12
        assert sets[0].curated is False

    def test_curated_phrases_resolved_against_pool(self, results, intentions):
        def curator(pools):
            assert set(pools) == {'Prix', 'Guides'}
            return SeamResult.success({'Prix': ['PRIX VÉLO', 'not a candidate'], 'Unknown': ['x']})

        sets, status = select_quick_wins(results, intentions, curator=curator)
        prix, guides = sets
        assert [r.phrase for r in prix.quick_wins] == ['prix vélo']
        assert prix.curated is True
        # Not named by the curator: deterministic pool
        assert [r.phrase for r in guides.quick_wins] == ['comment régler']
        assert guides.curated is False
        assert status.status == 'applied'

    def test_curation_failure_falls_back(self, results, intentions):
        sets, status = select_quick_wins(
            results, intentions,
            curator=lambda pools: SeamResult.failure(ErrorKind.UNAVAILABLE, 'no provider'),
        )
        assert status.status == 'failed'
        assert status.error_kind == 'unavailable'
        assert [r.phrase for r in sets[0].quick_wins] == ['tarif vélo', 'prix vélo']
        assert not any(s.curated for s in sets)

    def test_curated_phrases_outside_pool_fall_back(self, results, intentions):
        sets, status = select_quick_wins(
            results, intentions,
            curator=lambda pools: SeamResult.success({'Prix': ['made up phrase'], 'Guides': []}),
        )
        prix, guides = sets
        assert [r.phrase for r in prix.quick_wins] == ['tarif vélo', 'prix vélo']
        assert [r.phrase for r in guides.quick_wins] == ['comment régler']
        assert not any(s.curated for s in sets)
        assert (status.status, status.error_kind) == ('failed', 'schema')

    def test_empty_curation_for_one_intention_keeps_its_pool(self, results, intentions):
        sets, status = select_quick_wins(
            results, intentions,
            curator=lambda pools: SeamResult.success({'Prix': [], 'Guides': ['comment régler']}),
        )
        prix, guides = sets
        assert (prix.curated, len(prix.quick_wins)) == (False, 2)
        assert (guides.curated, len(guides.quick_wins)) == (True, 1)
        assert status.status == 'applied'

    def test_curator_sees_highest_impression_candidates(self):
        results = [
            classified(make_record(f'vélo taille{i}', position=5, impressions=100 + i), 'Prix')
            for i in range(35)
        ]
        seen = {}

        def curator(pools):
            seen.update(pools)
            return SeamResult.success({})

        select_quick_wins(results, [Intention(name='Prix')], curator=curator)
        assert len(seen['Prix']) == 30
        assert seen['Prix'][0].impressions == 134

    def test_curator_not_called_without_candidates(self):
        def curator(pools):
            raise AssertionError('should not be called')

        sets, status = select_quick_wins([], [Intention(name='Prix')], curator=curator)
        assert status.status == 'skipped'
        assert sets[0].quick_wins == []

    def test_quick_win_ctr_recomputed(self):
        record = Record(phrase='vélo enfant', clicks=50, impressions=1000, ctr=0.07, position=6)
        assert record.display_ctr == 0.05
        rendered = QuickWinSet(intention='Kids', quick_wins=[record]).to_dict()
        assert rendered['quick_wins'][0]['ctr'] == 0.05


class TestCannibalization:

    def test_two_competing_pages(self):
        record = make_record('vélo enfant', impressions=1000, pages=[
            PageHit(url='a', impressions=600, position=3),
            PageHit(url='b', impressions=400, position=9),
        ])
        groups = detect_cannibalization([record])
        assert len(groups) == 1
        assert [(p.url, p.impression_share) for p in groups[0].pages] == [('a', 60.0), ('b', 40.0)]
        assert groups[0].total_impressions == 1000
        assert groups[0].avg_position == 6

    def test_single_page_never_cannibalizes(self):
        record = make_record('vélo enfant', impressions=100000, pages=[PageHit(url='a', impressions=100000, position=1)])
        assert detect_cannibalization([record]) == []

    def test_out_of_range_and_minor_pages_dropped(self):
        record = make_record('vélo enfant', impressions=1000, pages=[
            PageHit(url='a', impressions=600, position=3),
            PageHit(url='b', impressions=340, position=25),
            PageHit(url='c', impressions=30, position=4),
            PageHit(url='d', impressions=0, position=0),
        ])
        assert detect_cannibalization([record]) == []

    def test_deduplicates_by_permutation_key(self):
        pages = [PageHit(url='a', impressions=300, position=3), PageHit(url='b', impressions=200, position=5)]
        groups = detect_cannibalization([
            make_record('enfant vélo', impressions=500, pages=pages),
            make_record('vélo enfant', impressions=1000, pages=pages),
        ])
        assert [g.phrase for g in groups] == ['vélo enfant']

    def test_adaptive_filter(self):
        big = make_record('vélo', impressions=100000, pages=[
            PageHit(url='a', impressions=60000, position=2),
            PageHit(url='b', impressions=40000, position=4),
        ])
        small_two_urls = make_record('selle', impressions=500, pages=[
            PageHit(url='c', impressions=300, position=5),
            PageHit(url='d', impressions=200, position=6),
        ])
        small_three_urls = make_record('pneu', impressions=600, pages=[
            PageHit(url='e', impressions=200, position=5),
            PageHit(url='f', impressions=200, position=6),
            PageHit(url='g', impressions=200, position=7),
        ])
        groups = detect_cannibalization([small_two_urls, small_three_urls, big])
        assert [g.phrase for g in groups] == ['vélo', 'pneu']

    def test_truncated(self):
        records = [
            make_record(f'phrase{i}', impressions=1000, pages=[
                PageHit(url=f'a{i}', impressions=500, position=1),
                PageHit(url=f'b{i}', impressions=500, position=2),
            ])
            for i in range(5)
        ]
        assert len(detect_cannibalization(records, AnalysisConfig(max_groups=2))) == 2

    def test_zero_impressions(self):
        record = make_record('vélo', impressions=0, pages=[PageHit(url='a'), PageHit(url='b')])
        assert detect_cannibalization([record]) == []


class TestURLVariants:

    def test_www_and_trailing_slash(self):
        record = make_record('chaussures running', pages=[
            PageHit(url='https://www.site.com/page/', impressions=300, position=4),
            PageHit(url='https://site.com/page', impressions=100, position=7),
        ])
        groups = detect_url_variants([record])
        assert len(groups) == 1
        group = groups[0]
        assert group.issue_types == {'www', 'trailing-slash'}
        assert [(v.url, v.impression_share) for v in group.variants] == [
            ('https://www.site.com/page/', 75.0),
            ('https://site.com/page', 25.0),
        ]
        assert group.to_dict()['issue_types'] == ['trailing-slash', 'www']

    def test_protocol(self):
        record = make_record('x', pages=[
            PageHit(url='http://site.com/a', impressions=10, position=2),
            PageHit(url='https://site.com/a', impressions=30, position=3),
        ])
        assert detect_url_variants([record])[0].issue_types == {'protocol'}
        assert detect_url_variants([record], AnalysisConfig(url_variant_ignore_scheme=False)) == []

    def test_case_only_difference_is_not_a_variant(self):
        record = make_record('x', pages=[
            PageHit(url='https://site.com/Page', impressions=10, position=2),
            PageHit(url='https://site.com/page', impressions=30, position=3),
        ])
        assert detect_url_variants([record]) == []

    def test_different_pages_are_not_variants(self):
        record = make_record('x', pages=[
            PageHit(url='https://site.com/a', impressions=10, position=2),
            PageHit(url='https://www.site.com/b', impressions=30, position=3),
        ])
        assert detect_url_variants([record]) == []

    def test_out_of_range_pages_ignored(self):
        record = make_record('x', pages=[
            PageHit(url='https://site.com/a', impressions=10, position=2),
            PageHit(url='https://site.com/a/', impressions=30, position=35),
        ])
        assert detect_url_variants([record]) == []

    def test_same_url_set_reported_once(self):
        def pages(scale):
            return [
                PageHit(url='https://site.com/a', impressions=10 * scale, position=2),
                PageHit(url='https://site.com/a/', impressions=30 * scale, position=3),
            ]
        groups = detect_url_variants([make_record('small', pages=pages(1)), make_record('large', pages=pages(5))])
        assert [(g.phrase, g.total_impressions) for g in groups] == [('large', 200)]


class TestPipeline:

    def _request(self, records, intentions, brand=None):
        return AnalyzeRequest(records=tuple(records), intentions=tuple(intentions), brand=brand)

    def test_idempotent(self, records, intentions):
        request = self._request(records, intentions)
        first = json.dumps(run_analysis(request).to_dict(), sort_keys=True)
        second = json.dumps(run_analysis(request).to_dict(), sort_keys=True)
        assert first == second

    def test_intentions_required(self, records):
        with pytest.raises(AnalysisError):
            run_analysis(AnalyzeRequest(records=tuple(records), intentions=None))

    def test_degenerate_corpus(self):
        result = run_analysis(self._request([], []))
        assert result.classifications == []
        assert result.quick_wins_by_intention == []
        assert result.cannibalizations == []
        assert result.url_variant_issues == []

    def test_brand_records_set_aside(self, records, intentions):
        branded = make_record('decathlon vélo', impressions=5000)
        result = run_analysis(self._request(records + [branded], intentions, brand='Decathlon'))
        assert [r.phrase for r in result.brand_records] == ['decathlon vélo']
        assert len(result.classifications) == len(records)
        assert 'decathlon' not in result.stopwords

    def test_collaborator_failures_are_not_fatal(self, records, intentions):
        def broken(*args):
            raise RuntimeError('provider down')

        result = run_analysis(
            self._request(records, intentions),
            config=AnalysisConfig(stopword_top_n=0),
            refiner=broken, curator=broken,
        )
        assert result.refinement.status == 'failed'
        assert result.curation.status == 'failed'
        assert len(result.classifications) == len(records)
        prix = next(q for q in result.quick_wins_by_intention if q.intention == 'Prix')
        assert [r.phrase for r in prix.quick_wins] == ['prix vélo électrique', 'tarif']
        assert prix.curated is False

    def test_structural_detectors_run_on_all_records(self, intentions):
        record = make_record('decathlon vélo', impressions=1000, pages=[
            PageHit(url='https://site.com/a', impressions=500, position=2),
            PageHit(url='https://site.com/a/', impressions=500, position=3),
        ])
        result = run_analysis(self._request([record], intentions, brand='decathlon'))
        assert len(result.cannibalizations) == 1
        assert len(result.url_variant_issues) == 1


class TestSeams:

    def test_success_passthrough(self):
        result = call_seam('test', lambda x: SeamResult.success(x * 2), 21, timeout=1)
        assert result.ok and result.value == 42

    def test_status(self):
        assert SeamResult.success(1).to_status().status == 'applied'
        status = SeamResult.failure(ErrorKind.TIMEOUT, 'slow').to_status()
        assert (status.status, status.error_kind, status.detail) == ('failed', 'timeout', 'slow')


class TestConfig:

    def test_from_mapping(self):
        config = AnalysisConfig.from_mapping({'stopword_top_n': 3})
        assert config.stopword_top_n == 3
        assert config.high_confidence == 0.5

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            AnalysisConfig.from_mapping({'stopwords_top': 3})

    def test_inconsistent_thresholds(self):
        with pytest.raises(ValueError):
            AnalysisConfig(high_confidence=0.1, doubtful_confidence=0.2)
