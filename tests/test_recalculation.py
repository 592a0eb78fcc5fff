from datetime import datetime, timedelta, timezone
from sqlalchemy.exc import OperationalError
from app.extensions import db
from app.models.claim import Claim
from app.services.recalculation_service import RecalculationService
from app.services.score_cache_service import ScoreCacheService


class FlakyCache(ScoreCacheService):
    """Fails for one source, works for the rest."""

    def __init__(self, bad_source_id):
        self.bad_source_id = bad_source_id

    def recalculate(self, source_id, commit=True):
        if source_id == self.bad_source_id:
            raise OperationalError('SELECT', {}, Exception('connection reset'))
        return super().recalculate(source_id, commit)


def stale_sources_with_claims(sample_tree, user, names):
    cache = ScoreCacheService()
    for name in names:
        db.session.add(Claim(
            source_id=sample_tree[name],
            user_id=user.id,
            content='y' * 120,
            impact=4,
            confidence=4,
            helpful_votes=0,
            not_helpful_votes=0,
        ))
        cache.mark_stale(sample_tree[name])
    db.session.commit()
    return [sample_tree[name] for name in names]


class TestProcessBatch:
    def test_processes_all_stale(self, sample_tree, alice):
        ids = stale_sources_with_claims(sample_tree, alice, ['Reddit', 'r/art', 'YouTube'])

        result = RecalculationService().process_batch()

        assert result == {'processed': 3, 'remaining': 0, 'failed_source_ids': []}
        for source_id in ids:
            assert ScoreCacheService().get(source_id).tier == 2

    def test_nothing_to_do(self, app):
        result = RecalculationService().process_batch()
        assert result == {'processed': 0, 'remaining': 0, 'failed_source_ids': []}

    def test_remaining_non_increasing_until_zero(self, sample_tree, alice):
        stale_sources_with_claims(
            sample_tree, alice, ['Reddit', 'r/art', 'YouTube', 'r/programming', 'weekly-thread'],
        )
        service = RecalculationService()

        remaining = []
        for _ in range(4):
            remaining.append(service.process_batch(max_items=2)['remaining'])

        assert remaining == [3, 1, 0, 0]

    def test_oldest_request_first_and_never_calculated_first(self, sample_tree, alice):
        cache = ScoreCacheService()
        base = datetime.now(timezone.utc) - timedelta(hours=1)
        stale_sources_with_claims(sample_tree, alice, ['Reddit', 'r/art', 'YouTube'])

        # r/art was calculated before; YouTube never was but was requested last.
        cache.recalculate(sample_tree['r/art'])
        cache.mark_stale(sample_tree['r/art'], now=base + timedelta(hours=2))
        cache.mark_stale(sample_tree['Reddit'], now=base)
        cache.mark_stale(sample_tree['YouTube'], now=base + timedelta(minutes=30))
        db.session.commit()

        order = [row.source_id for row in cache.stale_query().all()]
        assert order == [sample_tree['Reddit'], sample_tree['YouTube'], sample_tree['r/art']]

    def test_failure_is_isolated(self, sample_tree, alice):
        ids = stale_sources_with_claims(sample_tree, alice, ['Reddit', 'r/art', 'YouTube'])
        bad = ids[1]

        result = RecalculationService(cache_service=FlakyCache(bad)).process_batch()

        assert result['processed'] == 2
        assert result['failed_source_ids'] == [bad]
        assert result['remaining'] == 1
        assert ScoreCacheService().get(ids[0]).is_stale is False
        assert ScoreCacheService().get(bad).is_stale is True

    def test_repeated_runs_converge(self, sample_tree, alice):
        ids = stale_sources_with_claims(sample_tree, alice, ['r/art'])
        service = RecalculationService()
        service.process_batch()
        first = ScoreCacheService().get(ids[0]).to_dict()

        ScoreCacheService().mark_stale(ids[0])
        db.session.commit()
        service.process_batch()
        second = ScoreCacheService().get(ids[0]).to_dict()

        for key in ('tier', 'raw_score', 'normalized_score', 'claim_count'):
            assert first[key] == second[key]

    def test_batch_size_capped(self, app, monkeypatch, sample_tree, alice):
        monkeypatch.setitem(app.config, 'RECALC_MAX_BATCH_SIZE', 1)
        stale_sources_with_claims(sample_tree, alice, ['Reddit', 'r/art'])

        result = RecalculationService().process_batch(max_items=50)
        assert result['processed'] == 1
        assert result['remaining'] == 1


class TestDrain:
    def test_drains_queue(self, sample_tree, alice):
        stale_sources_with_claims(sample_tree, alice, ['Reddit', 'r/art', 'YouTube'])

        result = RecalculationService().drain(max_items=1)

        assert result['processed'] == 3
        assert result['remaining'] == 0
        assert result['batches'] == 3

    def test_stops_when_no_progress(self, sample_tree, alice):
        ids = stale_sources_with_claims(sample_tree, alice, ['r/art'])

        result = RecalculationService(cache_service=FlakyCache(ids[0])).drain()

        assert result['batches'] == 1
        assert result['remaining'] == 1
        assert result['failed_source_ids'] == ids


class TestFailingSources:
    def test_failing_source_does_not_starve_the_rest(self, sample_tree, alice):
        cache = ScoreCacheService()
        base = datetime.now(timezone.utc) - timedelta(hours=1)
        bad, later = stale_sources_with_claims(sample_tree, alice, ['Reddit', 'YouTube'])
        cache.mark_stale(bad, now=base)
        cache.mark_stale(later, now=base + timedelta(minutes=10))
        db.session.commit()
        service = RecalculationService(cache_service=FlakyCache(bad))

        first = service.process_batch(max_items=1)
        second = service.process_batch(max_items=1)

        assert first == {'processed': 0, 'remaining': 2, 'failed_source_ids': [bad]}
        assert second == {'processed': 1, 'remaining': 1, 'failed_source_ids': []}
        assert ScoreCacheService().get(later).is_stale is False

    def test_failed_rows_rotate(self, sample_tree, alice):
        first_bad, second_bad = stale_sources_with_claims(sample_tree, alice, ['Reddit', 'YouTube'])
        cache = ScoreCacheService()
        cache.record_failure(first_bad, now=datetime.now(timezone.utc) - timedelta(minutes=5))
        cache.record_failure(second_bad)

        order = [row.source_id for row in cache.stale_query().all()]
        assert order == [first_bad, second_bad]

    def test_success_clears_failure_marker(self, sample_tree, alice):
        (source_id,) = stale_sources_with_claims(sample_tree, alice, ['r/art'])
        RecalculationService(cache_service=FlakyCache(source_id)).process_batch()
        assert ScoreCacheService().get(source_id).last_failed_at is not None

        RecalculationService().process_batch()

        row = ScoreCacheService().get(source_id)
        assert row.last_failed_at is None
        assert row.is_stale is False
