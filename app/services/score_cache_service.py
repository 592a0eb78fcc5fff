import logging
from datetime import datetime, timezone
from sqlalchemy import case, null, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm.util import identity_key
from app.extensions import db
from app.models.claim import Claim
from app.models.score_cache import SourceScoreCache, as_naive_utc
from app.services.scoring_service import calculate_source_score

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    'postgresql': pg_insert,
    'sqlite': sqlite_insert,
}


class ScoreCacheService:
    """Owns the source_score_cache rows: staleness markers and recomputed scores."""

    def mark_stale(self, source_id, now=None):
        """
        Flag a source's cached score for recalculation.
        Upserts the row and does not commit: call inside the transaction
        that changed the claim set.

        A marker can land after a recompute that started later than `now`
        but could not see this transaction's writes. In that case
        last_calculated_at is cleared so the row still reads as stale.
        """
        now = now or datetime.now(timezone.utc)
        dialect = db.engine.dialect.name
        insert_fn = _DIALECT_INSERTS.get(dialect)

        if insert_fn is None:
            row = db.session.query(SourceScoreCache).filter_by(
                source_id=source_id,
            ).with_for_update().first()
            if row is None:
                row = SourceScoreCache(source_id=source_id, claim_count=0)
                db.session.add(row)
            elif row.last_calculated_at is not None and as_naive_utc(row.last_calculated_at) >= as_naive_utc(now):
                row.last_calculated_at = None
            row.recalculation_requested_at = now
            return

        table = SourceScoreCache.__table__
        stmt = insert_fn(table).values(
            source_id=source_id,
            claim_count=0,
            recalculation_requested_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['source_id'],
            set_={
                'recalculation_requested_at': now,
                'last_calculated_at': case(
                    (table.c.last_calculated_at >= now, null()),
                    else_=table.c.last_calculated_at,
                ),
            },
        )
        db.session.execute(stmt)
        # The ORM identity map may hold an older copy of the row.
        cached = db.session.identity_map.get(identity_key(SourceScoreCache, source_id))
        if cached is not None:
            db.session.expire(cached)

    def active_claims(self, source_id):
        return Claim.query.filter(
            Claim.source_id == source_id,
            Claim.deleted_at.is_(None),
        ).with_entities(Claim.impact, Claim.confidence, Claim.helpful_votes).all()

    def lock_row(self, source_id):
        """
        Lock the cache row until commit. A writer that has marked the row
        but not yet committed holds this lock, so the claim read that follows
        sees its changes.
        """
        return db.session.query(SourceScoreCache).filter_by(
            source_id=source_id,
        ).populate_existing().with_for_update().first()

    def recalculate(self, source_id, commit=True):
        """
        Recompute a source's score from its authoritative claim set and
        overwrite the cache row. A source with no active claims has its
        row removed.
        """
        self.lock_row(source_id)
        # Stamp with the time before reading, so a marker written while we
        # compute still compares as newer.
        started_at = datetime.now(timezone.utc)
        claims = [
            {'impact': c.impact, 'confidence': c.confidence, 'helpful_votes': c.helpful_votes}
            for c in self.active_claims(source_id)
        ]
        result = calculate_source_score(claims)
        self.write(source_id, result, calculated_at=started_at)
        logger.debug(
            "Recalculated source %s: tier=%s claims=%s", source_id, result['tier'], result['claim_count']
        )
        if commit:
            db.session.commit()
        return result

    def write(self, source_id, result, calculated_at=None):
        calculated_at = calculated_at or datetime.now(timezone.utc)

        if result['claim_count'] == 0:
            # Keep the row if a newer marker arrived; the batch will revisit it.
            SourceScoreCache.query.filter(
                SourceScoreCache.source_id == source_id,
                or_(
                    SourceScoreCache.recalculation_requested_at.is_(None),
                    SourceScoreCache.recalculation_requested_at <= calculated_at,
                ),
            ).delete(synchronize_session='fetch')
            return None

        row = db.session.get(SourceScoreCache, source_id)
        if row is None:
            row = SourceScoreCache(source_id=source_id)
            db.session.add(row)

        row.tier = result['tier']
        row.raw_score = round(result['raw_score'], 2)
        row.normalized_score = round(result['normalized_score'], 2)
        row.claim_count = result['claim_count']
        row.last_calculated_at = calculated_at
        row.last_failed_at = None
        return row

    def get(self, source_id):
        return db.session.get(SourceScoreCache, source_id)

    def score_for(self, source_id):
        """Public score shape; a missing row means the source has no claims."""
        row = self.get(source_id)
        if row is None:
            return {
                'source_id': source_id,
                'tier': None,
                'raw_score': None,
                'normalized_score': None,
                'claim_count': 0,
                'last_calculated_at': None,
                'is_stale': False,
            }
        return row.to_dict()

    def record_failure(self, source_id, now=None):
        """Push a row that failed to recompute behind the healthy backlog. Commits."""
        now = now or datetime.now(timezone.utc)
        SourceScoreCache.query.filter(
            SourceScoreCache.source_id == source_id,
        ).update({'last_failed_at': now}, synchronize_session=False)
        db.session.commit()

    def stale_query(self):
        """
        Work order: rows that have not failed come first, never-calculated
        before recalculated, oldest request first. Failed rows follow,
        longest-waiting failure first, so they rotate instead of pinning
        the head of every batch.
        """
        failed_last = case(
            (SourceScoreCache.last_failed_at.is_(None), 0),
            else_=1,
        )
        never_calculated_first = case(
            (SourceScoreCache.last_calculated_at.is_(None), 0),
            else_=1,
        )
        return SourceScoreCache.query.filter(
            SourceScoreCache.stale_filter()
        ).order_by(
            failed_last,
            SourceScoreCache.last_failed_at.asc(),
            never_calculated_first,
            SourceScoreCache.recalculation_requested_at.asc(),
            SourceScoreCache.source_id.asc(),
        )

    def count_stale(self):
        return SourceScoreCache.query.filter(SourceScoreCache.stale_filter()).count()
