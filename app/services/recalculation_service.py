import logging
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from app.extensions import db
from app.services.score_cache_service import ScoreCacheService

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_BATCH_SIZE = 500


class RecalculationService:
    """
    Drains stale score-cache rows in bounded batches.

    The cache table itself is the work queue: a row is pending while its
    recalculation_requested_at is newer than last_calculated_at. Every item is
    recomputed from the full claim set, so repeated or overlapping runs
    converge on the same cache contents.
    """

    def __init__(self, cache_service=None):
        self.cache = cache_service or ScoreCacheService()

    def _resolve_batch_size(self, max_items):
        config = current_app.config
        if max_items is None:
            max_items = config.get('RECALC_BATCH_SIZE', DEFAULT_BATCH_SIZE)
        ceiling = config.get('RECALC_MAX_BATCH_SIZE', DEFAULT_MAX_BATCH_SIZE)
        return max(1, min(int(max_items), ceiling))

    def process_batch(self, max_items=None):
        """
        Recompute up to max_items stale sources, oldest request first.
        Returns {'processed', 'remaining', 'failed_source_ids'}.
        """
        batch_size = self._resolve_batch_size(max_items)
        source_ids = [row.source_id for row in self.cache.stale_query().limit(batch_size).all()]
        logger.info(f"[Recalc] Found {len(source_ids)} stale scores to process")

        processed = 0
        failed = []
        for source_id in source_ids:
            try:
                self.cache.recalculate(source_id)
                processed += 1
            except Exception as e:
                db.session.rollback()
                logger.error(f"[Recalc] Error processing source {source_id}: {e}", exc_info=True)
                failed.append(source_id)
                self._requeue_failed(source_id)

        remaining = self.cache.count_stale()
        logger.info(
            f"[Recalc] Processed {processed} scores, {len(failed)} failed, {remaining} remaining"
        )
        return {
            'processed': processed,
            'remaining': remaining,
            'failed_source_ids': failed,
        }

    def _requeue_failed(self, source_id):
        try:
            self.cache.record_failure(source_id)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"[Recalc] Could not requeue source {source_id}: {e}")

    def drain(self, max_items=None, max_batches=50):
        """Run batches until nothing is stale or a batch makes no progress."""
        totals = {'processed': 0, 'remaining': 0, 'failed_source_ids': [], 'batches': 0}
        for _ in range(max_batches):
            result = self.process_batch(max_items)
            totals['batches'] += 1
            totals['processed'] += result['processed']
            totals['remaining'] = result['remaining']
            totals['failed_source_ids'].extend(result['failed_source_ids'])
            if result['remaining'] == 0 or result['processed'] == 0:
                break
        return totals
