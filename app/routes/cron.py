import logging
import time
from datetime import datetime, timezone
from flask import Blueprint, jsonify, request
from app.auth import require_cron_secret
from app.services.recalculation_service import RecalculationService

logger = logging.getLogger(__name__)

cron_bp = Blueprint('cron', __name__)


@cron_bp.route('/recalculate-scores')
@require_cron_secret
def recalculate_scores():
    """Batch trigger for external cron. Processes one bounded batch."""
    started = time.monotonic()
    max_items = request.args.get('limit', type=int)

    try:
        result = RecalculationService().process_batch(max_items)
    except Exception as e:
        logger.error(f"[Cron] Score recalculation failed: {e}", exc_info=True)
        return jsonify({'error': 'Internal server error', 'message': str(e)}), 500

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        f"[Cron] Recalculated {result['processed']} scores in {duration_ms}ms, "
        f"{result['remaining']} remaining"
    )

    payload = {
        'success': True,
        'processed': result['processed'],
        'remaining': result['remaining'],
        'duration_ms': duration_ms,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    if result['failed_source_ids']:
        payload['errors'] = result['failed_source_ids']
    return jsonify(payload)
