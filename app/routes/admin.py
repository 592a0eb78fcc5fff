from flask import Blueprint, jsonify, request, current_app
from app.auth import require_admin_key
from app.extensions import scheduler
from app.jobs.scheduled import RECALCULATION_JOB_ID, refresh_recalculation_job
from app.services.recalculation_service import RecalculationService
from app.services.scheduler_config_service import SchedulerConfigService
from app.services.score_cache_service import ScoreCacheService

admin_bp = Blueprint('admin', __name__)


def _safe_scheduler_get_job(job_id):
    if not scheduler.running:
        return None
    return scheduler.get_job(job_id)


def _recalculation_schedule_payload():
    schedule = SchedulerConfigService().get_recalculation_schedule()
    job = _safe_scheduler_get_job(RECALCULATION_JOB_ID)
    return {
        **schedule,
        'next_run_at': job.next_run_time.isoformat() if job and job.next_run_time else None,
        'stale_count': ScoreCacheService().count_stale(),
    }


@admin_bp.route('/schedule/recalculation')
@require_admin_key
def get_recalculation_schedule():
    return jsonify(_recalculation_schedule_payload())


@admin_bp.route('/schedule/recalculation', methods=['PUT'])
@require_admin_key
def update_recalculation_schedule():
    data = request.get_json(silent=True) or {}
    updates = {}

    if 'enabled' in data:
        if not isinstance(data['enabled'], bool):
            return jsonify({'error': '"enabled" must be a boolean'}), 400
        updates['enabled'] = data['enabled']

    for field in ('interval_minutes', 'batch_size'):
        if field in data:
            updates[field] = data[field]

    try:
        schedule_config = SchedulerConfigService().update_recalculation_schedule(updates)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if scheduler.running:
        refresh_recalculation_job(scheduler, current_app._get_current_object(), schedule_config)
    return jsonify(_recalculation_schedule_payload())


@admin_bp.route('/recalculate', methods=['POST'])
@require_admin_key
def recalculate_now():
    """Run one recalculation batch synchronously."""
    data = request.get_json(silent=True) or {}
    max_items = data.get('max_items')
    if max_items is not None and (isinstance(max_items, bool) or not isinstance(max_items, int)):
        return jsonify({'error': '"max_items" must be an integer'}), 400

    result = RecalculationService().process_batch(max_items)
    return jsonify({'status': 'complete', **result})
