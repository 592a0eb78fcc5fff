import logging
from apscheduler.jobstores.base import JobLookupError
from app.services.scheduler_config_service import SchedulerConfigService

logger = logging.getLogger(__name__)

RECALCULATION_JOB_ID = 'score_recalculation'


def _score_recalculation_job(app, batch_size=None):
    with app.app_context():
        from app.services.recalculation_service import RecalculationService
        result = RecalculationService().process_batch(batch_size)
        if result['processed'] or result['failed_source_ids']:
            logger.info(
                f"[Job] Score recalculation: {result['processed']} processed, "
                f"{len(result['failed_source_ids'])} failed, {result['remaining']} remaining"
            )


def _upsert_job(scheduler, **kwargs):
    scheduler.add_job(replace_existing=True, **kwargs)


def refresh_recalculation_job(scheduler, app, schedule=None):
    """(Re)register the score recalculation job using persisted schedule config."""
    try:
        if schedule is None:
            with app.app_context():
                schedule = SchedulerConfigService().get_recalculation_schedule()
    except Exception as e:
        logger.error("Failed to load recalculation schedule config: %s", e)
        return None

    if not schedule.get('enabled', True):
        try:
            scheduler.remove_job(RECALCULATION_JOB_ID)
        except JobLookupError:
            logger.debug("Recalculation job was not registered")
        logger.info("Score recalculation schedule disabled")
        return None

    try:
        _upsert_job(
            scheduler,
            id=RECALCULATION_JOB_ID,
            func=_score_recalculation_job,
            trigger='interval',
            args=[app, schedule['batch_size']],
            minutes=schedule['interval_minutes'],
            misfire_grace_time=300,
            coalesce=True,
            max_instances=1,
        )
        job = scheduler.get_job(RECALCULATION_JOB_ID)
        logger.info(
            "Score recalculation scheduled every %d min (batch size %d)",
            schedule['interval_minutes'],
            schedule['batch_size'],
        )
        return job
    except Exception as e:
        logger.error("Failed to register recalculation schedule: %s", e)
        return None


def register_jobs(scheduler, app):
    """Register all scheduled jobs."""
    refresh_recalculation_job(scheduler, app)
    logger.info("All scheduled jobs registered")
