"""
Maintenance jobs

Runs in-process with the API: an hourly recount of group session membership
and a nightly pass marking past sessions completed.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tutorbook.services.booking_service import get_booking_service

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def reconcile_group_sessions():
    """
    Recount participants of every forming, ready or full group session.

    Drift between current_count and the participant rows is corrected and
    the quorum status reapplied.
    """
    try:
        summary = await get_booking_service().reconcile_groups()
    except Exception as e:
        logger.error(f"Group reconciliation failed: {e}", exc_info=True)
        return

    logger.info(
        f"Reconciled {summary['groups_checked']} group sessions "
        f"({summary['status_changes']} status changes) in {summary['duration_ms']:.2f}ms"
    )
    if summary['counts_corrected']:
        logger.warning(f"Corrected {summary['counts_corrected']} drifted participant counts")


async def complete_past_sessions():
    try:
        summary = await get_booking_service().complete_past_sessions()
    except Exception as e:
        logger.error(f"Session completion failed: {e}", exc_info=True)
        return

    logger.info(
        f"Completed {summary['bookings_completed']} bookings and "
        f"{summary['group_sessions_completed']} group sessions"
    )


# job id -> (callable, trigger)
JOBS = {
    'group_reconciliation': (reconcile_group_sessions, CronTrigger(minute=5)),
    'session_completion': (complete_past_sessions, CronTrigger(hour=0, minute=15)),
}


def configure_scheduler():
    for job_id, (func, trigger) in JOBS.items():
        scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
    logger.info(f"Scheduled maintenance jobs: {', '.join(JOBS)}")


def start_scheduler():
    configure_scheduler()
    scheduler.start()


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Maintenance scheduler stopped")
