"""
APScheduler wiring — the only source of time-driven work.

Jobs:
  process_agent_tasks  every minute     drain and dispatch due tasks
  check_follow_ups     every 5 minutes  queue followup tasks for due sequences
  cleanup_old_records  daily 03:00      drop old finished tasks and notifications
  health_snapshot      hourly           log task counts by status

One executor thread and max_instances=1 keep every job on a single timeline,
so at most one task is being dispatched at any moment.
"""
import logging
from datetime import timedelta

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import and_, or_

from outreach.agents.followup import find_due_follow_ups
from outreach.agents.orchestrator import (
    enqueue, process_pending_batch, cleanup_old_tasks, get_task_counts,
)
from outreach.config import (
    TASK_TICK_MINUTES, FOLLOW_UP_SCAN_MINUTES, CLEANUP_HOUR, AGENT_TYPES, STALE_TASK_MINUTES,
)
from outreach.database import get_session, utcnow
from outreach.models.task import AgentTask
from outreach.services.notifications import cleanup_old_notifications

logger = logging.getLogger('outreach.scheduler')

scheduler = None


# ── Jobs ──────────────────────────────────────────────────────────────────────

def process_agent_tasks():
    try:
        return process_pending_batch()
    except Exception:
        logger.error("Task processing tick failed", exc_info=True)
        return 0


def enqueue_due_follow_ups(now=None) -> int:
    """
    Queue a followup task per due sequence. Returns how many were queued.

    A prospect with a pending followup task, or one still processing within
    STALE_TASK_MINUTES, is skipped. Older processing rows are left behind by a
    dead dispatcher and do not block the cadence.
    """
    now = now or utcnow()
    stale_before = now - timedelta(minutes=STALE_TASK_MINUTES)
    session = get_session()
    try:
        queued = 0
        for sequence in find_due_follow_ups(session, now):
            in_flight = (session.query(AgentTask)
                         .filter(AgentTask.agent_type == 'followup')
                         .filter(AgentTask.prospect_id == sequence.prospect_id)
                         .filter(or_(
                             AgentTask.status == 'pending',
                             and_(AgentTask.status == 'processing',
                                  AgentTask.started_at >= stale_before),
                         ))
                         .count())
            if in_flight:
                continue
            enqueue('followup', sequence.prospect_id, {'sequence_id': sequence.id}, session=session)
            queued += 1
        session.commit()
        if queued:
            logger.info("Queued %d follow-ups", queued)
        return queued
    except Exception:
        session.rollback()
        logger.error("Follow-up scan failed", exc_info=True)
        return 0
    finally:
        session.close()


def cleanup_old_records():
    try:
        tasks = cleanup_old_tasks()
        notifications = cleanup_old_notifications()
        logger.info("Cleanup removed %d tasks, %d notifications", tasks, notifications)
    except Exception:
        logger.error("Cleanup job failed", exc_info=True)


def log_health_snapshot():
    try:
        counts = get_task_counts()
        logger.info("Agent task health: %s", ', '.join(
            f'{status}={counts.get(status, 0)}'
            for status in ('pending', 'processing', 'completed', 'failed')))
        return counts
    except Exception:
        logger.error("Health snapshot failed", exc_info=True)
        return {}


# ── Manual triggers ───────────────────────────────────────────────────────────

def trigger_agent(agent_type: str, prospect_id: int, payload: dict = None) -> dict:
    """Queue one task and process the queue now instead of waiting for a tick."""
    if agent_type not in AGENT_TYPES:
        raise ValueError(f"Unknown agent type: {agent_type}. Available: {AGENT_TYPES}")
    task_id = enqueue(agent_type, prospect_id, payload or {})
    processed = process_pending_batch()
    return {'task_id': task_id, 'processed': processed}


def process_now() -> int:
    return process_pending_batch()


# ── Lifecycle ─────────────────────────────────────────────────────────────────

def build_scheduler(scheduler_cls=BackgroundScheduler):
    sched = scheduler_cls(
        executors={'default': ThreadPoolExecutor(1)},
        job_defaults={'coalesce': True, 'max_instances': 1},
        timezone='UTC',
    )
    sched.add_job(process_agent_tasks, trigger=IntervalTrigger(minutes=TASK_TICK_MINUTES),
                  id='process_agent_tasks', name='Process agent tasks', replace_existing=True)
    sched.add_job(enqueue_due_follow_ups, trigger=IntervalTrigger(minutes=FOLLOW_UP_SCAN_MINUTES),
                  id='check_follow_ups', name='Check due follow-ups', replace_existing=True)
    sched.add_job(cleanup_old_records, trigger=CronTrigger(hour=CLEANUP_HOUR, minute=0),
                  id='cleanup_old_records', name='Clean up old tasks and notifications',
                  replace_existing=True)
    sched.add_job(log_health_snapshot, trigger=CronTrigger(minute=0),
                  id='health_snapshot', name='Task health snapshot', replace_existing=True)
    return sched


def start_scheduler(scheduler_cls=BackgroundScheduler):
    """Build and start the scheduler. Blocks when given a BlockingScheduler."""
    global scheduler
    if scheduler is not None and scheduler.running:
        logger.warning("Scheduler already running")
        return scheduler
    scheduler = build_scheduler(scheduler_cls)
    logger.info("Agent scheduler starting with %d jobs", len(scheduler.get_jobs()))
    scheduler.start()
    return scheduler


def stop_scheduler():
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Agent scheduler stopped")
    scheduler = None


def get_status() -> dict:
    if scheduler is None:
        return {'running': False, 'jobs': []}
    return {
        'running': bool(scheduler.running),
        'jobs': [
            {
                'id': job.id,
                'name': job.name,
                'next_run_time': job.next_run_time.isoformat() if getattr(job, 'next_run_time', None) else None,
            }
            for job in scheduler.get_jobs()
        ],
    }
