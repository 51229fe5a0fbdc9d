"""
Task orchestrator — durable agent task queue backed by the agent_tasks table.

  enqueue()  → pending row
  drain_due() → due pending rows, FIFO, bounded
  dispatch() → processing → completed | pending (retry) | failed

Each dispatch counts as one attempt. A failing task goes back to pending and
is picked up on a later tick until MAX_TASK_ATTEMPTS is reached. Errors marked
retryable=False (unknown agent type, bad payload, missing prospect,
unconfigured provider) fail the task on the spot.
"""
import logging
from datetime import timedelta
from typing import Dict, List, Optional, Type

from sqlalchemy import func, or_

from outreach.agents.base import Agent, AgentContext, UnknownAgentType, get_agent
from outreach.agents.followup import FollowUpAgent
from outreach.agents.outreach import OutreachAgent
from outreach.agents.response_classifier import ResponseClassifierAgent
from outreach.agents.stage_manager import StageManagerAgent
from outreach.config import MAX_TASK_ATTEMPTS, TASK_BATCH_SIZE, TASK_RETENTION_DAYS
from outreach.database import get_session, utcnow
from outreach.models.task import AgentTask
from outreach.services.db import load_settings

logger = logging.getLogger('agents.orchestrator')


# ── Agent registry ────────────────────────────────────────────────────────────
# Fixed at import time; keys match config.AGENT_TYPES.

AGENT_REGISTRY: Dict[str, Type[Agent]] = {
    'outreach': OutreachAgent,
    'followup': FollowUpAgent,
    'response_classifier': ResponseClassifierAgent,
    'stage_manager': StageManagerAgent,
}


# ── Queue ─────────────────────────────────────────────────────────────────────

def enqueue(agent_type: str, prospect_id: Optional[int], payload: dict = None,
            scheduled_for=None, session=None) -> int:
    """
    Insert a pending task and return its id.

    With a session the row joins the caller's transaction (flushed, not
    committed); otherwise it is committed in a session of its own.
    """
    task = AgentTask(
        agent_type=agent_type,
        prospect_id=prospect_id,
        payload=payload or {},
        status='pending',
        scheduled_for=scheduled_for,
        attempts=0,
    )
    if session is not None:
        session.add(task)
        session.flush()
        logger.info("Queued %s task %s for prospect %s", agent_type, task.id, prospect_id)
        return task.id

    own = get_session()
    try:
        own.add(task)
        own.commit()
        logger.info("Queued %s task %s for prospect %s", agent_type, task.id, prospect_id)
        return task.id
    except Exception:
        own.rollback()
        logger.error("Failed to queue %s task for prospect %s", agent_type, prospect_id, exc_info=True)
        raise
    finally:
        own.close()


def drain_due(limit: int = TASK_BATCH_SIZE, now=None, session=None) -> List[AgentTask]:
    """Pending tasks whose scheduled_for has arrived, oldest first."""
    now = now or utcnow()
    own = session is None
    if own:
        session = get_session()
    try:
        return (session.query(AgentTask)
                .filter(AgentTask.status == 'pending')
                .filter(or_(AgentTask.scheduled_for.is_(None), AgentTask.scheduled_for <= now))
                .order_by(AgentTask.created_at, AgentTask.id)
                .limit(limit)
                .all())
    finally:
        if own:
            session.close()


# ── Dispatch ──────────────────────────────────────────────────────────────────

def dispatch(task: AgentTask, session=None, now=None) -> Optional[AgentTask]:
    """
    Run one task through its agent and record the outcome on the row.

    Returns None when another dispatcher claimed the task first.
    """
    own = session is None
    if own:
        session = get_session()
    try:
        return _dispatch(session, session.get(AgentTask, task.id), now)
    finally:
        if own:
            session.close()


def _log_context(task):
    return {'task_id': task.id, 'agent_type': task.agent_type, 'prospect_id': task.prospect_id}


def _claim(session, task_id) -> bool:
    """Flip pending → processing in one conditional UPDATE. False if the row was not pending."""
    claimed = (session.query(AgentTask)
               .filter(AgentTask.id == task_id, AgentTask.status == 'pending')
               .update({
                   AgentTask.status: 'processing',
                   AgentTask.attempts: AgentTask.attempts + 1,
                   AgentTask.started_at: utcnow(),
               }, synchronize_session=False))
    session.commit()
    return claimed == 1


def _dispatch(session, task, now=None):
    task_id = task.id
    if not _claim(session, task_id):
        logger.info("Task %s already claimed by another dispatcher, skipping", task_id,
                    extra={'task_id': task_id})
        return None
    # commit expired the instance; attributes reload with the claimed values
    try:
        agent = get_agent(AGENT_REGISTRY, task.agent_type)
    except UnknownAgentType as e:
        logger.error("Task %s: %s", task_id, e, extra=_log_context(task))
        _finish(session, task, 'failed', error=str(e))
        return task

    try:
        payload = agent.decode(task.payload)
        context = AgentContext(session=session, settings=load_settings(session), now=now or utcnow())
        result = agent.execute(task.prospect_id, payload, context)
    except Exception as e:
        session.rollback()
        task = session.get(AgentTask, task_id)
        if not getattr(e, 'retryable', True):
            logger.error("Task %s (%s) failed permanently: %s", task_id, task.agent_type, e,
                         extra=_log_context(task))
            _finish(session, task, 'failed', error=str(e))
        else:
            logger.warning("Task %s (%s) attempt %d failed: %s",
                           task_id, task.agent_type, task.attempts, e, exc_info=True,
                           extra=_log_context(task))
            _record_failure(session, task, str(e))
        return task

    if result.is_error:
        _record_failure(session, task, result.message, result.to_dict())
        return task

    _finish(session, task, 'completed', result=result.to_dict())
    logger.info("Task %s (%s) completed: %s", task_id, task.agent_type, result.status,
                extra=_log_context(task))
    return task


def _record_failure(session, task, error, result=None):
    if task.attempts >= MAX_TASK_ATTEMPTS:
        logger.error("Task %s (%s) failed after %d attempts: %s",
                     task.id, task.agent_type, task.attempts, error, extra=_log_context(task))
        _finish(session, task, 'failed', error=error, result=result)
    else:
        task.status = 'pending'
        task.error = error
        task.result = result
        session.commit()


def _finish(session, task, status, error=None, result=None):
    task.status = status
    task.error = error
    task.result = result
    task.completed_at = utcnow()
    session.commit()


def process_pending_batch(limit: int = TASK_BATCH_SIZE, now=None) -> int:
    """Drain due tasks and dispatch them one at a time. Returns how many ran."""
    session = get_session()
    try:
        processed = 0
        for task in drain_due(limit, now=now, session=session):
            if _dispatch(session, task, now) is not None:
                processed += 1
        if processed:
            logger.info("Processed %d agent tasks", processed)
        return processed
    finally:
        session.close()


# ── Maintenance + stats ───────────────────────────────────────────────────────

def cleanup_old_tasks(days: int = TASK_RETENTION_DAYS, now=None) -> int:
    """Delete completed/failed tasks finished more than `days` ago."""
    cutoff = (now or utcnow()) - timedelta(days=days)
    session = get_session()
    try:
        count = (session.query(AgentTask)
                 .filter(AgentTask.status.in_(['completed', 'failed']))
                 .filter(AgentTask.completed_at < cutoff)
                 .delete(synchronize_session=False))
        session.commit()
        if count:
            logger.info("Removed %d tasks older than %d days", count, days)
        return count
    except Exception:
        session.rollback()
        logger.error("Task cleanup failed", exc_info=True)
        raise
    finally:
        session.close()


def get_task_counts(session=None) -> Dict[str, int]:
    """Task counts keyed by status."""
    own = session is None
    if own:
        session = get_session()
    try:
        rows = (session.query(AgentTask.status, func.count(AgentTask.id))
                .group_by(AgentTask.status).all())
        return {status: count for status, count in rows}
    finally:
        if own:
            session.close()


def get_stats(recent: int = 10) -> dict:
    session = get_session()
    try:
        by_agent = (session.query(AgentTask.agent_type, AgentTask.status, func.count(AgentTask.id))
                    .group_by(AgentTask.agent_type, AgentTask.status).all())
        agents = {}
        for agent_type, status, count in by_agent:
            agents.setdefault(agent_type, {})[status] = count
        recent_tasks = (session.query(AgentTask)
                        .order_by(AgentTask.created_at.desc(), AgentTask.id.desc())
                        .limit(recent).all())
        return {
            'task_stats': get_task_counts(session),
            'tasks_by_agent': agents,
            'recent_tasks': [t.to_dict() for t in recent_tasks],
        }
    finally:
        session.close()


def get_tasks_by_status(status: str, limit: int = 50) -> List[dict]:
    session = get_session()
    try:
        rows = (session.query(AgentTask)
                .filter(AgentTask.status == status)
                .order_by(AgentTask.created_at.desc(), AgentTask.id.desc())
                .limit(limit).all())
        return [t.to_dict() for t in rows]
    finally:
        session.close()
