"""
Inbound reply ingestion.

A reply bypasses the Outreach/FollowUp flow, so ingestion itself pauses the
sequence and moves the prospect to responded before queuing classification.
"""
import logging
import re
from typing import Optional

from sqlalchemy import func

from outreach.database import get_session, utcnow
from outreach.models.prospect import Prospect
from outreach.services.db import load_settings, log_activity

logger = logging.getLogger('services.inbound')

_ADDRESS_RE = re.compile(r'<([^>]+)>')


def parse_address(raw: str) -> str:
    """'Jane Doe <jane@example.com>' → 'jane@example.com'."""
    raw = (raw or '').strip()
    match = _ADDRESS_RE.search(raw)
    return (match.group(1) if match else raw).strip().lower()


def ingest_reply(from_address: str, subject: str, text: str) -> Optional[dict]:
    """
    Record a reply and queue it for classification.

    Returns {'prospect_id', 'task_id', 'stage'} or None when the sender is not
    a known prospect.
    """
    from outreach.agents.base import AgentContext
    from outreach.agents.orchestrator import enqueue
    from outreach.agents.stage_manager import StageMachine, pause_sequence

    email = parse_address(from_address)
    if not email:
        return None

    session = get_session()
    try:
        prospect = (session.query(Prospect)
                    .filter(func.lower(Prospect.email) == email)
                    .first())
        if prospect is None:
            logger.info("Reply from unknown sender %s ignored", email)
            return None

        log_activity(session, prospect.id, 'email_reply',
                     f'Reply received: "{subject or "(no subject)"}"')

        if prospect.stage in ('new', 'contacted'):
            context = AgentContext(session=session, settings=load_settings(session), now=utcnow())
            StageMachine(context).advance_to(prospect, 'responded', 'Reply received')
        pause_sequence(session, prospect.id)

        task_id = None
        if (text or '').strip():
            task_id = enqueue('response_classifier', prospect.id, {
                'response_text': text,
                'subject': subject or '',
                'from_email': email,
            }, session=session)
        session.commit()

        logger.info("Reply from prospect %s queued as task %s", prospect.id, task_id)
        return {'prospect_id': prospect.id, 'task_id': task_id, 'stage': prospect.stage}
    except Exception:
        session.rollback()
        logger.error("Failed to ingest reply from %s", email, exc_info=True)
        raise
    finally:
        session.close()
