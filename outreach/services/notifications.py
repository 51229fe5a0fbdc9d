"""
Notifications — DB-backed alerts for the operator, mirrored to Slack when urgent.

High-priority alerts are queued on the session and posted to Slack only after
the transaction that created them commits; a rollback drops them. Slack
failure never blocks the agent that raised the notification.
"""
import logging
from datetime import timedelta

import requests
from sqlalchemy import event
from sqlalchemy.orm import Session

from outreach.config import SLACK_WEBHOOK_URL, NOTIFICATION_RETENTION_DAYS
from outreach.database import get_session, utcnow
from outreach.models.notification import Notification

logger = logging.getLogger('services.notifications')

# session.info key holding Slack messages waiting for commit
SLACK_OUTBOX = 'slack_outbox'


def create_notification(session, notification_type, title, message='',
                        prospect_id=None, priority='normal', action_url=None):
    """Add a notification to the caller's transaction (no commit)."""
    if action_url is None and prospect_id is not None:
        action_url = f'/prospect/{prospect_id}'
    notification = Notification(
        type=notification_type,
        title=title,
        message=message,
        prospect_id=prospect_id,
        priority=priority,
        action_url=action_url,
    )
    session.add(notification)
    if priority == 'high':
        session.info.setdefault(SLACK_OUTBOX, []).append({
            'type': notification_type,
            'title': title,
            'message': message,
            'action_url': action_url,
        })
    return notification


@event.listens_for(Session, 'after_commit')
def _post_committed_alerts(session):
    for alert in session.info.pop(SLACK_OUTBOX, []):
        post_to_slack(alert)


@event.listens_for(Session, 'after_rollback')
def _drop_rolled_back_alerts(session):
    dropped = session.info.pop(SLACK_OUTBOX, None)
    if dropped:
        logger.info("Dropped %d Slack alerts from a rolled-back transaction", len(dropped))


def post_to_slack(alert):
    """Mirror an alert dict (type, title, message, action_url) to the Slack webhook, if configured."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": alert['title']},
            },
        ]
        if alert.get('message'):
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": alert['message'][:2000]},
            })
        if alert.get('action_url'):
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Open: `{alert['action_url']}`"}],
            })
        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Slack notification sent: %s", alert.get('type'))
    except Exception:
        logger.error("Failed to post %s notification to Slack", alert.get('type'), exc_info=True)


# ── Classification / stage helpers ───────────────────────────────────────────

def notify_meeting_request(session, prospect, summary=''):
    return create_notification(
        session, 'meeting_request',
        f"Meeting request from {prospect.display_name}",
        summary or 'The prospect wants to schedule a meeting.',
        prospect_id=prospect.id, priority='high',
    )


def notify_interested(session, prospect, summary=''):
    return create_notification(
        session, 'interested',
        f"{prospect.display_name} is interested",
        summary or 'Positive reply received.',
        prospect_id=prospect.id,
    )


def notify_question(session, prospect, summary=''):
    return create_notification(
        session, 'question',
        f"{prospect.display_name} asked a question",
        summary or 'Reply needs an answer.',
        prospect_id=prospect.id,
    )


def notify_not_interested(session, prospect, summary=''):
    return create_notification(
        session, 'not_interested',
        f"{prospect.display_name} is not interested",
        summary or 'Prospect declined. Automation stopped.',
        prospect_id=prospect.id,
    )


def notify_review_needed(session, prospect, summary=''):
    return create_notification(
        session, 'review_needed',
        f"Review reply from {prospect.display_name}",
        summary or 'Could not classify the reply automatically.',
        prospect_id=prospect.id,
    )


# ── Read side ────────────────────────────────────────────────────────────────

def list_notifications(unread_only=False, limit=50):
    session = get_session()
    try:
        query = session.query(Notification)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]
    finally:
        session.close()


def unread_count():
    session = get_session()
    try:
        return session.query(Notification).filter(Notification.is_read.is_(False)).count()
    finally:
        session.close()


def mark_read(notification_id) -> bool:
    session = get_session()
    try:
        notification = session.get(Notification, notification_id)
        if notification is None:
            return False
        notification.is_read = True
        session.commit()
        return True
    except Exception:
        session.rollback()
        logger.error("Failed to mark notification %s read", notification_id, exc_info=True)
        raise
    finally:
        session.close()


def mark_all_read() -> int:
    session = get_session()
    try:
        count = (session.query(Notification)
                 .filter(Notification.is_read.is_(False))
                 .update({Notification.is_read: True}, synchronize_session=False))
        session.commit()
        return count
    except Exception:
        session.rollback()
        logger.error("Failed to mark notifications read", exc_info=True)
        raise
    finally:
        session.close()


def delete_notification(notification_id) -> bool:
    session = get_session()
    try:
        notification = session.get(Notification, notification_id)
        if notification is None:
            return False
        session.delete(notification)
        session.commit()
        return True
    except Exception:
        session.rollback()
        logger.error("Failed to delete notification %s", notification_id, exc_info=True)
        raise
    finally:
        session.close()


def cleanup_old_notifications(days=NOTIFICATION_RETENTION_DAYS, now=None) -> int:
    """Delete notifications older than the retention window. Returns rows removed."""
    cutoff = (now or utcnow()) - timedelta(days=days)
    session = get_session()
    try:
        count = (session.query(Notification)
                 .filter(Notification.created_at < cutoff)
                 .delete(synchronize_session=False))
        session.commit()
        if count:
            logger.info("Removed %d notifications older than %d days", count, days)
        return count
    except Exception:
        session.rollback()
        logger.error("Notification cleanup failed", exc_info=True)
        raise
    finally:
        session.close()
