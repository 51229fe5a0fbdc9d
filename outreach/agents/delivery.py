"""
Campaign delivery shared by the Outreach and FollowUp agents.

pending → draft  (no recipient, or email service not configured)
        → failed (send raised, or the provider rejected it)
        → sent
"""
import logging
from dataclasses import dataclass
from typing import Optional

from outreach.models.campaign import Campaign
from outreach.services.db import log_activity
from outreach.services.email import send_email, is_ready

logger = logging.getLogger('agents.delivery')


@dataclass
class Delivery:
    campaign: Campaign
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.campaign.status == 'sent'

    @property
    def drafted(self) -> bool:
        return self.campaign.status == 'draft'


def create_campaign(session, prospect, subject, body, follow_up_number=0) -> Campaign:
    """Persist a pending campaign before any delivery attempt."""
    campaign = Campaign(
        prospect_id=prospect.id,
        subject=subject,
        body=body,
        status='pending',
        follow_up_number=follow_up_number,
    )
    session.add(campaign)
    session.commit()
    return campaign


def deliver_campaign(context, prospect, campaign: Campaign, tag: str) -> Delivery:
    """Try to send a pending campaign and record the outcome on it."""
    session = context.session
    label = 'Follow-up' if campaign.follow_up_number else 'Outreach email'

    if not prospect.email:
        campaign.status = 'draft'
        log_activity(session, prospect.id, 'email_drafted',
                     f'{label} saved as draft (no email address): "{campaign.subject}"')
        session.commit()
        return Delivery(campaign, 'No email address')

    if not is_ready():
        campaign.status = 'draft'
        log_activity(session, prospect.id, 'email_drafted',
                     f'{label} saved as draft (email service not configured): "{campaign.subject}"')
        session.commit()
        return Delivery(campaign, 'Email service not configured')

    try:
        response = send_email(
            prospect.email, campaign.subject, campaign.body,
            tags=[{'name': 'type', 'value': tag},
                  {'name': 'prospect_id', 'value': str(prospect.id)}],
        )
    except Exception as e:
        logger.error("Delivery of campaign %s raised: %s", campaign.id, e)
        campaign.status = 'failed'
        campaign.error = str(e)[:500]
        session.commit()
        return Delivery(campaign, str(e))

    if not response.get('success'):
        campaign.status = 'failed'
        campaign.error = str(response.get('error') or 'Unknown delivery error')[:500]
        session.commit()
        return Delivery(campaign, campaign.error)

    campaign.status = 'sent'
    campaign.sent_at = context.now
    campaign.message_id = response.get('id')
    log_activity(session, prospect.id, 'email_sent',
                 f'{label} sent to {prospect.email}: "{campaign.subject}"')
    session.commit()
    return Delivery(campaign)
