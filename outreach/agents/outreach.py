"""
Outreach agent — first contact with a new prospect.

Guards against duplicate contact: any existing campaign means this prospect
has already been handled, so the agent skips.
"""
import logging

from outreach.agents.base import Agent, AgentContext, AgentResult, OutreachPayload, load_prospect
from outreach.agents.delivery import create_campaign, deliver_campaign
from outreach.agents.stage_manager import StageMachine, seed_sequence
from outreach.models.campaign import Campaign
from outreach.services.db import log_activity
from outreach.services.llm import generate_outreach_email, generate_subject_line

logger = logging.getLogger('agents.outreach')


class OutreachAgent(Agent):
    agent_type = 'outreach'
    payload_type = OutreachPayload
    description = 'Writes and sends the first outreach email'

    def execute(self, prospect_id, payload: OutreachPayload, context: AgentContext) -> AgentResult:
        session = context.session
        prospect = load_prospect(context, prospect_id)

        if not prospect.automation_enabled:
            return AgentResult.skipped('Automation disabled for prospect')
        if not context.settings.auto_outreach:
            return AgentResult.skipped('Auto outreach disabled')
        if session.query(Campaign).filter_by(prospect_id=prospect.id).count():
            return AgentResult.skipped('Prospect already has a campaign')

        provider = context.settings.llm_provider
        body = generate_outreach_email(prospect, provider=provider)
        subject = generate_subject_line(prospect, body, provider=provider)

        campaign = create_campaign(session, prospect, subject, body)
        log_activity(session, prospect.id, 'agent_action',
                     f'Outreach agent generated email: "{subject}"')

        delivery = deliver_campaign(context, prospect, campaign, tag='outreach')

        if delivery.sent:
            if prospect.stage == 'new':
                StageMachine(context).transition_to(prospect, 'contacted', 'Outreach email sent')
            seed_sequence(session, prospect.id, context.settings, context.now, reset=True)
            session.commit()

        logger.info("Outreach for prospect %s: campaign %s %s",
                    prospect.id, campaign.id, campaign.status)
        return AgentResult.success(
            'Outreach email sent' if delivery.sent else f'Outreach email {campaign.status}',
            campaign_id=campaign.id,
            subject=subject,
            sent=delivery.sent,
            campaign_status=campaign.status,
            error=delivery.error,
        )
