"""
FollowUp agent — next reminder in a prospect's sequence.

The scheduler's follow-up scan (find_due_follow_ups) is the only thing that
enqueues these tasks; the agent re-checks every guard when it runs because
the prospect may have replied or been paused since.
"""
import logging
from datetime import timedelta
from typing import List

from outreach.agents.base import Agent, AgentContext, AgentResult, FollowUpPayload, load_prospect
from outreach.agents.delivery import create_campaign, deliver_campaign
from outreach.agents.stage_manager import StageMachine, get_sequence
from outreach.config import DEFAULT_FOLLOW_UP_GAP_DAYS
from outreach.models.campaign import Campaign
from outreach.models.follow_up import FollowUpSequence
from outreach.models.prospect import Prospect
from outreach.services.db import log_activity
from outreach.services.llm import generate_follow_up, generate_subject_line

logger = logging.getLogger('agents.followup')


def next_gap_days(follow_up_days: List[int], step: int) -> int:
    """Offset for the given step, falling back to the last one."""
    if not follow_up_days:
        return DEFAULT_FOLLOW_UP_GAP_DAYS
    if step < len(follow_up_days):
        return follow_up_days[step]
    return follow_up_days[-1]


def find_due_follow_ups(session, now) -> List[FollowUpSequence]:
    """
    Unpaused sequences that are due, unfinished, and whose prospect is still contacted.

    Exhausted sequences (sequence_step >= max_steps) are not returned, so the
    scan never closes them out; FollowUpAgent moves them to lost only when a
    followup task reaches one, e.g. a forced manual trigger.
    """
    return (session.query(FollowUpSequence)
            .join(Prospect, Prospect.id == FollowUpSequence.prospect_id)
            .filter(FollowUpSequence.is_paused.is_(False))
            .filter(FollowUpSequence.next_send_at.isnot(None))
            .filter(FollowUpSequence.next_send_at <= now)
            .filter(FollowUpSequence.sequence_step < FollowUpSequence.max_steps)
            .filter(Prospect.automation_enabled.is_(True))
            .filter(Prospect.stage == 'contacted')
            .order_by(FollowUpSequence.next_send_at)
            .all())


class FollowUpAgent(Agent):
    agent_type = 'followup'
    payload_type = FollowUpPayload
    description = 'Sends the next follow-up email or gives up after the last one'

    def execute(self, prospect_id, payload: FollowUpPayload, context: AgentContext) -> AgentResult:
        session = context.session
        prospect = load_prospect(context, prospect_id)

        if not prospect.automation_enabled:
            return AgentResult.skipped('Automation disabled for prospect')
        if prospect.stage != 'contacted':
            return AgentResult.skipped(f'Prospect stage is {prospect.stage}, not contacted')

        sequence = get_sequence(session, prospect.id)
        if sequence is None:
            return AgentResult.skipped('No follow-up sequence')
        if sequence.is_paused:
            return AgentResult.skipped('Follow-up sequence paused')

        if sequence.sequence_step >= sequence.max_steps:
            reason = 'Max follow-ups reached with no response'
            result = StageMachine(context).transition_to(prospect, 'lost', reason)
            session.commit()
            return AgentResult.success(reason, completed=True, stage=prospect.stage,
                                       transition=result.to_dict())

        if (not payload.force and sequence.next_send_at is not None
                and sequence.next_send_at > context.now):
            return AgentResult.skipped('Follow-up not due yet')

        follow_up_number = sequence.sequence_step + 1
        previous = (session.query(Campaign)
                    .filter_by(prospect_id=prospect.id, status='sent')
                    .order_by(Campaign.id)
                    .all())
        provider = context.settings.llm_provider
        body = generate_follow_up(prospect, [c.body for c in previous], follow_up_number,
                                  provider=provider)
        subject = generate_subject_line(prospect, body, provider=provider)

        campaign = create_campaign(session, prospect, subject, body, follow_up_number)
        delivery = deliver_campaign(context, prospect, campaign, tag='followup')

        if delivery.sent:
            sequence.sequence_step = follow_up_number
            sequence.last_sent_at = context.now
            gap = next_gap_days(context.settings.follow_up_days, follow_up_number)
            sequence.next_send_at = context.now + timedelta(days=gap)
            session.commit()
        elif delivery.drafted:
            sequence.is_paused = True
            log_activity(session, prospect.id, 'follow_up_paused',
                         f'Follow-up #{follow_up_number} kept as draft: {delivery.error}')
            session.commit()

        logger.info("Follow-up #%d for prospect %s: campaign %s %s",
                    follow_up_number, prospect.id, campaign.id, campaign.status)
        return AgentResult.success(
            f'Follow-up #{follow_up_number} {campaign.status}',
            campaign_id=campaign.id,
            follow_up_number=follow_up_number,
            sent=delivery.sent,
            campaign_status=campaign.status,
            error=delivery.error,
        )
