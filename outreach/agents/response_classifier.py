"""
ResponseClassifier agent — interprets an inbound reply and routes the outcome.

The label comes from the LLM service; this module only decides what each
label does to the prospect:

  INTERESTED      → responded, notify, queue a stage re-evaluation
  MEETING_REQUEST → meeting_scheduled, automation off, sequence paused
  NOT_INTERESTED  → lost, notify
  QUESTION        → responded, notify, sequence paused
  OUT_OF_OFFICE   → sequence resumed, next send pushed out
  UNCLEAR         → human review, sequence paused
"""
import logging
from datetime import timedelta

from outreach.agents.base import Agent, AgentContext, AgentResult, ClassifierPayload, load_prospect
from outreach.agents.stage_manager import StageMachine, get_sequence, pause_sequence
from outreach.config import OUT_OF_OFFICE_DELAY_DAYS
from outreach.models.campaign import Campaign
from outreach.services.db import log_activity
from outreach.services.llm import classify_response
from outreach.services import notifications

logger = logging.getLogger('agents.response_classifier')


class ResponseClassifierAgent(Agent):
    agent_type = 'response_classifier'
    payload_type = ClassifierPayload
    description = 'Classifies replies and updates stage, notifications, and cadence'

    def execute(self, prospect_id, payload: ClassifierPayload, context: AgentContext) -> AgentResult:
        session = context.session
        prospect = load_prospect(context, prospect_id)

        if not context.settings.auto_classify:
            log_activity(session, prospect.id, 'response_pending_review',
                         f'Reply awaiting manual review: {payload.response_text[:1000]}')
            session.commit()
            return AgentResult.success('Auto classification disabled',
                                       classification='PENDING_REVIEW')

        history = [c.body for c in (session.query(Campaign)
                                    .filter_by(prospect_id=prospect.id, status='sent')
                                    .order_by(Campaign.id)
                                    .all())]
        result = classify_response(payload.response_text, prospect, history,
                                   provider=context.settings.llm_provider)
        label = result['classification']

        log_activity(session, prospect.id, 'response_classified',
                     f"Reply classified {label} ({result['confidence']:.0%}): {result['summary']}")

        actions = self.handle(label, prospect, result, context)
        session.commit()

        logger.info("Prospect %s reply classified %s (%.2f)", prospect.id, label, result['confidence'])
        return AgentResult.success(f'Reply classified {label}', actions=actions, **result)

    def handle(self, label, prospect, result, context):
        """Apply the effects for one label. Returns a list of action names."""
        session = context.session
        machine = StageMachine(context)
        summary = result.get('summary', '')
        actions = []

        if label == 'INTERESTED':
            if machine.apply_classification(prospect, label).ok:
                actions.append('stage_changed')
            notifications.notify_interested(session, prospect, summary)
            from outreach.agents.orchestrator import enqueue
            enqueue('stage_manager', prospect.id,
                    {'classification': {'classification': label, 'summary': summary}},
                    session=session)
            actions += ['notified', 'stage_manager_queued']

        elif label == 'MEETING_REQUEST':
            if machine.apply_classification(prospect, label).ok:
                actions.append('stage_changed')
            else:
                notifications.notify_meeting_request(session, prospect, summary)
                actions.append('notified')
            prospect.automation_enabled = False
            pause_sequence(session, prospect.id)
            actions += ['automation_disabled', 'sequence_paused']

        elif label == 'NOT_INTERESTED':
            if machine.apply_classification(prospect, label).ok:
                actions.append('stage_changed')
            prospect.automation_enabled = False
            pause_sequence(session, prospect.id)
            notifications.notify_not_interested(session, prospect, summary)
            actions += ['automation_disabled', 'sequence_paused', 'notified']

        elif label == 'QUESTION':
            if machine.apply_classification(prospect, label).ok:
                actions.append('stage_changed')
            pause_sequence(session, prospect.id)
            notifications.notify_question(session, prospect, summary)
            actions += ['sequence_paused', 'notified']

        elif label == 'OUT_OF_OFFICE':
            sequence = get_sequence(session, prospect.id)
            if sequence is not None:
                sequence.is_paused = False
                sequence.next_send_at = context.now + timedelta(days=OUT_OF_OFFICE_DELAY_DAYS)
                actions.append('sequence_rescheduled')
            log_activity(session, prospect.id, 'auto_reply_detected',
                         f'Out-of-office reply, follow-ups resume in {OUT_OF_OFFICE_DELAY_DAYS} days')

        else:
            notifications.notify_review_needed(session, prospect, summary)
            pause_sequence(session, prospect.id)
            actions += ['notified', 'sequence_paused']

        return actions
