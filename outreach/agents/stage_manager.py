"""
Stage state machine + StageManager agent.

Stages:
  new → contacted → responded → meeting_scheduled → proposal_sent → won
  any non-terminal stage → lost;  lost → new (manual revival only)

StageMachine.transition_to() is the only place a prospect's stage changes.
Entering a stage applies its side effects in the same session so they commit
together with the stage write. Invalid requests come back as a rejected
AgentResult, never an exception.
"""
import logging
from datetime import timedelta
from typing import Optional

from outreach.agents.base import (
    Agent, AgentContext, AgentResult, StageManagerPayload, load_prospect,
)
from outreach.config import PIPELINE_STAGES
from outreach.models.campaign import Campaign
from outreach.models.follow_up import FollowUpSequence
from outreach.services.db import log_activity
from outreach.services.notifications import create_notification

logger = logging.getLogger('agents.stage_manager')

STAGE_ORDER = list(PIPELINE_STAGES)

VALID_TRANSITIONS = {
    'new': ['contacted', 'lost'],
    'contacted': ['responded', 'lost'],
    'responded': ['meeting_scheduled', 'lost'],
    'meeting_scheduled': ['proposal_sent', 'won', 'lost'],
    'proposal_sent': ['won', 'lost'],
    'won': [],
    'lost': ['new'],
}

CLASSIFICATION_STAGES = {
    'INTERESTED': 'responded',
    'QUESTION': 'responded',
    'MEETING_REQUEST': 'meeting_scheduled',
    'NOT_INTERESTED': 'lost',
}


def is_valid_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


# ── Sequence helpers ─────────────────────────────────────────────────────────

def get_sequence(session, prospect_id) -> Optional[FollowUpSequence]:
    return session.query(FollowUpSequence).filter_by(prospect_id=prospect_id).first()


def seed_sequence(session, prospect_id, settings, now, reset=False) -> FollowUpSequence:
    """
    Create the prospect's follow-up sequence from the configured schedule.

    With reset=True an existing sequence is restarted at step 0 with
    last_sent_at=now (the initial email just went out).
    """
    sequence = get_sequence(session, prospect_id)
    if sequence is not None and not reset:
        return sequence
    if sequence is None:
        sequence = FollowUpSequence(prospect_id=prospect_id)
        session.add(sequence)
    sequence.sequence_step = 0
    sequence.max_steps = settings.max_follow_ups
    sequence.days_between = settings.schedule
    sequence.is_paused = False
    sequence.next_send_at = now + timedelta(days=settings.follow_up_days[0])
    if reset:
        sequence.last_sent_at = now
    return sequence


def pause_sequence(session, prospect_id) -> bool:
    sequence = get_sequence(session, prospect_id)
    if sequence is None:
        return False
    sequence.is_paused = True
    return True


# ── State machine ────────────────────────────────────────────────────────────

class StageMachine:
    """Validates stage changes and applies stage-entry side effects."""

    def __init__(self, context: AgentContext):
        self.context = context
        self.session = context.session

    def transition_to(self, prospect, target: str, reason: str = '') -> AgentResult:
        current = prospect.stage
        if target not in VALID_TRANSITIONS or not is_valid_transition(current, target):
            return AgentResult.rejected(
                f'Invalid transition from "{current}" to "{target}"',
                previous_stage=current, requested_stage=target,
            )

        prospect.stage = target
        prospect.updated_at = self.context.now
        description = f"Stage changed from {current} to {target}"
        if reason:
            description += f": {reason}"
        log_activity(self.session, prospect.id, 'stage_change', description)
        self._on_enter(prospect, target)

        logger.info("Prospect %s: %s → %s", prospect.id, current, target)
        return AgentResult.success(
            f'Moved from "{current}" to "{target}"',
            previous_stage=current, new_stage=target,
        )

    def advance_to(self, prospect, target: str, reason: str = '') -> AgentResult:
        """
        Move forward to target, stepping through intermediate stages.

        Backward and same-stage targets are a no-op rejection. lost is always
        a single direct transition.
        """
        if target == 'lost' or target not in STAGE_ORDER:
            return self.transition_to(prospect, target, reason)

        current = prospect.stage
        if current == 'lost' or STAGE_ORDER.index(target) <= STAGE_ORDER.index(current):
            return AgentResult.rejected(
                f'Stage "{current}" is not behind "{target}", not moving backward',
                previous_stage=current, requested_stage=target,
            )

        path = self._forward_path(current, target)
        if path is None:
            return AgentResult.rejected(
                f'No forward path from "{current}" to "{target}"',
                previous_stage=current, requested_stage=target,
            )

        for stage in path:
            result = self.transition_to(prospect, stage, reason)
            if not result.ok:
                return result
        return AgentResult.success(
            f'Moved from "{current}" to "{target}"',
            previous_stage=current, new_stage=target,
        )

    @staticmethod
    def _forward_path(current, target):
        path = []
        stage = current
        while stage != target:
            forward = [s for s in VALID_TRANSITIONS[stage]
                       if s != 'lost' and STAGE_ORDER.index(s) <= STAGE_ORDER.index(target)]
            if not forward:
                return None
            # Furthest valid step that does not overshoot the target
            stage = max(forward, key=STAGE_ORDER.index)
            path.append(stage)
        return path

    def apply_classification(self, prospect, classification: str, reason: str = '') -> AgentResult:
        target = CLASSIFICATION_STAGES.get(classification)
        if target is None:
            return AgentResult.rejected(f"No stage mapped for classification {classification}")
        return self.advance_to(prospect, target, reason or f"Reply classified {classification}")

    # ── Side effects ──────────────────────────────────────────────────

    def _on_enter(self, prospect, stage):
        session = self.session
        if stage == 'contacted':
            seed_sequence(session, prospect.id, self.context.settings, self.context.now)
        elif stage == 'responded':
            pause_sequence(session, prospect.id)
        elif stage == 'meeting_scheduled':
            create_notification(
                session, 'meeting_scheduled',
                f"Meeting scheduled with {prospect.display_name}",
                'Automation is off for this prospect. Follow up personally.',
                prospect_id=prospect.id, priority='high',
            )
            prospect.automation_enabled = False
        elif stage == 'won':
            create_notification(
                session, 'deal_won',
                f"Deal won: {prospect.business_name}",
                'Congratulations!',
                prospect_id=prospect.id,
            )
        elif stage == 'lost':
            prospect.automation_enabled = False
            pause_sequence(session, prospect.id)


# ── Agent ────────────────────────────────────────────────────────────────────

class StageManagerAgent(Agent):
    """Applies suggested stages, classification outcomes, or re-evaluates a prospect."""
    agent_type = 'stage_manager'
    payload_type = StageManagerPayload
    description = 'Moves prospects between pipeline stages'

    def execute(self, prospect_id, payload: StageManagerPayload, context: AgentContext) -> AgentResult:
        prospect = load_prospect(context, prospect_id)
        machine = StageMachine(context)

        if payload.suggested_stage:
            result = machine.transition_to(prospect, payload.suggested_stage, payload.reason)
        elif payload.classification:
            label = str(payload.classification.get('classification', '')).upper()
            result = machine.apply_classification(prospect, label, payload.reason)
        else:
            result = self.evaluate(prospect, machine, context)

        context.session.commit()
        return result

    def evaluate(self, prospect, machine, context) -> AgentResult:
        if prospect.stage == 'new':
            sent = (context.session.query(Campaign)
                    .filter_by(prospect_id=prospect.id, status='sent')
                    .count())
            if sent:
                return machine.transition_to(prospect, 'contacted', 'Outreach email already sent')
        return AgentResult.success('No stage change needed', stage=prospect.stage)
