"""Tests for outreach.agents.stage_manager — transition table, side effects, agent."""
from datetime import timedelta

import pytest

from outreach.agents.base import StageManagerPayload
from outreach.agents.stage_manager import (
    StageMachine, StageManagerAgent, VALID_TRANSITIONS, STAGE_ORDER, seed_sequence,
)
from outreach.models.activity import Activity
from outreach.models.campaign import Campaign
from outreach.models.follow_up import FollowUpSequence
from outreach.models.notification import Notification
from tests.conftest import NOW


ALL_PAIRS = [(a, b) for a in STAGE_ORDER for b in STAGE_ORDER]


class TestTransitionTable:

    @pytest.mark.parametrize('current,target', ALL_PAIRS)
    def test_succeeds_iff_target_is_allowed(self, db_session, make_prospect, make_context,
                                            current, target):
        prospect = make_prospect(stage=current)
        result = StageMachine(make_context()).transition_to(prospect, target)
        allowed = target in VALID_TRANSITIONS[current]
        assert result.ok is allowed
        assert prospect.stage == (target if allowed else current)

    def test_won_to_contacted_rejected(self, db_session, make_prospect, make_context):
        prospect = make_prospect(stage='won')
        result = StageMachine(make_context()).transition_to(prospect, 'contacted')
        db_session.commit()
        db_session.expire_all()
        assert result.status == 'rejected'
        assert result.message == 'Invalid transition from "won" to "contacted"'
        assert prospect.stage == 'won'

    def test_unknown_target_rejected(self, make_prospect, make_context):
        prospect = make_prospect()
        assert StageMachine(make_context()).transition_to(prospect, 'archived').status == 'rejected'

    def test_logs_stage_change_activity(self, db_session, make_prospect, make_context):
        prospect = make_prospect()
        StageMachine(make_context()).transition_to(prospect, 'lost', 'Bad fit')
        db_session.commit()
        activity = db_session.query(Activity).filter_by(prospect_id=prospect.id).one()
        assert activity.type == 'stage_change'
        assert 'new to lost: Bad fit' in activity.description


class TestSideEffects:

    def test_contacted_seeds_sequence(self, db_session, make_prospect, make_context):
        prospect = make_prospect()
        StageMachine(make_context(follow_up_days=[2, 5])).transition_to(prospect, 'contacted')
        db_session.commit()
        sequence = db_session.query(FollowUpSequence).filter_by(prospect_id=prospect.id).one()
        assert sequence.sequence_step == 0
        assert sequence.max_steps == 2
        assert sequence.days_between == '2,5'
        assert sequence.next_send_at == NOW + timedelta(days=2)
        assert sequence.is_paused is False

    def test_contacted_keeps_existing_sequence(self, db_session, make_prospect, make_sequence, make_context):
        prospect = make_prospect()
        make_sequence(prospect, sequence_step=2)
        StageMachine(make_context()).transition_to(prospect, 'contacted')
        db_session.commit()
        assert db_session.query(FollowUpSequence).filter_by(prospect_id=prospect.id).one().sequence_step == 2

    def test_responded_pauses_sequence(self, db_session, make_prospect, make_sequence, make_context):
        prospect = make_prospect(stage='contacted')
        sequence = make_sequence(prospect)
        StageMachine(make_context()).transition_to(prospect, 'responded')
        db_session.commit()
        assert sequence.is_paused is True

    def test_meeting_scheduled_notifies_and_disables_automation(self, db_session, make_prospect, make_context):
        prospect = make_prospect(stage='responded')
        StageMachine(make_context()).transition_to(prospect, 'meeting_scheduled')
        db_session.commit()
        notification = db_session.query(Notification).one()
        assert notification.priority == 'high'
        assert notification.type == 'meeting_scheduled'
        assert notification.title == 'Meeting scheduled with Dana Reyes'
        assert notification.action_url == f'/prospect/{prospect.id}'
        assert prospect.automation_enabled is False

    def test_won_creates_notification(self, db_session, make_prospect, make_context):
        prospect = make_prospect(stage='proposal_sent')
        StageMachine(make_context()).transition_to(prospect, 'won')
        db_session.commit()
        assert db_session.query(Notification).one().type == 'deal_won'

    def test_lost_disables_and_pauses(self, db_session, make_prospect, make_sequence, make_context):
        prospect = make_prospect(stage='contacted')
        sequence = make_sequence(prospect)
        StageMachine(make_context()).transition_to(prospect, 'lost')
        db_session.commit()
        assert prospect.automation_enabled is False
        assert sequence.is_paused is True

    def test_rejected_transition_has_no_side_effects(self, db_session, make_prospect, make_context):
        prospect = make_prospect(stage='new')
        StageMachine(make_context()).transition_to(prospect, 'meeting_scheduled')
        db_session.commit()
        assert db_session.query(Notification).count() == 0
        assert prospect.automation_enabled is True


class TestAdvance:

    def test_steps_through_intermediate_stages(self, db_session, make_prospect, make_context):
        prospect = make_prospect(stage='contacted')
        result = StageMachine(make_context()).advance_to(prospect, 'meeting_scheduled')
        db_session.commit()
        assert result.ok
        assert prospect.stage == 'meeting_scheduled'
        changes = db_session.query(Activity).filter_by(type='stage_change').count()
        assert changes == 2

    def test_backward_move_is_noop(self, make_prospect, make_context):
        prospect = make_prospect(stage='meeting_scheduled')
        result = StageMachine(make_context()).advance_to(prospect, 'responded')
        assert result.status == 'rejected'
        assert prospect.stage == 'meeting_scheduled'

    def test_same_stage_is_noop(self, make_prospect, make_context):
        prospect = make_prospect(stage='responded')
        assert StageMachine(make_context()).advance_to(prospect, 'responded').status == 'rejected'

    def test_lost_prospect_not_revived_by_classification(self, make_prospect, make_context):
        prospect = make_prospect(stage='lost')
        result = StageMachine(make_context()).apply_classification(prospect, 'INTERESTED')
        assert result.status == 'rejected'
        assert prospect.stage == 'lost'

    def test_not_interested_goes_to_lost(self, make_prospect, make_context):
        prospect = make_prospect(stage='responded')
        assert StageMachine(make_context()).apply_classification(prospect, 'NOT_INTERESTED').ok
        assert prospect.stage == 'lost'

    def test_unmapped_classification_rejected(self, make_prospect, make_context):
        prospect = make_prospect(stage='contacted')
        assert StageMachine(make_context()).apply_classification(prospect, 'OUT_OF_OFFICE').status == 'rejected'


class TestSeedSequence:

    def test_reset_restarts_existing_sequence(self, db_session, make_prospect, make_sequence, make_context):
        prospect = make_prospect()
        make_sequence(prospect, sequence_step=2, is_paused=True)
        context = make_context()
        sequence = seed_sequence(db_session, prospect.id, context.settings, NOW, reset=True)
        assert sequence.sequence_step == 0
        assert sequence.is_paused is False
        assert sequence.last_sent_at == NOW


class TestStageManagerAgent:

    def test_suggested_stage(self, make_prospect, make_context):
        prospect = make_prospect(stage='contacted')
        result = StageManagerAgent().execute(
            prospect.id, StageManagerPayload(suggested_stage='responded'), make_context())
        assert result.ok
        assert result.data['new_stage'] == 'responded'

    def test_invalid_suggested_stage_is_rejected_not_raised(self, make_prospect, make_context):
        prospect = make_prospect(stage='won')
        result = StageManagerAgent().execute(
            prospect.id, StageManagerPayload(suggested_stage='new'), make_context())
        assert result.status == 'rejected'
        assert prospect.stage == 'won'

    def test_classification_payload(self, make_prospect, make_context):
        prospect = make_prospect(stage='contacted')
        payload = StageManagerPayload.from_dict({'classification': 'question'})
        StageManagerAgent().execute(prospect.id, payload, make_context())
        assert prospect.stage == 'responded'

    def test_evaluate_moves_new_with_sent_campaign(self, db_session, make_prospect, make_context):
        prospect = make_prospect()
        db_session.add(Campaign(prospect_id=prospect.id, subject='Hi', body='...', status='sent'))
        db_session.commit()
        result = StageManagerAgent().execute(prospect.id, StageManagerPayload(), make_context())
        assert result.ok
        assert prospect.stage == 'contacted'

    def test_evaluate_without_change(self, make_prospect, make_context):
        prospect = make_prospect(stage='responded')
        result = StageManagerAgent().execute(prospect.id, StageManagerPayload(), make_context())
        assert result.message == 'No stage change needed'
