"""Tests for outreach.scheduler — jobs, manual triggers, scheduler wiring."""
from datetime import timedelta
from unittest.mock import patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from outreach import scheduler as sched_module
from outreach.models.notification import Notification
from outreach.models.task import AgentTask
from outreach.scheduler import (
    enqueue_due_follow_ups, trigger_agent, build_scheduler, get_status,
    cleanup_old_records, log_health_snapshot, process_agent_tasks,
)
from tests.conftest import NOW


class TestEnqueueDueFollowUps:

    def test_queues_one_task_per_due_sequence(self, db_session, make_prospect, make_sequence):
        due = make_sequence(make_prospect(stage='contacted'))
        make_sequence(make_prospect(stage='contacted'), next_send_at=NOW + timedelta(hours=1))

        assert enqueue_due_follow_ups(now=NOW) == 1
        task = db_session.query(AgentTask).one()
        assert task.agent_type == 'followup'
        assert task.prospect_id == due.prospect_id
        assert task.payload == {'sequence_id': due.id}

    def test_skips_prospect_with_task_in_flight(self, db_session, make_prospect, make_sequence):
        make_sequence(make_prospect(stage='contacted'))
        assert enqueue_due_follow_ups(now=NOW) == 1
        assert enqueue_due_follow_ups(now=NOW) == 0
        assert db_session.query(AgentTask).count() == 1

    def test_requeues_after_previous_task_finished(self, db_session, make_prospect, make_sequence):
        make_sequence(make_prospect(stage='contacted'))
        enqueue_due_follow_ups(now=NOW)
        db_session.query(AgentTask).one().status = 'completed'
        db_session.commit()
        assert enqueue_due_follow_ups(now=NOW) == 1

    @pytest.mark.parametrize('started_minutes_ago,queued', [(5, 0), (90, 1)])
    def test_processing_task_blocks_only_until_stale(self, db_session, make_prospect, make_sequence,
                                                     started_minutes_ago, queued):
        prospect = make_prospect(stage='contacted')
        make_sequence(prospect)
        db_session.add(AgentTask(agent_type='followup', prospect_id=prospect.id, payload={},
                                 status='processing', attempts=1,
                                 started_at=NOW - timedelta(minutes=started_minutes_ago)))
        db_session.commit()
        assert enqueue_due_follow_ups(now=NOW) == queued


class TestTriggerAgent:

    def test_queues_and_processes(self):
        with patch('outreach.scheduler.enqueue', return_value=17) as mock_enqueue, \
             patch('outreach.scheduler.process_pending_batch', return_value=1):
            result = trigger_agent('outreach', 5)
        assert result == {'task_id': 17, 'processed': 1}
        mock_enqueue.assert_called_once_with('outreach', 5, {})

    def test_unknown_agent_type(self, db_session):
        with pytest.raises(ValueError, match='Unknown agent type'):
            trigger_agent('scraper', 5)
        assert db_session.query(AgentTask).count() == 0


class TestJobs:

    def test_process_tick_survives_errors(self):
        with patch('outreach.scheduler.process_pending_batch', side_effect=RuntimeError('db gone')):
            assert process_agent_tasks() == 0

    def test_cleanup_removes_old_rows(self, db_session):
        old = AgentTask(agent_type='outreach', status='completed', payload={},
                        created_at=NOW - timedelta(days=400), completed_at=NOW - timedelta(days=400))
        db_session.add(old)
        db_session.add(Notification(type='interested', title='Old', message='',
                                    created_at=NOW - timedelta(days=400)))
        db_session.commit()

        cleanup_old_records()

        db_session.expire_all()
        assert db_session.query(AgentTask).count() == 0
        assert db_session.query(Notification).count() == 0

    def test_health_snapshot_counts(self, db_session):
        db_session.add(AgentTask(agent_type='outreach', status='pending', payload={}))
        db_session.add(AgentTask(agent_type='outreach', status='failed', payload={}))
        db_session.commit()
        assert log_health_snapshot() == {'pending': 1, 'failed': 1}


class TestSchedulerWiring:

    def test_registers_jobs(self):
        sched = build_scheduler(BackgroundScheduler)
        jobs = {job.id: job for job in sched.get_jobs()}
        assert set(jobs) == {'process_agent_tasks', 'check_follow_ups',
                             'cleanup_old_records', 'health_snapshot'}
        assert isinstance(jobs['process_agent_tasks'].trigger, IntervalTrigger)
        assert jobs['process_agent_tasks'].trigger.interval == timedelta(minutes=1)
        assert jobs['check_follow_ups'].trigger.interval == timedelta(minutes=5)
        assert isinstance(jobs['cleanup_old_records'].trigger, CronTrigger)

    def test_status_when_not_started(self):
        with patch.object(sched_module, 'scheduler', None):
            assert get_status() == {'running': False, 'jobs': []}

    def test_status_lists_jobs(self):
        with patch.object(sched_module, 'scheduler', build_scheduler(BackgroundScheduler)):
            status = get_status()
        assert status['running'] is False
        assert len(status['jobs']) == 4
        assert {'id', 'name', 'next_run_time'} <= set(status['jobs'][0])
