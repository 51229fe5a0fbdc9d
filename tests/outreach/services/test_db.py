"""Tests for outreach.services.db — config store, settings, automation toggle."""
import pytest

from outreach.models.activity import Activity
from outreach.models.agent_config import AgentConfigEntry
from outreach.services.db import (
    get_config, set_config, get_all_config, parse_follow_up_days,
    AgentSettings, load_settings, set_prospect_automation, get_sequence_dict,
)


class TestConfigStore:

    def test_falls_back_to_defaults(self):
        assert get_config('follow_up_days') == '3,7,14'
        assert get_config('missing', 'fallback') == 'fallback'

    def test_set_then_get(self, db_session):
        set_config('llm_provider', 'anthropic')
        assert get_config('llm_provider') == 'anthropic'
        assert db_session.get(AgentConfigEntry, 'llm_provider').value == 'anthropic'

    def test_set_overwrites_and_stringifies(self):
        set_config('auto_outreach', True)
        set_config('auto_outreach', False)
        assert get_config('auto_outreach') == 'False'

    def test_get_all_overlays_stored_values(self):
        set_config('follow_up_days', '2,4')
        config = get_all_config()
        assert config['follow_up_days'] == '2,4'
        assert config['auto_classify'] == 'true'


class TestSettings:

    @pytest.mark.parametrize('raw,expected', [
        ('3,7,14', [3, 7, 14]),
        (' 2 , 5 ', [2, 5]),
        ('1,,x,4', [1, 4]),
        ('', []),
        (None, []),
    ])
    def test_parse_follow_up_days(self, raw, expected):
        assert parse_follow_up_days(raw) == expected

    def test_max_follow_ups_tracks_schedule(self):
        settings = AgentSettings(follow_up_days=[2, 4, 8, 16])
        assert settings.max_follow_ups == 4
        assert settings.schedule == '2,4,8,16'

    def test_from_config(self):
        settings = AgentSettings.from_config({
            'follow_up_days': '5',
            'auto_outreach': 'false',
            'auto_classify': 'TRUE',
            'llm_provider': 'anthropic',
        })
        assert settings.follow_up_days == [5]
        assert settings.auto_outreach is False
        assert settings.auto_classify is True
        assert settings.llm_provider == 'anthropic'

    def test_unparseable_schedule_uses_default(self):
        assert AgentSettings.from_config({'follow_up_days': 'soon'}).follow_up_days == [3, 7, 14]

    def test_load_settings_reads_store(self):
        set_config('auto_classify', 'false')
        assert load_settings().auto_classify is False


class TestProspectAutomation:

    def test_disable_pauses_sequence(self, db_session, make_prospect, make_sequence):
        prospect = make_prospect(stage='contacted')
        make_sequence(prospect)
        result = set_prospect_automation(prospect.id, False)

        assert result['automation_enabled'] is False
        assert get_sequence_dict(prospect.id)['is_paused'] is True
        activity = db_session.query(Activity).filter_by(type='automation_toggled').one()
        assert activity.description == 'Automation disabled'

    def test_enable_resumes_sequence(self, make_prospect, make_sequence):
        prospect = make_prospect(stage='contacted', automation_enabled=False)
        make_sequence(prospect, is_paused=True)
        set_prospect_automation(prospect.id, True)
        assert get_sequence_dict(prospect.id)['is_paused'] is False

    def test_unknown_prospect(self):
        assert set_prospect_automation(999, True) is None
        assert get_sequence_dict(999) is None
