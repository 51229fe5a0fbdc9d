"""
Database helpers — agent config store, settings snapshot, activity log,
per-prospect automation toggle.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from outreach.config import DEFAULT_AGENT_CONFIG
from outreach.database import get_session, utcnow
from outreach.models.activity import Activity
from outreach.models.agent_config import AgentConfigEntry
from outreach.models.follow_up import FollowUpSequence
from outreach.models.prospect import Prospect

logger = logging.getLogger('services.db')


# ── Config store ─────────────────────────────────────────────────────────────

def get_config(key: str, default: str = None, session=None) -> str:
    """Read one config value, falling back to DEFAULT_AGENT_CONFIG then default."""
    own_session = session is None
    if own_session:
        session = get_session()
    try:
        row = session.get(AgentConfigEntry, key)
        if row is not None:
            return row.value
        return DEFAULT_AGENT_CONFIG.get(key, default)
    finally:
        if own_session:
            session.close()


def set_config(key: str, value) -> None:
    """Upsert a config value. Values are stored as strings."""
    session = get_session()
    try:
        row = session.get(AgentConfigEntry, key)
        if row is None:
            session.add(AgentConfigEntry(key=key, value=str(value)))
        else:
            row.value = str(value)
            row.updated_at = utcnow()
        session.commit()
        logger.info("Config %s set to %r", key, str(value))
    except Exception:
        session.rollback()
        logger.error("Failed to set config %s", key, exc_info=True)
        raise
    finally:
        session.close()


def get_all_config(session=None) -> Dict[str, str]:
    """Defaults overlaid with every stored value."""
    own_session = session is None
    if own_session:
        session = get_session()
    try:
        config = dict(DEFAULT_AGENT_CONFIG)
        for row in session.query(AgentConfigEntry).all():
            config[row.key] = row.value
        return config
    finally:
        if own_session:
            session.close()


# ── Settings snapshot ────────────────────────────────────────────────────────

def parse_follow_up_days(raw) -> List[int]:
    """'3, 7,14' → [3, 7, 14]. Blank or non-numeric entries are dropped."""
    days = []
    for part in str(raw or '').split(','):
        part = part.strip()
        if part.isdigit():
            days.append(int(part))
    return days


def _as_bool(value) -> bool:
    return str(value).strip().lower() == 'true'


@dataclass(frozen=True)
class AgentSettings:
    """Immutable view of agent config, handed to every Agent.execute call."""
    follow_up_days: List[int] = field(default_factory=lambda: [3, 7, 14])
    auto_outreach: bool = True
    auto_classify: bool = True
    llm_provider: str = 'openai'

    @property
    def max_follow_ups(self) -> int:
        return len(self.follow_up_days)

    @property
    def schedule(self) -> str:
        return ','.join(str(d) for d in self.follow_up_days)

    @classmethod
    def from_config(cls, config: Dict[str, str]) -> 'AgentSettings':
        days = parse_follow_up_days(config.get('follow_up_days'))
        if not days:
            days = parse_follow_up_days(DEFAULT_AGENT_CONFIG['follow_up_days'])
        return cls(
            follow_up_days=days,
            auto_outreach=_as_bool(config.get('auto_outreach', 'true')),
            auto_classify=_as_bool(config.get('auto_classify', 'true')),
            llm_provider=config.get('llm_provider') or 'openai',
        )


def load_settings(session=None) -> AgentSettings:
    return AgentSettings.from_config(get_all_config(session=session))


# ── Activity log ─────────────────────────────────────────────────────────────

def log_activity(session, prospect_id: int, activity_type: str, description: str = '') -> Activity:
    """Append an activity row to the caller's transaction (no commit)."""
    activity = Activity(prospect_id=prospect_id, type=activity_type, description=description)
    session.add(activity)
    return activity


# ── Prospect automation ──────────────────────────────────────────────────────

def set_prospect_automation(prospect_id: int, enabled: bool):
    """
    Toggle automation for one prospect.

    Disabling pauses the follow-up sequence; enabling is the explicit
    re-enable that resumes it. Returns the updated prospect dict or None.
    """
    session = get_session()
    try:
        prospect = session.get(Prospect, prospect_id)
        if prospect is None:
            return None
        prospect.automation_enabled = bool(enabled)
        sequence = session.query(FollowUpSequence).filter_by(prospect_id=prospect_id).first()
        if sequence is not None:
            sequence.is_paused = not enabled
        log_activity(session, prospect_id, 'automation_toggled',
                     f"Automation {'enabled' if enabled else 'disabled'}")
        session.commit()
        return prospect.to_dict()
    except Exception:
        session.rollback()
        logger.error("Failed to toggle automation for prospect %s", prospect_id, exc_info=True)
        raise
    finally:
        session.close()


def get_sequence_dict(prospect_id: int):
    """The prospect's follow-up sequence as a dict, or None."""
    session = get_session()
    try:
        sequence = session.query(FollowUpSequence).filter_by(prospect_id=prospect_id).first()
        return sequence.to_dict() if sequence else None
    finally:
        session.close()
