"""
Agent routes — config, queue stats, manual triggers, prospect automation.
"""
import logging

from flask import Blueprint, request, jsonify

from outreach.agents.base import AgentContext
from outreach.agents.orchestrator import get_stats, get_tasks_by_status
from outreach.agents.stage_manager import StageMachine
from outreach.config import TASK_STATUSES, LLM_PROVIDERS
from outreach.database import get_session, utcnow
from outreach.models.prospect import Prospect
from outreach.scheduler import trigger_agent, process_now
from outreach.services.db import (
    get_all_config, set_config, load_settings, set_prospect_automation, get_sequence_dict,
)
from outreach.services.llm import get_token_usage

logger = logging.getLogger('routes.agents')

bp = Blueprint('agents', __name__)

# URL name → agent type
TRIGGERS = {
    'outreach': 'outreach',
    'followup': 'followup',
    'classify': 'response_classifier',
}


def _validate_config(key, value):
    if key == 'llm_provider' and value not in LLM_PROVIDERS:
        return f"llm_provider must be one of {LLM_PROVIDERS}"
    if key in ('auto_outreach', 'auto_classify') and str(value).lower() not in ('true', 'false'):
        return f"{key} must be 'true' or 'false'"
    return None


# ── Config ───────────────────────────────────────────────────────────────────

@bp.route('/api/agents/config')
def get_config_route():
    return jsonify(get_all_config())


@bp.route('/api/agents/config', methods=['PUT'])
def put_config():
    data = request.json or {}
    key, value = data.get('key'), data.get('value')
    if not key or value is None:
        return jsonify({'error': 'key and value are required'}), 400
    error = _validate_config(key, value)
    if error:
        return jsonify({'error': error}), 400
    set_config(key, value)
    return jsonify({'ok': True, 'key': key, 'value': str(value)})


@bp.route('/api/agents/config/bulk', methods=['PUT'])
def put_config_bulk():
    data = request.json or {}
    if not isinstance(data, dict) or not data:
        return jsonify({'error': 'Expected an object of key/value pairs'}), 400
    for key, value in data.items():
        error = _validate_config(key, value)
        if error:
            return jsonify({'error': error}), 400
    for key, value in data.items():
        set_config(key, value)
    return jsonify({'ok': True, 'config': get_all_config()})


# ── Queue ────────────────────────────────────────────────────────────────────

@bp.route('/api/agents/stats')
def stats():
    data = get_stats()
    data['token_usage'] = get_token_usage()
    return jsonify(data)


@bp.route('/api/agents/tasks/<status>')
def tasks_by_status(status):
    if status not in TASK_STATUSES:
        return jsonify({'error': f'Invalid status: {status}'}), 400
    limit = request.args.get('limit', 50, type=int)
    return jsonify(get_tasks_by_status(status, limit=limit))


@bp.route('/api/agents/trigger/<name>/<int:prospect_id>', methods=['POST'])
def trigger(name, prospect_id):
    agent_type = TRIGGERS.get(name)
    if agent_type is None:
        return jsonify({'error': f'Unknown trigger: {name}'}), 400

    data = request.get_json(silent=True) or {}
    payload = {}
    if agent_type == 'response_classifier':
        payload = {'response_text': data.get('response_text', ''), 'subject': data.get('subject', '')}
        if not payload['response_text']:
            return jsonify({'error': 'response_text is required'}), 400
    elif agent_type == 'followup':
        payload = {'force': True}

    try:
        result = trigger_agent(agent_type, prospect_id, payload)
    except Exception as e:
        logger.error("Manual %s trigger failed for prospect %s: %s", name, prospect_id, e)
        return jsonify({'error': str(e)}), 500
    return jsonify({'ok': True, **result}), 202


@bp.route('/api/agents/process', methods=['POST'])
def process():
    return jsonify({'ok': True, 'processed': process_now()})


# ── Prospects ────────────────────────────────────────────────────────────────

@bp.route('/api/agents/prospects/<int:prospect_id>/automation', methods=['PUT'])
def toggle_automation(prospect_id):
    data = request.json or {}
    if 'enabled' not in data:
        return jsonify({'error': 'enabled is required'}), 400
    prospect = set_prospect_automation(prospect_id, bool(data['enabled']))
    if prospect is None:
        return jsonify({'error': 'Prospect not found'}), 404
    return jsonify(prospect)


@bp.route('/api/agents/prospects/<int:prospect_id>/sequence')
def sequence(prospect_id):
    data = get_sequence_dict(prospect_id)
    if data is None:
        return jsonify({'error': 'No follow-up sequence'}), 404
    return jsonify(data)


@bp.route('/api/agents/prospects/<int:prospect_id>/stage', methods=['POST'])
def change_stage(prospect_id):
    """Manual stage change (also the only way to revive a lost prospect)."""
    data = request.json or {}
    target = data.get('stage')
    if not target:
        return jsonify({'error': 'stage is required'}), 400

    session = get_session()
    try:
        prospect = session.get(Prospect, prospect_id)
        if prospect is None:
            return jsonify({'error': 'Prospect not found'}), 404
        context = AgentContext(session=session, settings=load_settings(session), now=utcnow())
        result = StageMachine(context).transition_to(prospect, target, data.get('reason', 'Manual change'))
        if not result.ok:
            session.rollback()
            return jsonify(result.to_dict()), 409
        if target == 'new':
            prospect.automation_enabled = True
        session.commit()
        return jsonify(result.to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Stage change failed for prospect %s: %s", prospect_id, e)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()
