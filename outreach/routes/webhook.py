"""
Webhook routes — inbound email replies.

Accepts the inbound-parse form post (from, subject, text) or the same fields
as JSON.
"""
import logging

from flask import Blueprint, request, jsonify

from outreach.services.inbound import ingest_reply

logger = logging.getLogger('routes.webhook')

bp = Blueprint('webhook', __name__)


@bp.route('/webhook/inbound', methods=['POST'])
def inbound_reply():
    data = request.get_json(silent=True) or request.form
    sender = data.get('from', '')
    if not sender:
        return jsonify({'error': 'Missing sender'}), 400

    try:
        result = ingest_reply(sender, data.get('subject', ''), data.get('text', ''))
    except Exception as e:
        logger.error("Inbound webhook failed: %s", e)
        return jsonify({'error': 'Failed to process reply'}), 500

    if result is None:
        return jsonify({'status': 'ignored', 'reason': 'Unknown sender'}), 200
    return jsonify({'status': 'queued', **result}), 200
