"""
Notification routes — list, unread count, read state, delete.
"""
from flask import Blueprint, request, jsonify

from outreach.services import notifications as sink

bp = Blueprint('notifications', __name__)


@bp.route('/api/notifications')
def list_notifications():
    unread_only = request.args.get('unread') == 'true'
    limit = request.args.get('limit', 50, type=int)
    return jsonify(sink.list_notifications(unread_only=unread_only, limit=limit))


@bp.route('/api/notifications/unread-count')
def unread_count():
    return jsonify({'count': sink.unread_count()})


@bp.route('/api/notifications/<int:notification_id>/read', methods=['PUT'])
def mark_read(notification_id):
    if not sink.mark_read(notification_id):
        return jsonify({'error': 'Notification not found'}), 404
    return jsonify({'ok': True})


@bp.route('/api/notifications/read-all', methods=['PUT'])
def mark_all_read():
    return jsonify({'ok': True, 'updated': sink.mark_all_read()})


@bp.route('/api/notifications/<int:notification_id>', methods=['DELETE'])
def delete_notification(notification_id):
    if not sink.delete_notification(notification_id):
        return jsonify({'error': 'Notification not found'}), 404
    return jsonify({'ok': True})
