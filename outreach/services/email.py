"""
Email delivery — Resend HTTP API.

send_email() returns a result dict for API-level rejections and lets network
errors raise; callers decide what a failed delivery means for their campaign.
"""
import logging
from typing import Dict, List, Any, Optional

import requests

from outreach.config import RESEND_API_KEY, RESEND_API_URL, RESEND_FROM_EMAIL
from outreach.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.email')


def is_ready() -> bool:
    """True when an API key is configured."""
    return bool(RESEND_API_KEY)


def _post(payload):
    return requests.post(
        f'{RESEND_API_URL}/emails',
        headers={'Authorization': f'Bearer {RESEND_API_KEY}'},
        json=payload,
        timeout=15,
    )


def send_email(to: str, subject: str, body: str,
               tags: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    """Send a plain-text email. Returns {'success', 'id'} or {'success': False, 'error'}."""
    if not is_ready():
        return {'success': False, 'error': 'Email service not configured'}

    payload = {
        'from': RESEND_FROM_EMAIL,
        'to': [to],
        'subject': subject,
        'text': body,
    }
    if tags:
        payload['tags'] = tags

    response = get_breaker('resend').call(_post, payload)
    if response.status_code >= 400:
        try:
            error = response.json().get('message') or response.text
        except ValueError:
            error = response.text
        logger.warning("Resend rejected email to %s (%s): %s", to, response.status_code, error)
        return {'success': False, 'error': error}

    message_id = response.json().get('id')
    logger.info("Email sent to %s (id=%s)", to, message_id)
    return {'success': True, 'id': message_id}
