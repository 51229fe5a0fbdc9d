"""
Text-generation service — OpenAI / Anthropic completions behind circuit breakers.

The core never retries these calls itself: a raised ProviderError is the
calling agent's failure and goes through task-level retry. ProviderUnavailable
means nothing is configured, so retrying cannot help.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from outreach.config import OPENAI_MODEL, ANTHROPIC_MODEL, CLASSIFICATIONS, LLM_PROVIDERS
from outreach.extensions import openai_client, anthropic_client
from outreach.services.circuit_breaker import get_breaker, CircuitOpenError

logger = logging.getLogger('services.llm')

TOKEN_USAGE_KEY = 'llm:tokens'


class ProviderUnavailable(Exception):
    """No client configured for the requested provider."""
    retryable = False


class ProviderError(Exception):
    """The provider request failed (network, API error, open circuit)."""


@dataclass
class Completion:
    text: str
    usage: Dict[str, int] = field(default_factory=dict)
    provider: str = 'openai'


# ── Core completion ──────────────────────────────────────────────────────────

def complete(prompt: str, system_prompt: Optional[str] = None, provider: str = 'openai',
             max_tokens: int = 1000, temperature: float = 0.7) -> Completion:
    """Run one completion against the chosen provider."""
    if provider not in LLM_PROVIDERS:
        raise ProviderUnavailable(f"Unknown LLM provider: {provider}")

    if provider == 'anthropic':
        if anthropic_client is None:
            raise ProviderUnavailable("Anthropic API key not configured")
        call = _anthropic_completion
    else:
        if openai_client is None:
            raise ProviderUnavailable("OpenAI API key not configured")
        call = _openai_completion

    try:
        result = call(prompt, system_prompt, max_tokens, temperature)
    except CircuitOpenError as e:
        raise ProviderError(str(e)) from e
    except Exception as e:
        logger.error("%s completion failed: %s", provider, e)
        raise ProviderError(f"{provider} request failed: {e}") from e

    _track_usage(result)
    return result


def _openai_completion(prompt, system_prompt, max_tokens, temperature):
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    response = get_breaker('openai').call(
        openai_client.chat.completions.create,
        model=OPENAI_MODEL,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    usage = response.usage
    return Completion(
        text=response.choices[0].message.content or '',
        usage={
            'prompt_tokens': getattr(usage, 'prompt_tokens', 0) or 0,
            'completion_tokens': getattr(usage, 'completion_tokens', 0) or 0,
            'total_tokens': getattr(usage, 'total_tokens', 0) or 0,
        },
        provider='openai',
    )


def _anthropic_completion(prompt, system_prompt, max_tokens, temperature):
    kwargs = dict(
        model=ANTHROPIC_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[{"role": "user", "content": prompt}],
    )
    if system_prompt:
        kwargs['system'] = system_prompt

    response = get_breaker('anthropic').call(anthropic_client.messages.create, **kwargs)
    input_tokens = getattr(response.usage, 'input_tokens', 0) or 0
    output_tokens = getattr(response.usage, 'output_tokens', 0) or 0
    return Completion(
        text=response.content[0].text,
        usage={
            'prompt_tokens': input_tokens,
            'completion_tokens': output_tokens,
            'total_tokens': input_tokens + output_tokens,
        },
        provider='anthropic',
    )


def _track_usage(result: Completion):
    """Accumulate token counts per provider in Redis. Best effort."""
    try:
        from outreach.extensions import redis_client
        pipe = redis_client.pipeline()
        for name, count in result.usage.items():
            pipe.hincrby(TOKEN_USAGE_KEY, f'{result.provider}:{name}', int(count))
        pipe.execute()
    except Exception:
        logger.debug("Token usage tracking skipped", exc_info=True)


def get_token_usage() -> Dict[str, int]:
    try:
        from outreach.extensions import redis_client
        return {k: int(v) for k, v in (redis_client.hgetall(TOKEN_USAGE_KEY) or {}).items()}
    except Exception:
        return {}


# ── Message generation ───────────────────────────────────────────────────────

OUTREACH_SYSTEM_PROMPT = (
    "You write short, friendly cold emails for a small web design studio. "
    "Plain text, under 150 words, one clear call to action, no placeholders."
)


def _describe(prospect) -> str:
    parts = [f"Business: {prospect.business_name}"]
    if prospect.contact_name:
        parts.append(f"Contact: {prospect.contact_name}")
    if prospect.category:
        parts.append(f"Category: {prospect.category}")
    if prospect.city:
        parts.append(f"City: {prospect.city}")
    parts.append(f"Website: {prospect.website or 'none'}")
    if prospect.notes:
        parts.append(f"Notes: {prospect.notes}")
    return "\n".join(parts)


def generate_outreach_email(prospect, provider='openai') -> str:
    prompt = f"Write the first outreach email to this prospect.\n\n{_describe(prospect)}"
    return complete(prompt, OUTREACH_SYSTEM_PROMPT, provider=provider).text.strip()


def generate_subject_line(prospect, body: str, provider='openai') -> str:
    prompt = (
        "Write one email subject line (max 8 words, no quotes) for this email.\n\n"
        f"{body}\n\nRecipient business: {prospect.business_name}"
    )
    text = complete(prompt, provider=provider, max_tokens=50, temperature=0.8).text
    lines = [line.strip().strip('"') for line in text.splitlines() if line.strip().strip('"')]
    return lines[0] if lines else f"Quick idea for {prospect.business_name}"


def generate_follow_up(prospect, previous_emails: List[str], follow_up_number: int,
                       provider='openai') -> str:
    history = "\n---\n".join(previous_emails[-3:]) or "(none)"
    prompt = (
        f"Write follow-up #{follow_up_number} to a prospect who has not replied. "
        f"Keep it shorter than the previous emails and do not repeat them.\n\n"
        f"{_describe(prospect)}\n\nPrevious emails:\n{history}"
    )
    return complete(prompt, OUTREACH_SYSTEM_PROMPT, provider=provider).text.strip()


# ── Reply classification ─────────────────────────────────────────────────────

CLASSIFY_SYSTEM_PROMPT = (
    "Classify a reply to a sales email. Respond with JSON only: "
    '{"classification": one of ' + ", ".join(CLASSIFICATIONS) + ', '
    '"confidence": 0.0-1.0, "summary": "one sentence", "suggested_action": "..."}'
)


def _unclear(reason: str) -> Dict[str, Any]:
    return {
        'classification': 'UNCLEAR',
        'confidence': 0.0,
        'summary': reason,
        'suggested_action': 'Review manually',
    }


def parse_classification(text: str) -> Dict[str, Any]:
    """Extract the JSON object from model output; UNCLEAR if it is unusable."""
    match = re.search(r'\{.*\}', text or '', re.DOTALL)
    if not match:
        return _unclear('Could not parse classification')
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return _unclear('Could not parse classification')

    label = str(data.get('classification', '')).upper()
    if label not in CLASSIFICATIONS:
        return _unclear(f"Unknown classification: {label or 'empty'}")
    try:
        confidence = float(data.get('confidence', 0))
    except (TypeError, ValueError):
        confidence = 0.0
    return {
        'classification': label,
        'confidence': max(0.0, min(confidence, 1.0)),
        'summary': str(data.get('summary', '')),
        'suggested_action': str(data.get('suggested_action', '')),
    }


def classify_response(response_text: str, prospect, history: List[str],
                      provider='openai') -> Dict[str, Any]:
    context = "\n---\n".join(history[-3:]) or "(none)"
    prompt = (
        f"Prospect: {prospect.business_name}\n\n"
        f"Emails we sent:\n{context}\n\n"
        f"Their reply:\n{response_text}"
    )
    result = complete(prompt, CLASSIFY_SYSTEM_PROMPT, provider=provider,
                      max_tokens=300, temperature=0.3)
    return parse_classification(result.text)
