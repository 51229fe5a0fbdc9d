"""
Agent contracts.

Every agent implements Agent.execute() and returns an AgentResult. Payloads are
decoded into the agent's own dataclass once, at dispatch time; config comes in
as an AgentSettings snapshot on the AgentContext. The orchestrator only sees
the uniform interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, Type

from outreach.services.db import AgentSettings


# ── Errors ────────────────────────────────────────────────────────────────────

class AgentError(Exception):
    """Base class for agent failures. retryable=False fails the task at once."""
    retryable = True


class InvalidPayload(AgentError):
    retryable = False


class ProspectNotFound(AgentError):
    retryable = False

    def __init__(self, prospect_id):
        self.prospect_id = prospect_id
        super().__init__(f"Prospect not found: {prospect_id}")


class UnknownAgentType(AgentError):
    retryable = False

    def __init__(self, agent_type):
        self.agent_type = agent_type
        super().__init__(f"No agent registered for type: {agent_type}")


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass
class AgentResult:
    """
    Outcome of one execute() call.

    status:
        success  — work done
        skipped  — preconditions unmet, nothing done
        rejected — domain validation refused the request (invalid transition)
        error    — failed, retry like a raised exception
    """
    status: str
    message: str = ''
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message='', **data):
        return cls('success', message, data)

    @classmethod
    def skipped(cls, reason):
        return cls('skipped', reason)

    @classmethod
    def rejected(cls, message, **data):
        return cls('rejected', message, data)

    @classmethod
    def error(cls, message, **data):
        return cls('error', message, data)

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    @property
    def is_error(self) -> bool:
        return self.status == 'error'

    def to_dict(self) -> Dict[str, Any]:
        out = {'status': self.status, 'success': self.ok, 'message': self.message}
        if self.status == 'skipped':
            out.update(skipped=True, reason=self.message)
        out.update(self.data)
        return out


@dataclass
class AgentContext:
    """What an agent gets besides its payload: a session, settings, and the clock."""
    session: Any
    settings: AgentSettings
    now: datetime


# ── Payloads ──────────────────────────────────────────────────────────────────

@dataclass
class OutreachPayload:
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OutreachPayload':
        return cls()


@dataclass
class FollowUpPayload:
    sequence_id: Optional[int] = None
    force: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FollowUpPayload':
        return cls(sequence_id=data.get('sequence_id'), force=bool(data.get('force', False)))


@dataclass
class ClassifierPayload:
    response_text: str
    subject: str = ''
    from_email: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClassifierPayload':
        text = (data.get('response_text') or '').strip()
        if not text:
            raise InvalidPayload("response_text is required")
        return cls(response_text=text, subject=data.get('subject') or '',
                   from_email=data.get('from_email') or '')


@dataclass
class StageManagerPayload:
    suggested_stage: Optional[str] = None
    reason: str = ''
    classification: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageManagerPayload':
        classification = data.get('classification')
        if isinstance(classification, str):
            classification = {'classification': classification}
        return cls(suggested_stage=data.get('suggested_stage'),
                   reason=data.get('reason') or '',
                   classification=classification)


# ── Agent interface ───────────────────────────────────────────────────────────

class Agent(ABC):
    """Base class for the four pipeline agents."""
    agent_type: str = ''
    payload_type: Type = OutreachPayload
    description: str = ''

    def decode(self, raw: Optional[Dict[str, Any]]):
        if raw is not None and not isinstance(raw, dict):
            raise InvalidPayload(f"{self.agent_type} payload must be an object")
        return self.payload_type.from_dict(raw or {})

    @abstractmethod
    def execute(self, prospect_id: int, payload, context: AgentContext) -> AgentResult:
        """
        Run the agent for one prospect.

        Args:
            prospect_id: target prospect.
            payload:     instance of payload_type.
            context:     session, settings snapshot, and the dispatch time.
                         Agents may commit on context.session; the
                         orchestrator rolls back anything left uncommitted
                         when execute() raises.
        """
        ...


def load_prospect(context: AgentContext, prospect_id):
    from outreach.models.prospect import Prospect
    prospect = context.session.get(Prospect, prospect_id) if prospect_id is not None else None
    if prospect is None:
        raise ProspectNotFound(prospect_id)
    return prospect


def get_agent(registry: Dict[str, Type[Agent]], agent_type: str) -> Agent:
    """Look up and instantiate the agent for a type tag."""
    agent_cls = registry.get(agent_type)
    if agent_cls is None:
        raise UnknownAgentType(agent_type)
    return agent_cls()
