"""
AgentTask model — one queued unit of agent work.

Status transitions are owned by agents.orchestrator:
  pending → processing → completed | pending (retry) | failed
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey, Index

from outreach.database import Base, utcnow


class AgentTask(Base):
    __tablename__ = 'agent_tasks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_type = Column(Text, nullable=False)
    prospect_id = Column(Integer, ForeignKey('prospects.id'), nullable=True)
    payload = Column(JSON, default=dict)
    status = Column(Text, nullable=False, default='pending')
    scheduled_for = Column(DateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_agent_tasks_status_scheduled', 'status', 'scheduled_for'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'agent_type': self.agent_type,
            'prospect_id': self.prospect_id,
            'payload': self.payload or {},
            'status': self.status,
            'scheduled_for': self.scheduled_for.isoformat() if self.scheduled_for else None,
            'attempts': self.attempts,
            'result': self.result,
            'error': self.error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
