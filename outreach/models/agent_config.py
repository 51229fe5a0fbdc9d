"""
AgentConfigEntry — scalar key/value settings read by the agents.
"""
from sqlalchemy import Column, Text, DateTime

from outreach.database import Base, utcnow


class AgentConfigEntry(Base):
    __tablename__ = 'agent_config'

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
