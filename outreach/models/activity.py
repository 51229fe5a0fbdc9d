"""
Activity model — append-only log of what happened to a prospect.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey

from outreach.database import Base, utcnow


class Activity(Base):
    __tablename__ = 'activities'

    id = Column(Integer, primary_key=True, autoincrement=True)
    prospect_id = Column(Integer, ForeignKey('prospects.id'), nullable=False, index=True)
    type = Column(Text, nullable=False)
    description = Column(Text, default='')
    created_at = Column(DateTime, default=utcnow)
