"""
Campaign model — one outbound email (initial outreach or a follow-up).
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey

from outreach.database import Base, utcnow

class Campaign(Base):
    __tablename__ = 'campaigns'

    id = Column(Integer, primary_key=True, autoincrement=True)
    prospect_id = Column(Integer, ForeignKey('prospects.id'), nullable=False, index=True)
    subject = Column(Text, default='')
    body = Column(Text, default='')
    status = Column(Text, nullable=False, default='pending')  # pending | draft | sent | failed
    follow_up_number = Column(Integer, nullable=False, default=0)
    message_id = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
