"""
FollowUpSequence model — per-prospect reminder cadence (at most one per prospect).
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey

from outreach.database import Base, utcnow

class FollowUpSequence(Base):
    __tablename__ = 'follow_up_sequences'

    id = Column(Integer, primary_key=True, autoincrement=True)
    prospect_id = Column(Integer, ForeignKey('prospects.id'), nullable=False, unique=True)
    sequence_step = Column(Integer, nullable=False, default=0)
    max_steps = Column(Integer, nullable=False, default=3)
    days_between = Column(Text, default='3,7,14')  # schedule the sequence was seeded from
    is_paused = Column(Boolean, nullable=False, default=False)
    last_sent_at = Column(DateTime, nullable=True)
    next_send_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'prospect_id': self.prospect_id,
            'sequence_step': self.sequence_step,
            'max_steps': self.max_steps,
            'days_between': self.days_between,
            'is_paused': self.is_paused,
            'last_sent_at': self.last_sent_at.isoformat() if self.last_sent_at else None,
            'next_send_at': self.next_send_at.isoformat() if self.next_send_at else None,
        }
