"""
Notification model — user-facing alert with read/unread state.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey

from outreach.database import Base, utcnow


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, default='')
    prospect_id = Column(Integer, ForeignKey('prospects.id'), nullable=True)
    priority = Column(Text, nullable=False, default='normal')
    is_read = Column(Boolean, nullable=False, default=False)
    action_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'prospect_id': self.prospect_id,
            'priority': self.priority,
            'is_read': self.is_read,
            'action_url': self.action_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
