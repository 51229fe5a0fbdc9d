"""
Prospect model — one business contact moving through the outreach pipeline.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime

from outreach.database import Base, utcnow

class Prospect(Base):
    __tablename__ = 'prospects'

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_name = Column(Text, nullable=False)
    contact_name = Column(Text, default='')
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    stage = Column(Text, nullable=False, default='new', index=True)
    automation_enabled = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self):
        return self.contact_name or self.business_name

    def to_dict(self):
        return {
            'id': self.id,
            'business_name': self.business_name,
            'contact_name': self.contact_name,
            'email': self.email,
            'city': self.city,
            'category': self.category,
            'stage': self.stage,
            'automation_enabled': self.automation_enabled,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
