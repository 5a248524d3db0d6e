"""Leads (prospective customers) and their contact log."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Text, text
from sqlalchemy.orm import relationship

from ..core.enums import LeadSource, LeadStatus
from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import StudioTimestamp


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Text, primary_key=True, default=generate_ulid)
    created_at = Column(StudioTimestamp, nullable=False, default=studio_now)
    updated_at = Column(StudioTimestamp, nullable=False, default=studio_now, onupdate=studio_now)
    name = Column(Text, nullable=False)
    whatsapp = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default=LeadStatus.NEW.value)
    source = Column(Text, nullable=False, default=LeadSource.OTHER.value)
    notes = Column(Text, nullable=True)
    assigned_to = Column(Text, nullable=True)
    booking_id = Column(Text, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    converted_at = Column(StudioTimestamp, nullable=True)
    last_contacted_at = Column(StudioTimestamp, nullable=True)
    next_follow_up = Column(StudioTimestamp, nullable=True)

    interactions = relationship(
        "LeadInteraction",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_leads_status", "status"),
        Index("idx_leads_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Lead {self.id} {self.name} status={self.status}>"


class LeadInteraction(Base):
    __tablename__ = "lead_interactions"

    id = Column(Text, primary_key=True, default=generate_ulid)
    lead_id = Column(Text, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(StudioTimestamp, nullable=False, default=studio_now)
    interaction_type = Column(Text, nullable=False)
    interaction_content = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    meta_event_sent = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    meta_event_id = Column(Text, nullable=True)

    lead = relationship("Lead", back_populates="interactions", lazy="raise")

    __table_args__ = (Index("idx_lead_interactions_lead_id", "lead_id"),)
