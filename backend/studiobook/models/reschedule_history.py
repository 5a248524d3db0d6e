"""Append-only reschedule log for bookings."""

from sqlalchemy import Column, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship

from ..core.timezone_utils import studio_now
from ..database.base import Base
from .types import StudioTimestamp


class RescheduleHistory(Base):
    """One move of a booking from ``old_date`` to ``new_date``."""

    __tablename__ = "reschedule_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Text,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    old_date = Column(StudioTimestamp, nullable=False)
    new_date = Column(StudioTimestamp, nullable=False)
    rescheduled_at = Column(StudioTimestamp, nullable=True, default=studio_now)
    reason = Column(Text, nullable=True)

    booking = relationship("Booking", back_populates="reschedule_history", lazy="raise")

    __table_args__ = (Index("idx_reschedule_history_booking_id", "booking_id"),)

    def __repr__(self) -> str:
        return f"<RescheduleHistory booking={self.booking_id} {self.old_date} -> {self.new_date}>"
