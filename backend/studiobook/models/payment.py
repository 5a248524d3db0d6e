"""Payment lines recorded against a booking."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import relationship

from ..core.enums import StorageBackend
from ..core.timezone_utils import studio_now
from ..database.base import Base
from .types import StudioTimestamp


class Payment(Base):
    """A single payment towards a booking. Replaced as a set, never edited."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Text,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    date = Column(StudioTimestamp, nullable=False)
    amount = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    proof_filename = Column(Text, nullable=True)
    proof_url = Column(Text, nullable=True)
    storage_backend = Column(
        Text,
        nullable=True,
        default=StorageBackend.LOCAL.value,
        server_default=text("'local'"),
    )
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    booking = relationship("Booking", back_populates="payments", lazy="raise")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("idx_payments_booking_id", "booking_id"),
    )

    def __repr__(self) -> str:
        return f"<Payment booking={self.booking_id} amount={self.amount}>"
