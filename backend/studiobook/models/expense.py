"""Business expenses used for profit and loss reporting."""

from sqlalchemy import Column, Index, Integer, Text

from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import StudioTimestamp


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Text, primary_key=True, default=generate_ulid)
    date = Column(StudioTimestamp, nullable=False)
    category = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Integer, nullable=False)
    created_by = Column(Text, nullable=False)
    created_at = Column(StudioTimestamp, nullable=False, default=studio_now)

    __table_args__ = (Index("idx_expenses_date", "date"),)

    def __repr__(self) -> str:
        return f"<Expense {self.id} {self.category} amount={self.amount}>"
