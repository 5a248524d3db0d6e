"""Catalog services and photographers."""

from sqlalchemy import Boolean, Column, Index, Integer, Text, text

from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import StudioTimestamp


class Service(Base):
    """A bookable photography package. Prices are whole currency units."""

    __tablename__ = "services"

    id = Column(Text, primary_key=True, default=generate_ulid)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    base_price = Column(Integer, nullable=False, default=0)
    discount_value = Column(Integer, nullable=False, default=0, server_default=text("0"))
    badge_text = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (Index("idx_services_is_active", "is_active"),)

    @property
    def discounted_price(self) -> int:
        return max(0, (self.base_price or 0) - (self.discount_value or 0))

    def __repr__(self) -> str:
        return f"<Service {self.id} {self.name}>"


class Photographer(Base):
    __tablename__ = "photographers"

    id = Column(Text, primary_key=True, default=generate_ulid)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    specialty = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (Index("idx_photographers_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<Photographer {self.id} {self.name}>"
