"""Staff accounts. Authentication itself lives outside this package."""

from sqlalchemy import Boolean, CheckConstraint, Column, Text, text

from ..core.enums import UserRole
from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import JSONText, StudioTimestamp


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=generate_ulid)
    username = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default=UserRole.STAFF.value, server_default=text("'staff'"))
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    permissions = Column(JSONText, nullable=True)
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)
    updated_at = Column(StudioTimestamp, nullable=True, default=studio_now, onupdate=studio_now)

    __table_args__ = (CheckConstraint("role IN ('admin', 'staff')", name="ck_users_role"),)

    def __repr__(self) -> str:
        return f"<User {self.username} role={self.role}>"
