"""Key/value business settings and their change log."""

from sqlalchemy import Column, Index, Integer, Text

from ..core.timezone_utils import studio_now
from ..database.base import Base
from .types import StudioTimestamp

DEFAULT_SYSTEM_SETTINGS: dict[str, str] = {
    "site_name": "Cerita Kita",
    "site_logo": "/images/default-logo.png",
    "business_phone": "+62 812 3456 7890",
    "business_address": "Jalan Raya No. 123, Jakarta",
    "whatsapp_admin_number": "+62 812 3456 7890",
    "whatsapp_message_template": (
        "Halo {{customer_name}}!\n\n"
        "Booking Anda untuk {{service}} pada {{date}} pukul {{time}} telah dikonfirmasi.\n\n"
        "Total: Rp {{total_price}}\n"
        "ID Booking: {{booking_id}}\n\n"
        "Terima kasih telah memilih Cerita Kita!"
    ),
}

# Settings whose stored value is a JSON document rather than plain text
JSON_SETTING_KEYS = frozenset({"invoice", "seo"})


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(StudioTimestamp, nullable=True, default=studio_now, onupdate=studio_now)

    def __repr__(self) -> str:
        return f"<SystemSetting {self.key}>"


class SystemSettingAudit(Base):
    """One row per changed key per settings update."""

    __tablename__ = "system_settings_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    updated_by = Column(Text, nullable=False)
    updated_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (
        Index("idx_system_settings_audit_key", "key"),
        Index("idx_system_settings_audit_updated_at", "updated_at"),
    )
