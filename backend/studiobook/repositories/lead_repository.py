"""
Lead repository for the studio's mini CRM.

Leads are prospective customers collected from ads, referrals and walk-ins.
A lead is closed out either as Lost or by converting it to a booking.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, or_, select

from ..core.enums import LeadSource, LeadStatus
from ..core.exceptions import ValidationException
from ..core.timezone_utils import studio_now
from ..database.pool import ConnectionPool
from ..models.lead import Lead, LeadInteraction
from .base_repository import BaseRepository, escape_like

logger = logging.getLogger(__name__)

_CLOSED_STATUSES = (LeadStatus.CONVERTED.value, LeadStatus.LOST.value)


class LeadRepository(BaseRepository[Lead]):
    def __init__(self, pool: ConnectionPool):
        super().__init__(pool, Lead)

    def list_leads(
        self,
        status: Optional[Union[LeadStatus, str]] = None,
        source: Optional[Union[LeadSource, str]] = None,
        search: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> List[Lead]:
        stmt = select(Lead)
        if status:
            stmt = stmt.where(Lead.status == LeadStatus(status).value)
        if source:
            stmt = stmt.where(Lead.source == LeadSource(source).value)
        if assigned_to:
            stmt = stmt.where(Lead.assigned_to == assigned_to)
        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            stmt = stmt.where(
                or_(
                    Lead.name.like(pattern, escape="\\"),
                    Lead.whatsapp.like(pattern, escape="\\"),
                    Lead.email.like(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(Lead.created_at.desc(), Lead.id.desc())
        with self.read_session() as session:
            return list(session.scalars(stmt).all())

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        return self.get_by_id(lead_id)

    def create_lead(self, **kwargs: Any) -> Lead:
        self._validate(kwargs)
        return self.create(**kwargs)

    def update_lead(self, lead_id: str, **kwargs: Any) -> Optional[Lead]:
        kwargs.pop("id", None)
        kwargs.pop("created_at", None)
        self._validate(kwargs)
        kwargs["updated_at"] = studio_now()
        return self.update(lead_id, **kwargs)

    def update_status(self, lead_id: str, status: Union[LeadStatus, str]) -> Optional[Lead]:
        return self.update_lead(lead_id, status=status)

    def convert_to_booking(self, lead_id: str, booking_id: str) -> Optional[Lead]:
        """Mark a lead Converted and link it to the booking it became."""
        return self.update_lead(
            lead_id,
            status=LeadStatus.CONVERTED,
            booking_id=booking_id,
            converted_at=studio_now(),
        )

    def delete_lead(self, lead_id: str) -> bool:
        return self.delete(lead_id)

    def add_interaction(
        self,
        lead_id: str,
        interaction_type: str,
        content: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> LeadInteraction:
        """Log a contact with a lead and stamp the lead's last contact time."""
        now = studio_now()
        with self.write_transaction("add_lead_interaction") as session:
            interaction = LeadInteraction(
                lead_id=lead_id,
                created_at=now,
                interaction_type=interaction_type,
                interaction_content=content or None,
                created_by=created_by or None,
            )
            session.add(interaction)
            lead = session.get(Lead, lead_id)
            if lead is not None:
                lead.last_contacted_at = now
                lead.updated_at = now
            session.flush()
        return interaction

    def list_interactions(self, lead_id: str) -> List[LeadInteraction]:
        stmt = (
            select(LeadInteraction)
            .where(LeadInteraction.lead_id == lead_id)
            .order_by(LeadInteraction.created_at.desc(), LeadInteraction.id.desc())
        )
        with self.read_session() as session:
            return list(session.scalars(stmt).all())

    def get_stats(self) -> Dict[str, Any]:
        """Totals by status and source, follow-ups due and conversion rate."""
        now = studio_now()
        with self.read_session() as session:
            by_status = {
                str(status): int(count)
                for status, count in session.execute(
                    select(Lead.status, func.count()).group_by(Lead.status)
                )
            }
            by_source = {
                str(source): int(count)
                for source, count in session.execute(
                    select(Lead.source, func.count()).group_by(Lead.source)
                )
            }
            needs_follow_up = int(
                session.scalar(
                    select(func.count())
                    .select_from(Lead)
                    .where(
                        Lead.next_follow_up <= now,
                        Lead.status.not_in(_CLOSED_STATUSES),
                    )
                )
                or 0
            )
        total = sum(by_status.values())
        converted = by_status.get(LeadStatus.CONVERTED.value, 0)
        return {
            "total": total,
            "by_status": by_status,
            "by_source": by_source,
            "needs_follow_up": needs_follow_up,
            "conversion_rate": round(converted / total * 100, 2) if total else 0.0,
        }

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        try:
            if values.get("status") is not None:
                values["status"] = LeadStatus(values["status"]).value
            if values.get("source") is not None:
                values["source"] = LeadSource(values["source"]).value
        except ValueError as exc:
            raise ValidationException(str(exc), code="INVALID_LEAD_FIELD") from exc
