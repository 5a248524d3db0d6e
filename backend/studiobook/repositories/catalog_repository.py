"""
Catalog repository: services, add-ons and photographers.

The catalog is the source of truth for prices. Booking totals are computed
from it on the server, never taken from the client.
"""

import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import select

from ..database.pool import ConnectionPool
from ..models.addon import Addon
from ..models.service import Photographer, Service
from .base_repository import BaseRepository, chunked

logger = logging.getLogger(__name__)


class CatalogRepository(BaseRepository[Service]):
    def __init__(self, pool: ConnectionPool):
        super().__init__(pool, Service)

    # Services

    def list_services(self, active_only: bool = True) -> List[Service]:
        stmt = select(Service).order_by(Service.name)
        if active_only:
            stmt = stmt.where(Service.is_active.is_(True))
        with self.read_session() as session:
            return list(session.scalars(stmt).all())

    def get_service(self, service_id: str) -> Optional[Service]:
        return self.get_by_id(service_id)

    def create_service(self, **kwargs: Any) -> Service:
        return self.create(**kwargs)

    # Add-ons

    def list_addons(self, category: Optional[str] = None, active_only: bool = True) -> List[Addon]:
        """
        Add-ons, optionally restricted to those applicable to ``category``.

        Category filtering happens in Python because the applicable
        categories are a JSON list.
        """
        stmt = select(Addon).order_by(Addon.name)
        if active_only:
            stmt = stmt.where(Addon.is_active.is_(True))
        with self.read_session() as session:
            addons = list(session.scalars(stmt).all())
        if category:
            addons = [addon for addon in addons if addon.applies_to(category)]
        return addons

    def get_addons_by_ids(self, addon_ids: Sequence[str]) -> List[Addon]:
        ids = list(dict.fromkeys(addon_ids))
        if not ids:
            return []
        found: List[Addon] = []
        with self.read_session() as session:
            for chunk in chunked(ids, 900):
                found.extend(session.scalars(select(Addon).where(Addon.id.in_(chunk))).all())
        return found

    def create_addon(self, **kwargs: Any) -> Addon:
        with self.write_transaction("create_addon") as session:
            addon = Addon(**kwargs)
            session.add(addon)
            session.flush()
        return addon

    # Photographers

    def list_photographers(self, active_only: bool = True) -> List[Photographer]:
        stmt = select(Photographer).order_by(Photographer.name)
        if active_only:
            stmt = stmt.where(Photographer.is_active.is_(True))
        with self.read_session() as session:
            return list(session.scalars(stmt).all())

    def create_photographer(self, **kwargs: Any) -> Photographer:
        with self.write_transaction("create_photographer") as session:
            photographer = Photographer(**kwargs)
            session.add(photographer)
            session.flush()
        return photographer
