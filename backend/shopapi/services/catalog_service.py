# Overview: Service-layer operations for the service catalog.

"""
Catalog Service

WHY: The catalog is the authority for service availability and price.
Order creation resolves every line through lookup().
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError
from ..extensions import db
from ..models import Service


# INTEGER columns are 32-bit on PostgreSQL
MAX_INT_COLUMN = 2**31 - 1


@dataclass(frozen=True)
class CatalogEntry:
    service_id: int
    active: bool
    price_cents: int


def lookup(service_id: int) -> CatalogEntry | None:
    """Return the catalog entry for service_id, or None if it does not exist."""
    service = db.session.get(Service, service_id)
    if service is None:
        return None
    return CatalogEntry(service_id=service.id, active=bool(service.is_active), price_cents=service.price_cents)


def list_services(include_inactive: bool = False) -> list[Service]:
    query = db.session.query(Service)
    if not include_inactive:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name, Service.id).all()


def create_service(name: str, price_cents, description: str | None = None, is_active: bool = True) -> Service:
    """
    Create a catalog service.

    Raises ValidationError if name is blank, price_cents is not an integer in
    0..MAX_INT_COLUMN, or description is not a string.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", code="MissingField")
    if isinstance(price_cents, bool) or not isinstance(price_cents, int) or not 0 <= price_cents <= MAX_INT_COLUMN:
        raise ValidationError("price_cents must be a non-negative integer", code="InvalidPrice")
    if description is not None and not isinstance(description, str):
        raise ValidationError("description must be a string", code="InvalidFormat")

    service = Service(
        name=name.strip(),
        description=description,
        price_cents=price_cents,
        is_active=bool(is_active),
    )
    db.session.add(service)
    db.session.commit()
    return service


def set_active(service_id: int, is_active: bool) -> Service | None:
    service = db.session.get(Service, service_id)
    if service is None:
        return None
    service.is_active = bool(is_active)
    db.session.commit()
    return service
