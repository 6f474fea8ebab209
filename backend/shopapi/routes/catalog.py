# Overview: Flask API routes for the service catalog.

from flask import Blueprint

from ..decorators import require_auth, require_roles
from ..errors import json_body, success
from ..models import Role
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/services")


@catalog_bp.get("")
def list_services_route():
    """Public list of active services."""
    services = catalog_service.list_services()
    return success({"services": [s.to_dict() for s in services]})


@catalog_bp.post("")
@require_auth
@require_roles(Role.STAFF, Role.ADMIN)
def create_service_route():
    """
    Create a catalog service.

    Request body:
    {
        "name": "Deep cleaning",
        "price_cents": 149900,
        "description": "...",   (optional)
        "is_active": true         (optional)
    }
    """
    data = json_body()
    service = catalog_service.create_service(
        name=data.get("name"),
        price_cents=data.get("price_cents"),
        description=data.get("description"),
        is_active=data.get("is_active", True),
    )
    return success({"service": service.to_dict()}, status=201)
