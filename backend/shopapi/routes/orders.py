# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

# backend/shopapi/routes/orders.py
"""
Order API Routes

DESIGN:
- Customers create, list and view their own orders, and withdraw unpaid ones
- Staff/admin list and view every order and drive status changes
- Prices in request bodies are ignored; totals come from the catalog

SECURITY:
- All routes require a bearer token
- Ownership and role checks live in order_service (403 on deny)
"""

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..errors import json_body, success
from ..services import audit_service, order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order for the caller.

    Request body:
    {
        "line_items": [{"service_id": 1, "quantity": 2}],
        "scheduled_date": "2026-11-02"   (optional)
    }

    Returns:
        201: Order created in status pending
        400: InvalidQuantity, UnknownService, InactiveService, ...
    """
    data = json_body()
    order = order_service.create_order(
        g.identity,
        data.get("line_items"),
        scheduled_date=data.get("scheduled_date"),
    )
    return success({"order": order.to_dict()}, status=201)


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders visible to the caller.

    Query params: page, page_size, status, owner_id (staff/admin only)
    """
    result = order_service.list_orders(
        g.identity,
        filters={
            "status": request.args.get("status"),
            "owner_id": request.args.get("owner_id"),
        },
        page=request.args.get("page"),
        page_size=request.args.get("page_size"),
    )
    return success(result.to_dict())


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    order = order_service.get_order(g.identity, order_id)
    return success({"order": order.to_dict()})


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_status_route(order_id: int):
    """
    Change order status (staff/admin).

    Request body: {"status": "confirmed"}

    Returns:
        200: Updated order with status_history
        403: Caller is not staff/admin
        404: Order not found
        409: InvalidTransition
    """
    data = json_body()
    order = order_service.update_status(g.identity, order_id, data.get("status"))
    audit_service.log_security_event(
        user_id=g.identity.id,
        event_type="ORDER_STATUS_CHANGED",
        success=True,
        resource=request.path,
        action=request.method,
        reason=f"Order {order.id} -> {order.status}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return success({"order": order.to_dict()})


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    order = order_service.cancel_order(g.identity, order_id)
    return success({"order": order.to_dict()})
