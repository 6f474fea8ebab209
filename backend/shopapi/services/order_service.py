# Overview: Service-layer operations for orders; creation, scoped queries and the status state machine.

"""
Order State Machine

================================================================================
PURPOSE: Create orders at server-computed prices and guard every status change
================================================================================

STATE MACHINE:
    pending -> confirmed -> processing -> completed
    pending   -> cancelled
    confirmed -> cancelled

    completed and cancelled are terminal.

RULES (NON-NEGOTIABLE):
1. Cannot skip states (pending -> completed is forbidden)
2. Cannot leave a terminal state
3. total_cents is computed from catalog prices at creation and never changes;
   price fields in the request are never read
4. owner_id never changes
5. Every status change appends to order_status_history (the audit log)
6. Transitions are compare-and-set on the current status, so two concurrent
   requests starting from the same status cannot both succeed

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import CheckoutSession, Order, OrderLine, OrderStatusHistory
from shopapi.time_utils import parse_iso_date, utcnow
from . import catalog_service
from .access_gate import STAFF_ROLES, Identity, require, require_role
from .concurrency import compare_and_set, run_with_retry


PENDING = "pending"
CONFIRMED = "confirmed"
PROCESSING = "processing"
COMPLETED = "completed"
CANCELLED = "cancelled"

VALID_STATUSES = (PENDING, CONFIRMED, PROCESSING, COMPLETED, CANCELLED)

ALLOWED_TRANSITIONS = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({PROCESSING, CANCELLED}),
    PROCESSING: frozenset({COMPLETED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

# Owners may only withdraw an unpaid order; staff may also cancel after payment
OWNER_CANCELLABLE_STATUSES = frozenset({PENDING})
STAFF_CANCELLABLE_STATUSES = frozenset({PENDING, CONFIRMED})

MAX_LINE_QUANTITY = 1000
MAX_AMOUNT_CENTS = catalog_service.MAX_INT_COLUMN


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a status change is legal.

    Same-state "transitions" are not legal: a status update must move the
    order forward.
    """
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def _invalid_transition(from_status: str, to_status: str) -> ConflictError:
    return ConflictError(
        f"Cannot change order status from '{from_status}' to '{to_status}'",
        code="InvalidTransition",
    )


def apply_transition(order: Order, from_status: str, to_status: str, actor_id: int | None) -> bool:
    """
    Compare-and-set the order status and append the history entry.

    Does not commit. Returns False (and writes nothing) if the order is no
    longer in from_status.
    """
    now = utcnow()
    if not compare_and_set(Order, order.id, "status", from_status, {"status": to_status, "updated_at": now}):
        return False

    db.session.add(OrderStatusHistory(
        order_id=order.id,
        status=to_status,
        changed_by_user_id=actor_id,
        changed_at=now,
    ))
    return True


# =============================================================================
# CREATION
# =============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_line_items(line_items) -> list[tuple[int, int]]:
    """Return [(service_id, quantity)] or raise ValidationError."""
    if not isinstance(line_items, list) or not line_items:
        raise ValidationError("Order must contain at least one line item", code="InvalidQuantity")

    parsed = []
    for index, item in enumerate(line_items):
        if not isinstance(item, dict):
            raise ValidationError(f"Line item {index} must be an object", code="InvalidLineItem")

        service_id = item.get("service_id")
        if not _is_int(service_id) or not 1 <= service_id <= catalog_service.MAX_INT_COLUMN:
            raise ValidationError(f"Line item {index}: service_id must be an integer", code="InvalidLineItem")

        quantity = item.get("quantity")
        if not _is_int(quantity) or not 1 <= quantity <= MAX_LINE_QUANTITY:
            raise ValidationError(
                f"Line item {index}: quantity must be an integer from 1 to {MAX_LINE_QUANTITY}",
                code="InvalidQuantity",
            )
        parsed.append((service_id, quantity))
    return parsed


def _parse_scheduled_date(value) -> date | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("scheduled_date must be an ISO date (YYYY-MM-DD)", code="InvalidDate")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError("scheduled_date must be an ISO date (YYYY-MM-DD)", code="InvalidDate")


def create_order(owner: Identity, line_items, scheduled_date=None) -> Order:
    """
    Create a pending order owned by the caller.

    Args:
        owner: The authenticated caller; becomes the immutable owner
        line_items: [{"service_id": int, "quantity": int}, ...]; any other keys
            (unit_price, price, total...) are ignored
        scheduled_date: Optional ISO date string

    Raises:
        ValidationError: InvalidQuantity, InvalidLineItem, UnknownService,
            InactiveService, InvalidDate
    """
    items = _validate_line_items(line_items)
    scheduled = _parse_scheduled_date(scheduled_date)

    priced = []
    for service_id, quantity in items:
        entry = catalog_service.lookup(service_id)
        if entry is None:
            raise ValidationError(f"Service {service_id} does not exist", code="UnknownService")
        if not entry.active:
            raise ValidationError(f"Service {service_id} is not available", code="InactiveService")
        priced.append((service_id, quantity, entry.price_cents))

    if sum(quantity * price for _, quantity, price in priced) > MAX_AMOUNT_CENTS:
        raise ValidationError("Order total is too large", code="InvalidQuantity")

    def _op():
        now = utcnow()
        order = Order(
            owner_id=owner.id,
            status=PENDING,
            total_cents=sum(quantity * price for _, quantity, price in priced),
            scheduled_date=scheduled,
            created_at=now,
        )
        for position, (service_id, quantity, price) in enumerate(priced):
            order.lines.append(OrderLine(
                position=position,
                service_id=service_id,
                quantity=quantity,
                unit_price_cents=price,
                line_total_cents=quantity * price,
            ))
        order.status_history.append(OrderStatusHistory(
            status=PENDING,
            changed_by_user_id=owner.id,
            changed_at=now,
        ))

        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s created by user %s (total_cents=%s)", order.id, owner.id, order.total_cents)
    return order


# =============================================================================
# QUERIES
# =============================================================================

@dataclass
class OrderPage:
    items: list[Order]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.total else 0

    def to_dict(self) -> dict:
        return {
            "items": [order.to_dict(include_history=False) for order in self.items],
            "pagination": {
                "page": self.page,
                "page_size": self.page_size,
                "total": self.total,
                "pages": self.pages,
            },
        }


def _parse_positive_int(value, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer", code="InvalidPagination")
    if isinstance(value, str):
        stripped = value.strip()
        # isdigit alone also accepts digits int() cannot parse, such as "²"
        if not (stripped.isascii() and stripped.isdigit()):
            raise ValidationError(f"{name} must be a positive integer", code="InvalidPagination")
        value = int(stripped)
    if not isinstance(value, int) or not 1 <= value <= catalog_service.MAX_INT_COLUMN:
        raise ValidationError(f"{name} must be a positive integer", code="InvalidPagination")
    return value


def list_orders(caller: Identity, filters: dict | None = None, page=None, page_size=None) -> OrderPage:
    """
    List orders visible to the caller.

    Customers always see only their own orders, whatever owner_id filter
    they send. Staff and admin may filter by owner_id across all owners.

    Filters: status, owner_id.

    Raises:
        ValidationError: InvalidPagination, InvalidFilter
    """
    filters = filters or {}
    config = current_app.config
    page = _parse_positive_int(page, "page", 1)
    page_size = min(
        _parse_positive_int(page_size, "page_size", config["ORDERS_DEFAULT_PAGE_SIZE"]),
        config["ORDERS_MAX_PAGE_SIZE"],
    )

    query = db.session.query(Order)

    status = filters.get("status")
    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(
                f"Invalid status filter '{status}'. Must be one of: {', '.join(VALID_STATUSES)}",
                code="InvalidFilter",
            )
        query = query.filter(Order.status == status)

    if caller.is_staff:
        owner_id = filters.get("owner_id")
        if owner_id not in (None, ""):
            try:
                owner_id = int(owner_id)
            except (TypeError, ValueError):
                raise ValidationError("owner_id must be an integer", code="InvalidFilter")
            if abs(owner_id) > catalog_service.MAX_INT_COLUMN:
                raise ValidationError("owner_id is out of range", code="InvalidFilter")
            query = query.filter(Order.owner_id == owner_id)
    else:
        query = query.filter(Order.owner_id == caller.id)

    total = query.count()
    items = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return OrderPage(items=items, page=page, page_size=page_size, total=total)


def load_order(order_id: int) -> Order:
    if not 1 <= order_id <= catalog_service.MAX_INT_COLUMN:
        raise NotFound("Order not found")
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def get_order(caller: Identity, order_id: int) -> Order:
    """
    Get one order.

    Raises:
        NotFound: Order does not exist
        Forbidden: Caller is a customer and not the owner
    """
    order = load_order(order_id)
    require(caller, order.owner_id)
    return order


# =============================================================================
# TRANSITIONS
# =============================================================================

def update_status(caller: Identity, order_id: int, new_status: str) -> Order:
    """
    Move an order to new_status (staff/admin only).

    Raises:
        Forbidden: Caller is not staff/admin
        NotFound: Order does not exist
        ConflictError: InvalidTransition (unknown status, illegal successor,
            or lost a concurrent update)
    """
    require_role(caller, STAFF_ROLES)

    def _op():
        order = load_order(order_id)
        current = order.status
        if new_status not in VALID_STATUSES or not can_transition(current, new_status):
            raise _invalid_transition(current, new_status)

        if not apply_transition(order, current, new_status, caller.id):
            db.session.rollback()
            raise ConflictError("Order status was changed by another request", code="InvalidTransition")

        db.session.commit()
        db.session.refresh(order)
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s status -> %s by user %s", order.id, order.status, caller.id)
    return order


def cancel_order(caller: Identity, order_id: int) -> Order:
    """
    Cancel an order.

    The owner may cancel their own pending order while no payment is in
    flight or settled for it. Staff/admin may cancel any pending or
    confirmed order.

    Raises:
        NotFound, Forbidden, ConflictError (InvalidTransition, PaymentInProgress)
    """
    def _op():
        order = load_order(order_id)
        require(caller, order.owner_id)

        current = order.status
        allowed = STAFF_CANCELLABLE_STATUSES if caller.is_staff else OWNER_CANCELLABLE_STATUSES
        if current not in allowed:
            raise _invalid_transition(current, CANCELLED)

        if not caller.is_staff:
            payment = db.session.query(CheckoutSession).filter(
                CheckoutSession.order_id == order.id,
                CheckoutSession.status != "failed",
            ).first()
            if payment is not None:
                raise ConflictError("Order has a payment in progress", code="PaymentInProgress")

        if not apply_transition(order, current, CANCELLED, caller.id):
            db.session.rollback()
            raise ConflictError("Order status was changed by another request", code="InvalidTransition")

        db.session.commit()
        db.session.refresh(order)
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s cancelled by user %s", order.id, caller.id)
    return order
