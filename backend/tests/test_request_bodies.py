# Overview: Pytest coverage for JSON body handling shared by every route that reads one.

import pytest

from shopapi.extensions import db
from shopapi.models import Order, User


# (method, path, headers fixture or None)
JSON_ROUTES = [
    ("post", "/api/auth/register", None),
    ("post", "/api/auth/login", None),
    ("post", "/api/auth/admin/login", None),
    ("post", "/api/services", "staff_headers"),
    ("post", "/api/orders", "customer_headers"),
    ("patch", "/api/orders/1/status", "staff_headers"),
    ("post", "/api/checkout", "customer_headers"),
    ("post", "/api/checkout/confirm", "customer_headers"),
]


@pytest.mark.parametrize("body", [["x"], [{"line_items": []}], "text", 42, True])
@pytest.mark.parametrize("method,path,headers_fixture", JSON_ROUTES)
def test_non_object_body_is_rejected(request, client, method, path, headers_fixture, body):
    headers = request.getfixturevalue(headers_fixture) if headers_fixture else {}

    resp = getattr(client, method)(path, json=body, headers=headers)

    assert resp.status_code == 400
    assert resp.json["status"] == "error"
    assert resp.json["code"] == "InvalidBody"


def test_missing_body_reads_as_empty_object(client, customer_headers):
    resp = client.post("/api/orders", headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json["code"] == "InvalidQuantity"


def test_rejected_bodies_write_nothing(client, customer_headers):
    client.post("/api/auth/register", json=[{"email": "x@shopmail.in"}])
    client.post("/api/orders", json=[{"service_id": 1, "quantity": 1}], headers=customer_headers)

    # Only the customer fixture's own row exists
    assert db.session.query(User).count() == 1
    assert db.session.query(Order).count() == 0
