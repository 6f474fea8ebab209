# Overview: Pytest coverage for Flask CLI commands.

from datetime import timedelta

from shopapi.extensions import db
from shopapi.models import RevokedToken, SecurityEvent, Service, User
from shopapi.time_utils import utcnow


def test_users_create_with_role(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--email", "ops@shopmail.in",
        "--password", "Str0ng!Pass",
        "--phone", "9876543210",
        "--dob", "1985-06-01",
        "--role", "staff",
    ])

    assert result.exit_code == 0, result.output
    assert "PASS" in result.output
    assert db.session.query(User).filter_by(email="ops@shopmail.in").one().role == "staff"


def test_users_create_reports_validation_errors(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--email", "ops@shopmail.in",
        "--password", "weak",
        "--phone", "9876543210",
        "--dob", "1985-06-01",
    ])

    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert "password" in result.output
    assert db.session.query(User).count() == 0


def test_users_list(app, customer, admin):
    result = app.test_cli_runner().invoke(args=["users", "list", "--role", "admin"])
    assert admin.email in result.output
    assert customer.email not in result.output


def test_catalog_add_and_list(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["catalog", "add", "--name", "AC servicing", "--price-cents", "79900"])
    assert result.exit_code == 0, result.output

    service = db.session.query(Service).one()
    assert service.price_cents == 79900

    runner.invoke(args=["catalog", "deactivate", str(service.id)])
    assert "AC servicing" not in runner.invoke(args=["catalog", "list"]).output
    assert "AC servicing" in runner.invoke(args=["catalog", "list", "--all"]).output


def test_catalog_add_rejects_negative_price(app):
    result = app.test_cli_runner().invoke(args=["catalog", "add", "--name", "Broken", "--price-cents", "-1"])
    assert result.exit_code == 1
    assert db.session.query(Service).count() == 0


def test_maintenance_cleanup(app, customer):
    now = utcnow()
    db.session.add_all([
        RevokedToken(jti="gone", user_id=customer.id, revoked_at=now - timedelta(days=9), expires_at=now - timedelta(days=2)),
        SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=now - timedelta(days=120)),
        SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=now),
    ])
    db.session.commit()

    runner = app.test_cli_runner()
    assert "Deleted 1" in runner.invoke(args=["maintenance", "cleanup-revoked-tokens"]).output
    assert "Deleted 1" in runner.invoke(args=["maintenance", "cleanup-security-events", "--retention-days", "90"]).output
    assert db.session.query(RevokedToken).count() == 0
    assert db.session.query(SecurityEvent).count() == 1
