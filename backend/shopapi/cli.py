# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopapi/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopapi (PowerShell: $env:FLASK_APP="shopapi").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use "flask db upgrade" with migrations otherwise).
#
# User inspection/bootstrap:
# - python -m flask users list [--role staff]
#   List users with role and active status.
# - python -m flask users create --email admin@shopmail.in --password "Password123!" --phone 9876543210 --dob 1990-01-01 --role admin
#   Create a user with any role (prompts if options are omitted).
#
# Catalog:
# - python -m flask catalog list [--all]
# - python -m flask catalog add --name "Deep cleaning" --price-cents 149900
# - python -m flask catalog deactivate 3
#
# Maintenance:
# - python -m flask maintenance cleanup-revoked-tokens
#   Purge revocation records for tokens that have expired anyway.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .errors import ApiError
from .extensions import db
from .models import Role, User
from .services import audit_service, auth_service, catalog_service, token_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]), help='Filter by role')
@with_appcontext
def list_users_cli(role):
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.email:<40} {user.role:<9} {status}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--phone', prompt=True, help='Indian mobile number')
@click.option('--dob', 'date_of_birth', prompt='Date of birth (YYYY-MM-DD)', help='Date of birth')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.CUSTOMER.value, show_default=True)
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cli(email, password, phone, date_of_birth, role, first_name, last_name):
    """
    Create a new user with an explicit role.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(
            email=email,
            password=password,
            phone=phone,
            date_of_birth=date_of_birth,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
    except ApiError as e:
        click.echo(f"FAIL {e.message}")
        for detail in e.details:
            click.echo(f"     - {detail['field']}: {detail['message']}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@click.group('catalog')
def catalog_group():
    """Service catalog commands."""


@catalog_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive services')
@with_appcontext
def list_catalog_cli(include_inactive):
    services = catalog_service.list_services(include_inactive=include_inactive)
    if not services:
        click.echo("No services found.")
        return
    for service in services:
        flag = "" if service.is_active else " (inactive)"
        click.echo(f"{service.id:>5}  {service.name:<40} {service.price_cents:>10}{flag}")


@catalog_group.command('add')
@click.option('--name', prompt=True)
@click.option('--price-cents', type=int, prompt=True)
@click.option('--description', default=None)
@with_appcontext
def add_catalog_cli(name, price_cents, description):
    try:
        service = catalog_service.create_service(name=name, price_cents=price_cents, description=description)
    except ApiError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created service {service.id}: {service.name} ({service.price_cents} cents)")


@catalog_group.command('deactivate')
@click.argument('service_id', type=int)
@with_appcontext
def deactivate_catalog_cli(service_id):
    service = catalog_service.set_active(service_id, False)
    if service is None:
        click.echo(f"FAIL Service {service_id} not found")
        raise SystemExit(1)
    click.echo(f"PASS Service {service_id} deactivated")


@click.group('maintenance')
def maintenance_group():
    """Periodic cleanup commands."""


@maintenance_group.command('cleanup-revoked-tokens')
@with_appcontext
def cleanup_revoked_tokens_cli():
    deleted = token_service.cleanup_expired_revocations()
    click.echo(f"Deleted {deleted} expired token revocations.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = audit_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(maintenance_group)
