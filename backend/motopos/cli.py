# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/motopos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
# - python -m flask tenants create --business-name "Motos El Llano" --name "Ana" --email ana@example.com --password "Clave1234"
#   Create a business and its first ADMIN user.
#
# Users:
# - python -m flask users create --tenant-id 1 --name "Luis" --email luis@example.com --password "Clave1234" --role USER
#
# Orders:
# - python -m flask orders restock-low-stock --tenant-id 1
#   Generate a RESTOCK order for every low-stock product not already on order.

import click
from flask import g
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .services import auth_service, order_service, tenant_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


# =============================================================================
# TENANT MANAGEMENT COMMANDS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant (business) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<25} {'Active':<8} {'Users'}")
    click.echo("="*80)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.slug:<25} {active_str:<8} {user_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--business-name', required=True, help='Business name')
@click.option('--name', required=True, help='Admin display name')
@click.option('--email', required=True, help='Admin email (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def create_tenant_cli(business_name, name, email, password):
    """Create a business and its first ADMIN user."""
    try:
        tenant, user = tenant_service.register_business(
            business_name=business_name, name=name, email=email, password=password,
        )
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, slug: {tenant.slug})")
    click.echo(f"     Admin user: {user.email}")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['ADMIN', 'USER'], case_sensitive=False), default='USER', help='Role')
@with_appcontext
def create_user_cli(tenant_id, name, email, password, role):
    """
    Create a user inside an existing tenant.

    Password: minimum 8 characters, letters and digits.
    """
    try:
        user = auth_service.create_user(
            tenant_id=tenant_id, name=name, email=email, password=password, role=role,
        )
    except (ValueError, LookupError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}, role: {user.role})")


# =============================================================================
# ORDER JOBS
# =============================================================================

@click.group('orders')
def orders_group():
    """Order maintenance jobs."""


@orders_group.command('restock-low-stock')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def restock_low_stock_cli(tenant_id):
    """Generate a RESTOCK order from the tenant's low-stock products."""
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        click.echo(f"FAIL Tenant ID {tenant_id} not found")
        return

    # Jobs run without a user; history rows are attributed to "Sistema".
    g.tenant_id = tenant.id
    result = order_service.create_restock_order_from_low_stock(tenant_id=tenant.id)

    if not result["created"]:
        click.echo(f"SKIP {result['message']}")
        return

    order = result["order"]
    click.echo(f"PASS Created {order.order_number} with {result['items_count']} item(s), priority {order.priority}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(orders_group)
