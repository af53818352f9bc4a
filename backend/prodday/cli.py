# Overview: Flask CLI command groups for bootstrap, catalog seeding, and day lifecycle operations.

# backend/prodday/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app wsgi <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app wsgi system init-db
#   Create all tables that do not exist yet (idempotent).
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - flask --app wsgi users create --username admin --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - flask --app wsgi users list
#
# Catalog:
# - flask --app wsgi catalog add --code ABC-1 --description "Blue widget"
#   Create or update a product.
# - flask --app wsgi catalog history ABC-1
#   List production history and adjustments for a product.
#
# Production days:
# - flask --app wsgi days status 2024-01-10
# - flask --app wsgi days finalize 2024-01-10 --username supervisor
# - flask --app wsgi days reopen 2024-01-10 --username admin

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLE_USER
from .services.auth_service import create_user, PasswordValidationError
from .services import catalog_service, day_service, history_service
from .services.errors import ProductionDayError
from .time_utils import parse_session_date


def _parse_date_arg(value: str):
    try:
        return parse_session_date(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not a YYYY-MM-DD date")


def _resolve_actor(username: str | None) -> int | None:
    if not username:
        return None
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    return user.id


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


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


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', default=None, help='Display name')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_USER, ROLE_ADMIN]), default=ROLE_USER, help='Role')
@with_appcontext
def create_user_cli(username, name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, password=password, name=name, email=email, role=role)
        click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<8} {'Active'}")
    click.echo("="*70)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {(user.name or ''):<25} {user.role:<8} {active_str}")
    click.echo("="*70 + "\n")


@click.group('catalog')
def catalog_group():
    """Product catalog seeding."""


@catalog_group.command('add')
@click.option('--code', required=True, help='Product code (stored upper-case)')
@click.option('--description', required=True, help='Product description')
@click.option('--photo-url', default=None, help='Photo URL')
@click.option('--barcode', default=None, help='Barcode')
@with_appcontext
def add_product_cli(code, description, photo_url, barcode):
    """Create a product, or update the one with the same code."""
    try:
        product = catalog_service.add_product(code, description, photo_url=photo_url, barcode=barcode)
        click.echo(f"PASS Product {product.code} saved (ID: {product.id})")
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")


@catalog_group.command('history')
@click.argument('code')
@with_appcontext
def product_history_cli(code):
    """Show production and adjustment history for a product."""
    product = catalog_service.get_product_by_code(code)
    if not product:
        click.echo(f"FAIL Product {code} not found")
        return

    rows = history_service.get_product_history(product.id)
    click.echo(f"{product.code} - {product.description} (total produced: {product.total_produced})")
    if not rows:
        click.echo("No history.")
        return

    click.echo("=" * 60)
    click.echo(f"{'Day':<12} {'Type':<12} {'Qty':>6}  Notes")
    click.echo("=" * 60)
    for row in rows:
        day = row.session_date.isoformat() if row.session_date else "-"
        click.echo(f"{day:<12} {row.type:<12} {row.quantity:>6}  {row.notes or ''}")
    click.echo("=" * 60)


@click.group('days')
def days_group():
    """Production day lifecycle commands."""


@days_group.command('status')
@click.argument('session_date')
@with_appcontext
def day_status_cli(session_date):
    """Show the state of a production day."""
    day = _parse_date_arg(session_date)
    status = day_service.get_day_status(day)

    click.echo(f"Day:          {day.isoformat()}")
    click.echo(f"State:        {status.state}")
    click.echo(f"Open:         {'Yes' if status.is_open else 'No'}")
    click.echo(f"Can finalize: {'Yes' if status.can_finalize else 'No'}")
    if status.reason:
        click.echo(f"Reason:       {status.reason}")
    if status.snapshot:
        click.echo(f"Snapshot:     {status.snapshot.total_items} items / {status.snapshot.total_quantity} units")


@days_group.command('finalize')
@click.argument('session_date')
@click.option('--username', default=None, help='User recorded as finalizer')
@with_appcontext
def finalize_day_cli(session_date, username):
    """Freeze the day's ledger into its snapshot."""
    day = _parse_date_arg(session_date)
    try:
        snapshot = day_service.finalize_day(day, _resolve_actor(username))
        click.echo(
            f"PASS Day {day.isoformat()} finalized: "
            f"{snapshot.total_items} items / {snapshot.total_quantity} units"
        )
    except ProductionDayError as e:
        click.echo(f"FAIL [{e.code}] {str(e)}")


@days_group.command('reopen')
@click.argument('session_date')
@click.option('--username', default=None, help='User recorded as reopener')
@with_appcontext
def reopen_day_cli(session_date, username):
    """Reopen a finalized day and restore its ledger."""
    day = _parse_date_arg(session_date)
    try:
        day_service.reopen_day(day, _resolve_actor(username))
        click.echo(f"PASS Day {day.isoformat()} reopened")
    except ProductionDayError as e:
        click.echo(f"FAIL [{e.code}] {str(e)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(days_group)
