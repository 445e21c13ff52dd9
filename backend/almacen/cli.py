# Overview: Flask CLI command groups for bootstrap, users, and ledger maintenance.

# backend/almacen/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and a default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with active status.
# - python -m flask users create --username admin --email admin@almacen.local --password "Password123!"
#   Create a user (prompts if options are omitted).
#
# Ledger:
# - python -m flask ledger reconcile [--repair]
#   Compare every product's stock with its movements; --repair rewrites drifted stock.
# - python -m flask ledger recompute 42 [--repair]
#   Same check for one product.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError
from .services import ledger_service


DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the almacen database and default admin user.

    Creates:
    - All tables (no-op for tables that already exist)
    - User admin/admin@almacen.local with password "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing almacen...")

    db.create_all()
    click.echo("PASS Schema ready")

    admin = db.session.query(User).filter_by(username="admin").first()
    if admin:
        click.echo(f"PASS Using existing admin user (ID: {admin.id})")
    else:
        admin = create_user("admin", "admin@almacen.local", DEFAULT_ADMIN_PASSWORD, full_name="Administrator")
        click.echo(f"PASS Created admin user (ID: {admin.id}, password: {DEFAULT_ADMIN_PASSWORD})")

    click.echo("DONE Initialization complete")


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

    click.echo("PASS Database reset. Run 'flask system init' to create the admin user.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default=None)
@with_appcontext
def create_user_cli(username, email, password, full_name):
    """Create a user."""
    try:
        user = create_user(username, email, password, full_name=full_name)
    except PasswordValidationError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {active_str}")

    click.echo("="*80 + "\n")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection and repair."""


def _echo_result(result) -> None:
    status = "REPAIRED" if result.repaired else ("OK" if result.consistent else "DRIFT")
    click.echo(
        f"{status:<9} {result.code:<20} stock={result.stock:<8} ledger={result.ledger:<8} drift={result.drift}"
    )


@ledger_group.command('reconcile')
@click.option('--repair', is_flag=True, help='Rewrite drifted stock to the ledger sum')
@with_appcontext
def reconcile_cli(repair):
    """Check every product's stock against its movements."""
    try:
        drifted = ledger_service.reconcile_all(repair=repair)
    except LedgerError as e:
        raise click.ClickException(str(e))

    if not drifted:
        click.echo("PASS All products reconcile with the ledger")
        return

    for result in drifted:
        _echo_result(result)

    if not repair:
        click.echo(f"FAIL {len(drifted)} product(s) drifted; rerun with --repair to fix")
        raise SystemExit(1)
    click.echo(f"PASS Repaired {len(drifted)} product(s)")


@ledger_group.command('recompute')
@click.argument('product_id', type=int)
@click.option('--repair/--no-repair', default=True, show_default=True)
@with_appcontext
def recompute_cli(product_id, repair):
    """Rebuild one product's stock from its movements."""
    try:
        result = ledger_service.recompute_from_ledger(product_id, repair=repair)
    except LedgerError as e:
        raise click.ClickException(str(e))
    _echo_result(result)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
