# Overview: Flask CLI command groups for bootstrap, user inspection, maintenance and reports.

# backend/zimmet/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --admin-email admin@example.com --admin-password "Password123!"
#   Idempotent bootstrap: creates tables and the first ADMIN account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--all]
#   List users (add --all to include deactivated accounts).
# - python -m flask users create --email a@example.com --full-name "Ayse Yilmaz" --password "Password123!" --role USER
#   Create a user (prompts if options are omitted).
# - python -m flask users deactivate a@example.com
#   Soft-delete a user and revoke their sessions.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked session tokens past the retention window.
#
# Reports:
# - python -m flask reports overdue [--threshold-minutes 15]
#   Print pending custody transactions older than the threshold.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Role, User
from .services import reporting_service, session_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', required=True, help='Email of the first admin')
@click.option('--admin-password', required=True, help='Password of the first admin')
@click.option('--admin-name', default='Administrator', show_default=True, help='Full name of the first admin')
@with_appcontext
def init_system(admin_email, admin_password, admin_name):
    """
    Create all tables and the first ADMIN account.

    Safe to run repeatedly: an existing account with this email is left alone.
    """
    click.echo("START Initializing zimmet...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{existing.email}' already exists, skipping...")
        return

    try:
        admin = user_service.create_user(
            email=admin_email,
            password=admin_password,
            full_name=admin_name,
            role=Role.ADMIN,
        )
    except DomainError as e:
        click.echo(f"FAIL Failed to create admin: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin: {admin.email} (ID: {admin.id})")
    click.echo("\nSECURITY Password requirements: 8+ chars, uppercase, lowercase, digit, special char")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated users')
@with_appcontext
def list_users(include_inactive):
    """List users with role and active status."""
    users = user_service.list_users(include_inactive=include_inactive)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Email':<32} {'Name':<28} {'Department':<20} {'Role':<7} {'Active'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.email:<32} {user.full_name:<28} {user.department or '-':<20} "
            f"{user.role.value:<7} {active_str}"
        )

    click.echo("="*100 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--full-name', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--department', default=None)
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.USER.value, show_default=True)
@with_appcontext
def create_user_cli(email, full_name, password, department, role):
    """Create a user."""
    try:
        user = user_service.create_user(
            email=email,
            password=password,
            full_name=full_name,
            department=department,
            role=role,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.full_name} ({user.email}) with role '{user.role.value}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_user_cli(email):
    """Soft-delete a user and revoke their sessions."""
    try:
        user = user_service.get_by_email(email)
        user.is_active = False
        revoked = session_service.revoke_all_user_sessions(user.id, reason="Account deactivated from CLI")
        db.session.commit()
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Deactivated {user.email}; revoked {revoked} sessions")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """
    Delete expired and revoked session tokens.

    Retention: session_service.SESSION_RETENTION.
    """
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@click.group('reports')
def reports_group():
    """Read-only reports."""


@reports_group.command('overdue')
@click.option('--threshold-minutes', type=int, default=None, help='Defaults to OVERDUE_THRESHOLD_MINUTES')
@with_appcontext
def overdue_cli(threshold_minutes):
    """Pending custody transactions older than the threshold, oldest first."""
    rows = reporting_service.overdue(threshold_minutes=threshold_minutes)

    if not rows:
        click.echo("No overdue transactions.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Document':<12} {'From':<26} {'To':<26} {'Created':<22} {'Minutes'}")
    click.echo("="*100)

    for row in rows:
        from_name = row["from_user"]["full_name"] if row["from_user"] else "-"
        to_name = row["to_user"]["full_name"] if row["to_user"] else "-"
        click.echo(
            f"{row['document_number']:<12} {from_name:<26} {to_name:<26} "
            f"{row['created_at']:<22} {row['overdue_minutes']}"
        )

    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
    app.cli.add_command(reports_group)
