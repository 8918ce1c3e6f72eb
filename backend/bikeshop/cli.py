# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@bikeshop.local]
#   Idempotent bootstrap: creates tables, default settings and a first admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role admin]
#   List all users with role and active status.
# - python -m flask users create --email staff@bikeshop.local --name "Sam" --password "Password123" [--admin]
#   Create a user (prompts if options are omitted).
# - python -m flask users promote staff@bikeshop.local
#   Give an existing user the admin role.
#
# Capability inspection:
# - python -m flask caps list [--category SALES]
#   List capabilities with their role defaults.
# - python -m flask caps check staff@bikeshop.local RECORD_SALES
#   Check whether a user holds a capability.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 7
#   Delete sessions that expired or were revoked before the cutoff.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import CAPABILITY_DEFINITIONS, DEFAULT_ROLE_CAPABILITIES, VALID_ROLES, parse_capability
from .services import auth_service, permission_service, session_service, settings_service
from .services.auth_service import AuthError, PasswordValidationError


def _find_user(email: str) -> User | None:
    return db.session.query(User).filter_by(email=auth_service.normalize_email(email)).first()


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@bikeshop.local', help='Email of the first admin')
@click.option('--admin-name', default='Admin', help='Name of the first admin')
@click.option('--admin-password', default='Password123', help='Password of the first admin')
@with_appcontext
def init_system(admin_email, admin_name, admin_password):
    """
    Initialize the shop: tables, default business settings, and a first admin.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing bike shop...")

    db.create_all()
    click.echo("PASS Tables ready")

    settings_service.get_settings()
    click.echo("PASS Business settings ready")

    existing = _find_user(admin_email)
    if existing:
        if existing.role != "admin":
            auth_service.promote_to_admin(existing.id)
            click.echo(f"PASS Promoted existing user {existing.email} to admin")
        else:
            click.echo(f"WARN  Admin {existing.email} already exists, skipping...")
    else:
        try:
            user = auth_service.sign_up(admin_email, admin_password, admin_name)
        except (AuthError, PasswordValidationError) as e:
            click.echo(f"FAIL Could not create admin '{admin_email}': {e}")
            return
        auth_service.promote_to_admin(user.id)
        click.echo(f"PASS Created admin: {user.email}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Bike shop initialized")
    click.echo("=" * 60)


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
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.email.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<34} {'Email':<30} {'Name':<20} {'Role':<7} {'Active'}")
    click.echo("=" * 100)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<34} {user.email:<30} {user.name:<20} {user.role:<7} {active_str}")
    click.echo("=" * 100 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--admin', 'make_admin', is_flag=True, help='Create the user as an admin')
@with_appcontext
def create_user_cli(email, name, password, make_admin):
    """
    Create a new user.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        user = auth_service.sign_up(email, password, name)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except AuthError as e:
        click.echo(f"FAIL {e}")
        return

    if make_admin:
        auth_service.promote_to_admin(user.id)
    click.echo(f"PASS Created user: {user.email} ({user.role}) id={user.id}")


@users_group.command('promote')
@click.argument('email')
@with_appcontext
def promote_user_cli(email):
    """Give an existing user the admin role."""
    user = _find_user(email)
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    auth_service.promote_to_admin(user.id)
    permission_service.log_security_event(
        user_id=None,
        event_type="ROLE_CHANGED",
        success=True,
        resource=f"users/{user.id}",
        action="admin",
        reason="Promoted via CLI",
    )
    click.echo(f"PASS {user.email} is now an admin")


@click.group('caps')
def caps_group():
    """Capability inspection commands."""


@caps_group.command('list')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_caps(category):
    """List capabilities and which roles hold them by default."""
    for cap, name, description, cap_category in CAPABILITY_DEFINITIONS:
        if category and cap_category != category.upper():
            continue
        roles = [role for role, caps in sorted(DEFAULT_ROLE_CAPABILITIES.items()) if cap in caps]
        protected = " (protected)" if cap in permission_service.PROTECTED_CAPABILITIES else ""
        click.echo(f"{cap.value:<20} {cap_category:<10} {', '.join(roles):<12} {description}{protected}")


@caps_group.command('check')
@click.argument('email')
@click.argument('capability')
@with_appcontext
def check_cap_cli(email, capability):
    """Check if a user holds a specific capability."""
    try:
        cap = parse_capability(capability)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    user = _find_user(email)
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    if permission_service.user_has_capability(user.id, cap):
        click.echo(f"PASS User '{email}' HAS capability '{cap.value}'")
    else:
        click.echo(f"FAIL User '{email}' DOES NOT HAVE capability '{cap.value}'")

    overrides = permission_service.list_capability_overrides(user.id)
    click.echo(f"\nRole: {permission_service.resolve_role(user.id)}")
    click.echo(f"Overrides: {', '.join(f'{o.override_type} {o.capability}' for o in overrides) or 'none'}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', default=7, type=int, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete sessions that expired or were revoked before the cutoff."""
    deleted = session_service.cleanup_expired_sessions(older_than=timedelta(days=older_than_days))
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(caps_group)
    app.cli.add_command(maintenance_group)
