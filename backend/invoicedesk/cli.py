# Overview: Flask CLI command groups for bootstrap, inspection, and repair.

# backend/invoicedesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin --admin-password "Password123!"]
#   Idempotent bootstrap: creates tables, permissions, system roles, default grants and an admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role tag, roles and active status.
# - python -m flask users create-admin --username admin --password "Password123!"
#   Create an administrator (prompts if options are omitted).
# - python -m flask users refresh-flags
#   Recompute every user's legacy permission snapshot.
#
# Permission inspection/repair:
# - python -m flask perms list [--role basic_distributor] [--module invoices]
#   List permissions (optionally filtered by role or module).
# - python -m flask perms check dist1 invoices create
#   Check whether a user has a permission.
# - python -m flask perms grant basic_distributor reports view_own
#   Grant a permission to a role.
# - python -m flask perms revoke basic_distributor reports view_own
#   Revoke a permission from a role.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Role, Permission
from .services import auth_service, permission_service
from .services.errors import ServiceError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default=None, help='Create this administrator if missing')
@click.option('--admin-password', default=None, help='Password for the administrator')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Initialize the permission catalogue and system roles.

    Creates:
    - All permission definitions
    - Roles: admin, basic_distributor
    - Default role grants
    - Optionally an administrator account

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing InvoiceDesk...")
    db.create_all()

    click.echo("\nSECURITY Initializing permissions...")
    perm_count = permission_service.initialize_permissions()
    role_count = permission_service.create_system_roles()
    assignment_count = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions, {role_count} roles, {assignment_count} role assignments")

    if admin_username:
        if db.session.query(User).filter_by(username=admin_username).first():
            click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        elif not admin_password:
            click.echo("FAIL --admin-password is required with --admin-username")
        else:
            try:
                auth_service.create_admin(admin_username, admin_password)
                click.echo(f"PASS Created administrator '{admin_username}'")
            except ServiceError as e:
                click.echo(f"FAIL Could not create '{admin_username}': {e.message}")

    click.echo("\nDONE InvoiceDesk initialized.")


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


@users_group.command('create-admin')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin_cli(username, password):
    """Create an administrator account."""
    try:
        user = auth_service.create_admin(username, password)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created administrator '{user.username}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<24} {'Tag':<12} {'Active':<8} {'Roles'}")
    click.echo("="*90)

    for user in users:
        roles_str = ", ".join(permission_service.get_user_role_names(user.id)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<12} {active_str:<8} {roles_str}")

    click.echo("="*90 + "\n")


@users_group.command('refresh-flags')
@with_appcontext
def refresh_flags_cli():
    """Recompute the legacy permission snapshot for every user."""
    users = db.session.query(User).all()
    for user in users:
        permission_service.refresh_legacy_flags(user)
    db.session.commit()
    click.echo(f"PASS Refreshed legacy flags for {len(users)} users")


@click.group('perms')
def perms_group():
    """Permission inspection and repair commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--module', help='Filter by module')
@with_appcontext
def list_permissions_cli(role, module):
    """List permissions, optionally filtered by role or module."""
    if role:
        role_obj = db.session.query(Role).filter_by(name=role).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return
        perms = permission_service.get_role_permissions(role_obj.id)
        title = f"Permissions for role: {role}"
    else:
        query = db.session.query(Permission)
        if module:
            query = query.filter_by(module=module)
        perms = query.order_by(Permission.module, Permission.action).all()
        title = f"Permissions in module: {module}" if module else "All Permissions"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")

    current_module = None
    for perm in perms:
        if perm.module != current_module:
            if current_module:
                click.echo("")
            click.echo(f"MODULE {perm.module}")
            click.echo("-"*80)
            current_module = perm.module
        click.echo(f"  {perm.name:<34} {perm.display_name}")

    click.echo(f"\n Total: {len(perms)} permissions\n")


@perms_group.command('grant')
@click.argument('role_name')
@click.argument('module')
@click.argument('action')
@click.option('--allow-system', is_flag=True, help='Allow editing a system role')
@with_appcontext
def grant_permission_cli(role_name, module, action, allow_system):
    """Grant a permission to a role."""
    try:
        permission_service.grant_permission_to_role(role_name, module, action, allow_system=allow_system)
        click.echo(f"PASS Granted '{module}.{action}' to role '{role_name}'")
    except ServiceError as e:
        click.echo(f"FAIL Error: {e.message}")


@perms_group.command('revoke')
@click.argument('role_name')
@click.argument('module')
@click.argument('action')
@click.option('--allow-system', is_flag=True, help='Allow editing a system role')
@with_appcontext
def revoke_permission_cli(role_name, module, action, allow_system):
    """Revoke a permission from a role."""
    try:
        revoked = permission_service.revoke_permission_from_role(role_name, module, action, allow_system=allow_system)
    except ServiceError as e:
        click.echo(f"FAIL Error: {e.message}")
        return

    if revoked:
        click.echo(f"PASS Revoked '{module}.{action}' from role '{role_name}'")
    else:
        click.echo(f"WARN  Permission '{module}.{action}' was not granted to '{role_name}'")


@perms_group.command('check')
@click.argument('username')
@click.argument('module')
@click.argument('action')
@with_appcontext
def check_permission_cli(username, module, action):
    """Check if a user has a specific permission."""
    user = db.session.query(User).filter_by(username=username).first()

    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    code = f"{module}.{action}"
    if permission_service.user_has_permission(user.id, module, action):
        click.echo(f"PASS User '{username}' HAS permission '{code}'")
    else:
        click.echo(f"FAIL User '{username}' DOES NOT HAVE permission '{code}'")

    roles = permission_service.get_user_role_names(user.id)
    all_perms = permission_service.get_user_permissions(user.id)

    click.echo(f"\nUser roles: {', '.join(roles) or 'none'}")
    click.echo(f"Total permissions: {len(all_perms)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
