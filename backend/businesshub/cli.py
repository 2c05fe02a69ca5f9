# Overview: `flask` command groups for setting up tenants and staff, and for housekeeping.

# Run from the backend directory with FLASK_APP=wsgi.py:
#
#   flask system init [--org "Acme IT"] [--org-code ACME]
#   flask system init-permissions
#   flask system reset-db --yes                  (drops every table)
#   flask orgs list | create --name N --code C
#   flask users list [--org-id 1] | create --org-id 1 --username ... --role admin
#   flask perms list [--role manager] [--category TASKS]
#   flask perms grant|revoke [--org-id 1] ROLE CODE
#   flask tasks extend-recurring [--org-id 1] [--within-days 90]
#   flask maintenance cleanup-security-events | cleanup-sessions
#   flask demo seed [--org-id 1] [--serials-per-product 3]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Role, Permission, RolePermission, Organization
from .services.auth_service import create_user, create_default_roles, assign_role, PasswordValidationError
from .services import permission_service
from .services import maintenance_service
from .services import task_service
from .services import tenant_service
from .services import product_service, business_service, instance_service
from .permissions import DEFAULT_ROLES
from .validation import ValidationError, ConflictError


ROLE_NAMES = [name for name, _, _ in DEFAULT_ROLES]

# Starter accounts created by `system init`; change the password after first login.
STARTER_PASSWORD = "Password123!"
STARTER_ACCOUNTS = [(role, f"{role}@businesshub.local", role) for role in ROLE_NAMES]


def _resolve_org(org_id):
    if org_id:
        return db.session.get(Organization, org_id)
    return db.session.query(Organization).order_by(Organization.id).first()


def _org_or_fail(org_id):
    org = _resolve_org(org_id)
    if org is None:
        click.echo("FAIL Organization not found. Run 'flask system init' first.")
    return org


def _table(headers, rows):
    """Print rows as fixed-width columns; headers is a list of (title, width)."""
    line = "=" * sum(width + 1 for _, width in headers)
    click.echo(line)
    click.echo(" ".join(f"{title:<{width}}" for title, width in headers))
    click.echo(line)
    for row in rows:
        click.echo(" ".join(f"{str(value):<{width}}" for value, (_, width) in zip(row, headers)))
    click.echo(line)


def _create_staff(org, username, email, password, role):
    """Create one account with a role; reports the outcome instead of raising."""
    try:
        user = create_user(username=username, email=email, password=password, org_id=org.id)
        assign_role(user.id, role)
    except (PasswordValidationError, ValueError) as e:
        click.echo(f"FAIL Could not create '{username}': {e}")
        return None
    click.echo(f"PASS Created user {username} <{email}> as {role} in {org.name}")
    return user


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """Database bootstrap and repair."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Name for the first organization')
@click.option('--org-code', default='DEFAULT', help='Code for the first organization')
@with_appcontext
def init_system(org_name, org_code):
    """
    Create the schema, a first organization, the permission catalog and one
    starter account per built-in role. Safe to run again.
    """
    db.create_all()

    org = _resolve_org(None)
    if org is None:
        org = tenant_service.create_organization(org_name, org_code)
        click.echo(f"PASS Created organization {org.name} (id {org.id}, code {org.code})")
    else:
        create_default_roles(org.id)
        click.echo(f"PASS Using organization {org.name} (id {org.id})")

    created = permission_service.initialize_permissions()
    linked = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Permission catalog: {created} new codes, {linked} new role links")

    for username, email, role in STARTER_ACCOUNTS:
        if db.session.query(User.id).filter_by(org_id=org.id, username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping")
            continue
        _create_staff(org, username, email, STARTER_PASSWORD, role)

    click.echo(f"DONE BusinessHub ready. Starter accounts use the password {STARTER_PASSWORD!r}.")


@system_group.command('init-permissions')
@with_appcontext
def init_permissions():
    """Add missing permission codes and link them to every organization's built-in roles."""
    created = permission_service.initialize_permissions()
    linked = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Permission catalog: {created} new codes, {linked} new role links")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All data is lost."""
    if not yes:
        click.confirm("WARN This deletes every organization and all CRM data. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Database recreated. Run 'flask system init' next.")


# =============================================================================
# ORGANIZATIONS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Tenant management."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    rows = [
        (
            org.id,
            org.name,
            org.code or "-",
            "Yes" if org.is_active else "No",
            db.session.query(User).filter_by(org_id=org.id).count(),
        )
        for org in orgs
    ]
    _table([("ID", 5), ("Name", 30), ("Code", 12), ("Active", 7), ("Users", 6)], rows)


@orgs_group.command('create')
@click.option('--name', required=True)
@click.option('--code', required=True, help='Short unique code')
@with_appcontext
def create_org_cli(name, code):
    """Add a tenant with the admin, manager and user roles."""
    try:
        org = tenant_service.create_organization(name, code)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created organization {org.name} (id {org.id}, code {org.code})")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """Staff accounts."""


@users_group.command('create')
@click.option('--org-id', type=int, help='Defaults to the first organization')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='8+ chars with upper, lower, digit and special character')
@click.option('--role', type=click.Choice(ROLE_NAMES), prompt=True)
@with_appcontext
def create_user_cli(org_id, username, email, password, role):
    org = _org_or_fail(org_id)
    if org is not None:
        _create_staff(org, username, email, password, role)


@users_group.command('list')
@click.option('--org-id', type=int, help='Only this organization')
@with_appcontext
def list_users(org_id):
    query = db.session.query(User)
    if org_id:
        query = query.filter_by(org_id=org_id)
    users = query.order_by(User.org_id, User.username).all()
    if not users:
        click.echo("No users found.")
        return

    rows = [
        (
            u.id,
            u.org_id,
            u.username,
            u.email,
            "Yes" if u.is_active else "No",
            ", ".join(permission_service.get_user_role_names(u.id)) or "none",
        )
        for u in users
    ]
    _table([("ID", 5), ("Org", 4), ("Username", 20), ("Email", 30), ("Active", 7), ("Roles", 20)], rows)


# =============================================================================
# PERMISSIONS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission catalog and role grants."""


@perms_group.command('list')
@click.option('--role', help='Only codes granted to this role')
@click.option('--org-id', type=int, help='Organization the role belongs to')
@click.option('--category', help='Only this category, e.g. TASKS')
@with_appcontext
def list_permissions_cli(role, org_id, category):
    query = db.session.query(Permission)
    if role:
        org = _resolve_org(org_id)
        role_row = db.session.query(Role).filter_by(org_id=org.id, name=role).first() if org else None
        if role_row is None:
            click.echo(f"FAIL Role '{role}' not found")
            return
        query = query.join(RolePermission, RolePermission.permission_id == Permission.id).filter(
            RolePermission.role_id == role_row.id
        )
    if category:
        query = query.filter(Permission.category == category)

    permissions = query.order_by(Permission.category, Permission.code).all()
    by_category = {}
    for permission in permissions:
        by_category.setdefault(permission.category, []).append(permission)

    for name, members in by_category.items():
        click.echo(f"\n{name}")
        for permission in members:
            click.echo(f"  {permission.code:<28} {permission.name}")
    click.echo(f"\n{len(permissions)} permissions")


@perms_group.command('grant')
@click.option('--org-id', type=int, help='Defaults to the first organization')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def grant_permission_cli(org_id, role_name, permission_code):
    org = _org_or_fail(org_id)
    if org is None:
        return
    try:
        permission_service.grant_permission_to_role(org.id, role_name, permission_code)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Granted '{permission_code}' to role '{role_name}'")


@perms_group.command('revoke')
@click.option('--org-id', type=int, help='Defaults to the first organization')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def revoke_permission_cli(org_id, role_name, permission_code):
    org = _org_or_fail(org_id)
    if org is None:
        return
    try:
        revoked = permission_service.revoke_permission_from_role(org.id, role_name, permission_code)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    if revoked:
        click.echo(f"PASS Revoked '{permission_code}' from role '{role_name}'")
    else:
        click.echo(f"WARN  '{permission_code}' was not granted to '{role_name}'")


# =============================================================================
# TASKS
# =============================================================================

@click.group('tasks')
def tasks_group():
    """Task scheduling commands."""


@tasks_group.command('extend-recurring')
@click.option('--org-id', type=int, help='Only this organization (all if omitted)')
@click.option('--within-days', type=int, default=task_service.EXTEND_WITHIN_DAYS, show_default=True)
@with_appcontext
def extend_recurring_cli(org_id, within_days):
    """Extend recurring series that end within the window."""
    result = task_service.extend_recurring(org_id=org_id, within_days=within_days)
    for row in result["extended"]:
        click.echo(
            f"PASS Task {row['task_id']} '{row['title']}' -> {row['recurrence_end_date']} "
            f"(+{row['instances_created']} occurrences)"
        )
    click.echo(result["message"])


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked session tokens."""
    deleted = maintenance_service.cleanup_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions.")


# =============================================================================
# DEMO DATA
# =============================================================================

DEMO_PRODUCTS = [
    # name, category, sku, price_cents, pricing_type, is_serialized
    ("Dell Latitude 5440", "Hardware", "HW-LAT-5440", 89900, "one-off", True),
    ("Cisco Meraki MX68", "Networking", "NET-MX68", 64900, "one-off", True),
    ("Microsoft 365 Business", "Software", "SW-M365-BP", 1850, "monthly", False),
    ("Managed Backup", "Services", "SV-BACKUP", 2500, "monthly", False),
    ("Premium Support", "Support", "SP-PREMIUM", 120000, "yearly", False),
]

DEMO_BUSINESSES = [
    # name, category, location, email
    ("Harbour Dental", "Healthcare", "Bristol", "office@harbourdental.example"),
    ("Northgate Logistics", "Logistics", "Leeds", "it@northgate.example"),
    ("Copperleaf Studio", "Creative", "Manchester", "hello@copperleaf.example"),
]


@click.group('demo')
def demo_group():
    """Demo data commands."""


@demo_group.command('seed')
@click.option('--org-id', type=int, help='Organization ID (default org if omitted)')
@click.option('--serials-per-product', type=int, default=3, show_default=True)
@with_appcontext
def seed_demo(org_id, serials_per_product):
    """Create a sample catalog, businesses and in-stock serial numbers."""
    org = _org_or_fail(org_id)
    if org is None:
        return

    for name, category, sku, price_cents, pricing_type, is_serialized in DEMO_PRODUCTS:
        try:
            product = product_service.create_product(
                patch={
                    "name": name,
                    "category": category,
                    "sku": sku,
                    "price_cents": price_cents,
                    "pricing_type": pricing_type,
                    "is_serialized": is_serialized,
                },
                org_id=org.id,
            )
        except ConflictError:
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue
        click.echo(f"PASS Product: {name}")

        if not is_serialized:
            continue
        for n in range(1, serials_per_product + 1):
            serial = f"{sku}-{n:04d}"
            try:
                instance_service.create_instance(
                    patch={"product_id": product["id"], "serial_number": serial},
                    org_id=org.id,
                )
            except (ValidationError, ConflictError) as e:
                click.echo(f"WARN  Serial {serial}: {e}")

    for name, category, location, email in DEMO_BUSINESSES:
        business_service.create_business(
            patch={"name": name, "category": category, "location": location, "email": email},
            org_id=org.id,
        )
        click.echo(f"PASS Business: {name}")

    click.echo(f"DONE Demo data created in {org.name}")


def register_commands(app):
    for group in (system_group, orgs_group, users_group, perms_group, tasks_group, maintenance_group, demo_group):
        app.cli.add_command(group)
