# Overview: Flask CLI command groups for bootstrap, reference data, and periodic jobs.

# backend/eventfin/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org "Org Name"]
#   Idempotent bootstrap: creates tables, default org, and one user per role.
#
# Organizations and users:
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Events" --code "ACME"
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --email fin@acme.test --password "Password123!" --role finance
#
# Events and vendors:
# - python -m flask events create --org-id 1 --name "Spring Summit"
# - python -m flask vendors create --org-id 1 --name "Blue Catering" --service-type catering
# - python -m flask vendors list --org-id 1
#
# CRM payloads (adapters push through here until they have their own endpoint):
# - python -m flask crm record --event-id 1 --system hubspot --data '{"revenueGenerated": 1500}'
#
# Periodic jobs (schedule with cron):
# - python -m flask jobs recalc-roi [--since-hours 1] [--limit 20]
#   Hourly: recompute ROI for events with new approved expenses or CRM syncs.
# - python -m flask jobs generate-insights [--since-hours 24] [--limit 50]
#   Daily: append insights for recently active events.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, User, Event
from .permissions import UserRole
from .services.auth_service import create_user, PasswordValidationError
from .services import crm_service
from .services import jobs_service
from .services import vendor_service
from .errors import ServiceError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@with_appcontext
def init_system(org_name, org_code):
    """
    Initialize eventfin: schema, default organization and default users.

    Creates:
    - All tables (no-op for tables that exist)
    - Default organization (if none exists)
    - Users: admin@, manager@, finance@, viewer@eventfin.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing eventfin...")

    db.create_all()

    org = db.session.query(Organization).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created default organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    click.echo("\nUSERS Creating default users...")
    default_password = "Password123!"

    for role in UserRole:
        email = f"{role.value}@eventfin.local"
        existing = db.session.query(User).filter_by(org_id=org.id, email=email).first()
        if existing:
            click.echo(f"WARN  User '{email}' already exists in org, skipping...")
            continue
        try:
            create_user(email=email, password=default_password, org_id=org.id, role=role)
            click.echo(f"PASS Created user: {email} with role '{role.value}'")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")

    click.echo("\n" + "="*60)
    click.echo("DONE eventfin initialized")
    click.echo("="*60)
    click.echo(f"\nOrganization: {org.name} (ID: {org.id})")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for role in UserRole:
        click.echo(f"   {role.value:<8} -> {role.value}@eventfin.local / {default_password}")
    click.echo("")


# =============================================================================
# ORGANIZATIONS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    click.echo("="*72)

    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")

    click.echo("="*72 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), prompt=True, help='Role')
@click.option('--full-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(org_id, email, password, role, full_name):
    """Create a user with one role."""
    try:
        user = create_user(email=email, password=password, org_id=org_id, role=role, full_name=full_name)
    except (PasswordValidationError, ValueError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_users(org_id):
    """List users with role and active status."""
    query = db.session.query(User)
    if org_id:
        query = query.filter_by(org_id=org_id)
    users = query.order_by(User.org_id, User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Org':<5} {'Email':<35} {'Role':<10} {'Active'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.org_id:<5} {user.email:<35} {user.role:<10} {'Yes' if user.is_active else 'No'}")


# =============================================================================
# EVENTS AND VENDORS
# =============================================================================

@click.group('events')
def events_group():
    """Event bootstrap commands."""


@events_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Event name')
@with_appcontext
def create_event_cli(org_id, name):
    """Create an event in an organization."""
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    event = Event(org_id=org_id, name=name)
    db.session.add(event)
    db.session.commit()
    click.echo(f"PASS Created event: {event.name} (ID: {event.id}) in org '{org.name}'")


@click.group('vendors')
def vendors_group():
    """Vendor reference data commands."""


@vendors_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Vendor name')
@click.option('--service-type', default=None, help='catering, venue, av, ...')
@click.option('--contact-email', default=None, help='Contact email')
@with_appcontext
def create_vendor_cli(org_id, name, service_type, contact_email):
    """Create a vendor."""
    if not db.session.get(Organization, org_id):
        click.echo(f"FAIL Organization ID {org_id} not found")
        return
    try:
        vendor = vendor_service.create_vendor(
            org_id=org_id, name=name, service_type=service_type, contact_email=contact_email
        )
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created vendor: {vendor.name} (ID: {vendor.id})")


@vendors_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive vendors')
@with_appcontext
def list_vendors_cli(org_id, include_inactive):
    """List vendors of an organization."""
    vendors = vendor_service.list_vendors(org_id, include_inactive=include_inactive)
    if not vendors:
        click.echo("No vendors found.")
        return
    for vendor in vendors:
        click.echo(f"{vendor.id:<5} {vendor.name:<30} {vendor.service_type or '-':<15} {'Yes' if vendor.is_active else 'No'}")


# =============================================================================
# CRM PAYLOADS
# =============================================================================

@click.group('crm')
def crm_group():
    """CRM sync payload commands."""


@crm_group.command('record')
@click.option('--event-id', type=int, required=True, help='Event ID')
@click.option('--system', 'crm_system', type=click.Choice(list(crm_service.CRM_SYSTEMS)), required=True)
@click.option('--data', 'data_json', required=True, help='JSON payload')
@click.option('--status', type=click.Choice(list(crm_service.SYNC_STATUSES)), default='success', show_default=True)
@with_appcontext
def record_crm_cli(event_id, crm_system, data_json, status):
    """Store the latest CRM payload for an event."""
    if not db.session.get(Event, event_id):
        click.echo(f"FAIL Event ID {event_id} not found")
        return
    try:
        data = json.loads(data_json)
    except json.JSONDecodeError as e:
        click.echo(f"FAIL Invalid JSON: {e}")
        return
    try:
        sync = crm_service.record_crm_sync(event_id, crm_system, data, status)
    except ServiceError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Recorded {sync.crm_system} sync for event {event_id}")


# =============================================================================
# PERIODIC JOBS
# =============================================================================

@click.group('jobs')
def jobs_group():
    """Periodic recompute jobs."""


@jobs_group.command('recalc-roi')
@click.option('--since-hours', type=int, default=1, show_default=True, help='Activity window')
@click.option('--limit', type=int, default=20, show_default=True, help='Max events per run')
@with_appcontext
def recalc_roi_cli(since_hours, limit):
    """Recompute ROI for recently active events."""
    result = jobs_service.run_roi_recalc(since_hours=since_hours, limit=limit)
    click.echo(f"PASS ROI recalculated for {result['processed']} events")
    if result["failed"]:
        click.echo(f"WARN Failed events: {', '.join(str(i) for i in result['failed'])}")


@jobs_group.command('generate-insights')
@click.option('--since-hours', type=int, default=24, show_default=True, help='Activity window')
@click.option('--limit', type=int, default=50, show_default=True, help='Max events per run')
@with_appcontext
def generate_insights_cli(since_hours, limit):
    """Generate insights for recently active events."""
    result = jobs_service.run_insight_generation(since_hours=since_hours, limit=limit)
    click.echo(f"PASS Insights generated for {result['processed']} events")
    if result["failed"]:
        click.echo(f"WARN Failed events: {', '.join(str(i) for i in result['failed'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(events_group)
    app.cli.add_command(vendors_group)
    app.cli.add_command(crm_group)
    app.cli.add_command(jobs_group)
