# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/cutquote/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default material catalog.
#
# Users (the engine stores no passwords; access is by issued token):
# - python -m flask users create --email ops@example.com --name "Ops" --role operator
# - python -m flask users issue-token --email ops@example.com [--ttl-hours 24]
#   Prints a bearer token once; only its hash is stored.
# - python -m flask users revoke-tokens --email ops@example.com
# - python -m flask users list [--role customer]
#
# Materials:
# - python -m flask materials list [--all]
# - python -m flask materials create --name "Steel S235" --thickness 3 --price 42.50 [--speed 1.0]

import click
from flask.cli import with_appcontext

from .errors import QuoteEngineError
from .extensions import db
from .models import Material, User
from .permissions import USER_ROLES, Actor, Role
from .services import material_service, session_service


DEFAULT_MATERIALS = [
    ("Steel S235", "2", "38.00", "1.00"),
    ("Steel S235", "5", "74.00", "1.40"),
    ("Stainless 304", "2", "96.00", "1.60"),
    ("Aluminium 5083", "3", "82.00", "0.80"),
]

# Catalog writes from the CLI run as an admin without a user row
CLI_ADMIN = Actor(user_id=None, role=Role.ADMIN)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables (if missing) and seed the default material catalog.

    Safe to run repeatedly: existing materials are skipped.
    """
    click.echo("START Initializing CutQuote...")
    db.create_all()

    created = 0
    for name, thickness, price, speed in DEFAULT_MATERIALS:
        full_name = f"{name} {thickness}mm"
        if db.session.query(Material).filter_by(name=full_name).first():
            click.echo(f"WARN  Material '{full_name}' already exists, skipping...")
            continue
        material_service.create_material(CLI_ADMIN, {
            "name": full_name,
            "thickness_mm": thickness,
            "price_per_sqm": price,
            "cutting_speed_factor": speed,
        })
        created += 1

    click.echo(f"PASS Created {created} materials")
    click.echo("DONE CutQuote initialized")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--name', prompt=True)
@click.option('--role', type=click.Choice([r.value for r in USER_ROLES]), default='customer', show_default=True)
@click.option('--company', 'company_name', default=None)
@click.option('--phone', default=None)
@with_appcontext
def create_user_command(email, name, role, company_name, phone):
    """Create a user."""
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"User '{email}' already exists")

    user = User(email=email, name=name.strip(), role=role, company_name=company_name, phone=phone)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.id}: {user.email} ({user.role})")


@users_group.command('issue-token')
@click.option('--email', required=True)
@click.option('--ttl-hours', type=int, default=None, help='Defaults to SESSION_TTL_HOURS')
@with_appcontext
def issue_token_command(email, ttl_hours):
    """Issue a bearer token for a user (printed once)."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User '{email}' not found")
    try:
        session, token = session_service.create_session(user.id, ttl_hours=ttl_hours)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Token for {user.email} (expires {session.expires_at.isoformat()}Z):")
    click.echo(token)


@users_group.command('revoke-tokens')
@click.option('--email', required=True)
@with_appcontext
def revoke_tokens_command(email):
    """Revoke all bearer tokens of a user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User '{email}' not found")
    count = session_service.revoke_user_sessions(user.id)
    click.echo(f"PASS Revoked {count} token(s) for {user.email}")


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in USER_ROLES]), default=None)
@with_appcontext
def list_users_command(role):
    """List users with roles and active status."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.email:<35} {user.role:<9} {status}")


@click.group('materials')
def materials_group():
    """Material catalog inspection."""


@materials_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated materials')
@with_appcontext
def list_materials_command(include_inactive):
    for m in material_service.list_materials(CLI_ADMIN, include_inactive=include_inactive):
        flag = "" if m.is_active else "  (inactive)"
        click.echo(f"{m.id:>4}  {m.name:<30} {m.thickness_mm}mm  {m.price_per_sqm}/m2  x{m.cutting_speed_factor}{flag}")


@materials_group.command('create')
@click.option('--name', required=True)
@click.option('--thickness', 'thickness_mm', required=True)
@click.option('--price', 'price_per_sqm', required=True)
@click.option('--speed', 'cutting_speed_factor', default="1.0", show_default=True)
@with_appcontext
def create_material_command(name, thickness_mm, price_per_sqm, cutting_speed_factor):
    try:
        material = material_service.create_material(CLI_ADMIN, {
            "name": name,
            "thickness_mm": thickness_mm,
            "price_per_sqm": price_per_sqm,
            "cutting_speed_factor": cutting_speed_factor,
        })
    except QuoteEngineError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created material {material.id}: {material.name}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(materials_group)
