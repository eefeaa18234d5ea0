# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/bakelink/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "bakelink:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users create-admin [--email admin@bakelink.local] [--password "Admin123!"] [--name "System Admin"]
#   Create the admin account, or reset its password/role if it exists.
#   Defaults come from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME.
# - python -m flask users list
#   List all users with role and active status.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import upsert_admin
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-admin')
@click.option('--email', default=None, help='Admin email (default: ADMIN_EMAIL)')
@click.option('--password', default=None, help='Admin password (default: ADMIN_PASSWORD)')
@click.option('--name', default=None, help='Admin display name (default: ADMIN_NAME)')
@with_appcontext
def create_admin(email, password, name):
    """Create or refresh the bootstrap admin account."""
    email = email or current_app.config["ADMIN_EMAIL"]
    password = password or current_app.config["ADMIN_PASSWORD"]
    name = name or current_app.config["ADMIN_NAME"]

    try:
        user, created = upsert_admin(name=name, email=email, password=password)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    verb = "Created" if created else "Updated"
    click.echo(f"PASS {verb} admin account: {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.email:<40} {user.role:<6} {status}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
