# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/canonjet/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables and seed the default accounts on an empty database.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--rol repartidor]
#   List users with role and contact info.
# - python -m flask users create --usuario ana --password secreto --rol gestor
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import USER_ROLES
from .services import user_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and the default accounts.

    Seeds gestor, empresa, empresaa and repartidor (password "123") only
    when the users table is empty. Change those passwords in production!
    """
    click.echo("START Initializing CanonJet...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = user_service.seed_default_users()
    if created:
        for user in created:
            click.echo(f"PASS Created user {user.username} ({user.role})")
    else:
        click.echo("PASS Users already present, nothing seeded")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed users.")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--rol', 'role', type=click.Choice(sorted(USER_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role."""
    users = user_service.list_users(role)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<12} {'Phone':<16} {'Push'}")
    click.echo("="*80)

    for user in users:
        push_str = "Yes" if user.push_token else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<12} {user.phone or '-':<16} {push_str}")

    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--usuario', 'username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--rol', 'role', type=click.Choice(sorted(USER_ROLES)), prompt=True, help='Role')
@click.option('--telefono', 'phone', default=None, help='Phone number')
@click.option('--tarjeta', 'payment_card', default=None, help='Payment card')
@with_appcontext
def create_user_cli(username, password, role, phone, payment_card):
    """Create a new user."""
    try:
        user = user_service.create_user(
            {"username": username.strip(), "role": role, "phone": phone, "payment_card": payment_card},
            password,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
