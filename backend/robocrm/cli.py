# Overview: Flask CLI command group for bootstrap and inspection.

# backend/robocrm/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask robocrm <command> [options]
#
# - python -m flask robocrm init-db
#   Create all tables (use `flask db upgrade` once migrations exist).
# - python -m flask robocrm create-user --email admin@robocrm.local --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask robocrm seed-settings
#   Store catalog defaults for every setting that has no row yet.
# - python -m flask robocrm show-settings
#   Print the effective company settings.
# - python -m flask robocrm next-contract-number [--sequential]
#   Preview the next contract number without reserving it.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.auth import ALL_ROLES, ROLE_SALESPERSON
from .services import numbering_service, settings_service
from .services.auth_service import PasswordValidationError, UserError, create_user


@click.group("robocrm")
def robocrm_group():
    """RoboCRM bootstrap and inspection commands."""


@robocrm_group.command("init-db")
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@robocrm_group.command("create-user")
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--full-name", default=None)
@click.option("--role", type=click.Choice(ALL_ROLES), default=ROLE_SALESPERSON, show_default=True)
@with_appcontext
def create_user_command(email, password, full_name, role):
    try:
        user = create_user(email, password, full_name=full_name, role=role)
    except (PasswordValidationError, UserError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@robocrm_group.command("seed-settings")
@with_appcontext
def seed_settings():
    written = settings_service.ensure_defaults_seeded()
    if not written:
        click.echo("SKIP All settings already stored")
        return
    for key in written:
        click.echo(f"PASS Seeded {key}")


@robocrm_group.command("show-settings")
@with_appcontext
def show_settings():
    for item in settings_service.list_settings():
        source = "default" if item["inherited"] else "stored"
        click.echo(f"{item['key']:<34} {item['value']!r:<30} ({source})")


@robocrm_group.command("next-contract-number")
@click.option("--sequential", is_flag=True, help="Use the CON-NNNNN strategy of offer-derived contracts.")
@with_appcontext
def next_contract_number(sequential):
    if sequential:
        click.echo(numbering_service.generate_sequential_contract_number())
        return
    mask = settings_service.load_company_settings().contract_number_mask
    click.echo(numbering_service.generate_masked_contract_number(mask))


def register_commands(app):
    app.cli.add_command(robocrm_group)
