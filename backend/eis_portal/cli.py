# Overview: Flask CLI command groups for bootstrap, demo data, and maintenance.

# backend/eis_portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv and set SECRET_KEY.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default ADMIN and OPS users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ops users:
# - python -m flask users list
# - python -m flask users create --name "Jo Bloggs" --email jo@example.com --password "Password123!" --role OPS
#
# Demo data:
# - python -m flask deals seed-demo
#   Three sample deals (onboarding, submitted with accountant, complete); prints portal links.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired and revoked ops sessions older than the retention window.

import click
from datetime import date, datetime
from flask.cli import with_appcontext

from .extensions import db
from .models import Accountant, Deal, Founder, Investor, Milestone, User
from .models.auth import USER_ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services import session_service, token_service


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = (
    ("Admin User", "admin@eis-portal.local", "ADMIN"),
    ("Operations Team", "ops@eis-portal.local", "OPS"),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and the default staff users.

    Users: admin@eis-portal.local (ADMIN), ops@eis-portal.local (OPS)
    Password for both: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing EIS portal...")

    db.create_all()
    click.echo("PASS Tables created")

    for name, email, role in DEFAULT_USERS:
        existing = db.session.query(User).filter_by(email=email).first()
        if existing:
            click.echo(f"PASS User exists: {email} ({existing.role})")
            continue
        create_user(name, email, DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user: {email} ({role})")

    click.echo("DONE Initialization complete.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA! Uploaded files are left on disk.
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
    """Ops user inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='OPS', show_default=True)
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a staff user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name, email, password, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password rejected: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List staff users with role and active status."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.email:<35} {u.role:<7} {status}")


# Sample rounds: one at each end of the lifecycle and one mid-way with an accountant
DEMO_DEALS = (
    {
        "company_name": "TechStart Ltd",
        "company_number": "12345678",
        "scheme_type": "SEIS",
        "investment_date": date(2025, 1, 10),
        "investment_amount_pence": 150_000_00,
        "status": "AWAITING_ONBOARDING",
        "founder": {"name": "John Smith", "email": "john@techstart.io"},
        "investors": (
            {"name": "Alice Johnson", "address_line1": "123 Investment Street", "city": "London",
             "postcode": "SW1A 1AA", "shares_issued": 1000, "amount_subscribed_pence": 50_000_00},
            {"name": "Bob Williams", "address_line1": "456 Capital Road", "address_line2": "Flat 2B",
             "city": "Manchester", "postcode": "M1 1AA", "shares_issued": 2000,
             "amount_subscribed_pence": 100_000_00},
        ),
        "milestones": (),
    },
    {
        "company_name": "GreenEnergy Co",
        "company_number": "87654321",
        "scheme_type": "EIS",
        "investment_date": date(2025, 1, 5),
        "investment_amount_pence": 500_000_00,
        "status": "SUBMITTED",
        "founder": {"name": "Sarah Green", "email": "sarah@greenenergy.co", "is_handling_submission": False},
        "accountant": {
            "firm_name": "Smith & Co Accountants", "contact_name": "Jane Smith",
            "email": "jane@smithco.com", "phone": "+44 20 1234 5678",
            "has_been_briefed": True, "has_investor_data": True,
        },
        "investors": (
            {"name": "Charlie Brown", "address_line1": "789 Eco Lane", "city": "Bristol",
             "postcode": "BS1 1AA", "shares_issued": 5000, "amount_subscribed_pence": 250_000_00},
            {"name": "Diana Ross", "address_line1": "321 Green Street", "city": "Edinburgh",
             "postcode": "EH1 1AA", "shares_issued": 5000, "amount_subscribed_pence": 250_000_00},
        ),
        "milestones": (
            ("ONBOARDING_COMPLETE", "founder", datetime(2025, 1, 7), None),
            ("SUBMISSION_CONFIRMED", "accountant", datetime(2025, 1, 12), "2025-01-12"),
        ),
    },
    {
        "company_name": "FinTech Solutions",
        "company_number": "11223344",
        "scheme_type": "SEIS",
        "investment_date": date(2024, 12, 15),
        "investment_amount_pence": 100_000_00,
        "status": "COMPLETE",
        "completed_at": datetime(2025, 1, 10),
        "founder": {"name": "Mike Finance", "email": "mike@fintech.io"},
        "investors": (
            {"name": "Edward Investor", "address_line1": "100 Money Street", "city": "London",
             "postcode": "EC1A 1BB", "shares_issued": 1000, "amount_subscribed_pence": 100_000_00},
        ),
        "milestones": (
            ("ONBOARDING_COMPLETE", "founder", datetime(2024, 12, 17), None),
            ("SUBMISSION_CONFIRMED", "founder", datetime(2024, 12, 20), None),
            ("EIS2_RECEIVED", "founder", datetime(2025, 1, 8), None),
            ("EIS2_UPLOADED", "founder", datetime(2025, 1, 8), None),
        ),
    },
)


@click.group('deals')
def deals_group():
    """Deal demo data commands."""


@deals_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Load three sample deals and print their portal links.

    Skips any deal whose company number already exists.
    """
    ops_user = db.session.query(User).filter(User.role.in_(("OPS", "ADMIN"))).order_by(User.id).first()

    for demo in DEMO_DEALS:
        if db.session.query(Deal).filter_by(company_number=demo["company_number"]).first():
            click.echo(f"SKIP {demo['company_name']} already present")
            continue

        deal = Deal(
            company_name=demo["company_name"],
            company_number=demo["company_number"],
            scheme_type=demo["scheme_type"],
            investment_date=demo["investment_date"],
            investment_amount_pence=demo["investment_amount_pence"],
            status=demo["status"],
            completed_at=demo.get("completed_at"),
            created_by_user_id=ops_user.id if ops_user else None,
        )
        db.session.add(deal)
        db.session.flush()

        founder_token, founder_expiry = token_service.issue_token()
        db.session.add(Founder(
            deal_id=deal.id,
            magic_token=founder_token,
            token_expires_at=founder_expiry,
            **demo["founder"],
        ))

        accountant_token = None
        if demo.get("accountant"):
            accountant_token, accountant_expiry = token_service.issue_token()
            db.session.add(Accountant(
                deal_id=deal.id,
                magic_token=accountant_token,
                token_expires_at=accountant_expiry,
                **demo["accountant"],
            ))

        for inv in demo["investors"]:
            db.session.add(Investor(deal_id=deal.id, share_issue_date=demo["investment_date"], **inv))

        for milestone_type, confirmed_by, confirmed_at, notes in demo["milestones"]:
            db.session.add(Milestone(
                deal_id=deal.id,
                milestone_type=milestone_type,
                confirmed_by=confirmed_by,
                confirmed_at=confirmed_at,
                notes=notes,
            ))

        db.session.commit()

        click.echo(f"PASS Created deal {deal.id}: {deal.company_name} ({deal.status})")
        click.echo(f"  Founder link: {token_service.magic_link(founder_token, 'founder')}")
        if accountant_token:
            click.echo(f"  Accountant link: {token_service.magic_link(accountant_token, 'accountant')}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Delete expired and revoked ops sessions older than the retention window.
    """
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(deals_group)
    app.cli.add_command(maintenance_group)
