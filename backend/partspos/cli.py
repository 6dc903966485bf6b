# Overview: Flask CLI command groups for bootstrap, accounts and demo data.

# backend/partspos/cli.py
# Commands Legend (run from the backend directory, FLASK_APP=wsgi.py):
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: tables, default settings, admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask db upgrade
#   Apply migrations in backend/migrations (alternative to system init for tables).
#
# Accounts:
# - python -m flask users list
# - python -m flask users create --username jdoe --email jdoe@parts.local --role staff
#
# Demo catalog:
# - python -m flask seed categories
# - python -m flask seed products

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Product, User
from .services.auth_service import create_user, PasswordValidationError
from .services.settings_service import get_settings
from .validation import ConflictError, ValidationError
from .seed_data import DEFAULT_CATEGORIES, SAMPLE_PRODUCTS


DEFAULT_ADMIN = {
    "username": "admin",
    "email": "admin@partspos.local",
    "password": "Password123!",
    "first_name": "Store",
    "last_name": "Admin",
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables, the settings row and a default admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing parts POS...")

    db.create_all()
    click.echo("PASS Tables ready")

    settings = get_settings()
    click.echo(f"PASS Settings ready (currency {settings.currency}, tax {settings.tax_rate_bps} bps)")

    if db.session.query(User).filter(User.role == "admin").first():
        click.echo("WARN  An admin account already exists, skipping...")
    else:
        create_user(role="admin", **DEFAULT_ADMIN)
        click.echo(f"PASS Created admin: {DEFAULT_ADMIN['username']} / {DEFAULT_ADMIN['password']}")
        click.echo("     Change this password immediately in production!")

    click.echo("DONE Initialized")


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
    """Account inspection and creation."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active'}")
    click.echo("=" * 80)
    for u in users:
        click.echo(f"{u.id:<5} {u.username:<20} {u.email:<30} {u.role:<8} {'yes' if u.is_active else 'no'}")
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'staff']), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, first_name, last_name, password, role):
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@click.group('seed')
def seed_group():
    """Demo catalog data."""


def _seed_categories() -> int:
    created = 0
    for name, description in DEFAULT_CATEGORIES:
        exists = db.session.query(Category.id).filter(db.func.lower(Category.name) == name.lower()).first()
        if exists:
            continue
        db.session.add(Category(name=name, description=description))
        created += 1
    db.session.commit()
    return created


@seed_group.command('categories')
@with_appcontext
def seed_categories():
    created = _seed_categories()
    click.echo(f"PASS Created {created} categories ({len(DEFAULT_CATEGORIES) - created} already present)")


@seed_group.command('products')
@with_appcontext
def seed_products():
    """Sample parts; creates the default categories first if needed."""
    _seed_categories()
    categories = {c.name: c.id for c in db.session.query(Category).all()}

    created = 0
    for barcode, name, category, price_cents, stock, manufacturer, part_number in SAMPLE_PRODUCTS:
        if db.session.query(Product.id).filter(Product.barcode == barcode).first():
            continue
        db.session.add(Product(
            barcode=barcode,
            name=name,
            category_id=categories.get(category),
            price_cents=price_cents,
            stock=stock,
            manufacturer=manufacturer,
            part_number=part_number,
        ))
        created += 1
    db.session.commit()
    click.echo(f"PASS Created {created} products ({len(SAMPLE_PRODUCTS) - created} already present)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(seed_group)
