# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/freshcount/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables and, if no user exists yet, a default admin with a generated password.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load demo users, categories, products and stock movements.
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --email admin@freshcount.com --name "Admin" --password "admin123" --role admin
# - python -m flask users check-admin
#
# Stock ledger maintenance:
# - python -m flask stock reconcile [--fix]
#   Report products whose current_stock disagrees with their movement history;
#   --fix rewrites the stored balance from the ledger.

import secrets

import click
from flask.cli import with_appcontext

from .errors import FreshCountError, format_quantity
from .extensions import db
from .models import Category, Product, User
from .services import auth_service, stock_service
from .time_utils import utcnow

DEFAULT_ADMIN_EMAIL = "admin@freshcount.local"

SEED_USERS = [
    ("admin@freshcount.com", "admin123", "Admin User", "admin"),
    ("staff@freshcount.com", "staff123", "Staff User", "staff"),
]

SEED_CATEGORIES = [
    ("Flour", "All types of flour and baking ingredients"),
    ("Snacks", "Packaged snacks and ready-to-eat items"),
    ("Veg", "Fresh vegetables"),
    ("Fruits", "Fresh fruits"),
    ("Packing", "Packaging materials and containers"),
    ("Groceries", "General grocery items"),
    ("Others", "Miscellaneous items"),
]

# (name, category, unit_type, opening_stock)
SEED_PRODUCTS = [
    ("Wheat Flour", "Flour", "kg", 100),
    ("All Purpose Flour", "Flour", "kg", 50),
    ("Rice Flour", "Flour", "kg", 30),
    ("French Fries (Frozen)", "Snacks", "kg", 25),
    ("Potato Chips", "Snacks", "unit", 50),
    ("Tomato", "Veg", "kg", 40),
    ("Onion", "Veg", "kg", 50),
    ("Potato", "Veg", "kg", 60),
    ("Carrot", "Veg", "kg", 20),
    ("Apple", "Fruits", "kg", 30),
    ("Banana", "Fruits", "kg", 25),
    ("Orange", "Fruits", "kg", 35),
    ("Plastic Containers", "Packing", "unit", 200),
    ("Food Wrap", "Packing", "unit", 15),
    ("Paper Bags", "Packing", "unit", 500),
    ("Cooking Oil", "Groceries", "litre", 50),
    ("Salt", "Groceries", "kg", 20),
    ("Sugar", "Groceries", "kg", 40),
    ("Napkins", "Others", "unit", 100),
    ("Cleaning Supplies", "Others", "unit", 30),
]

SEED_MOVEMENTS = [
    ("Wheat Flour", "IN", 20),
    ("Tomato", "IN", 10),
    ("Onion", "OUT", 5),
    ("Cooking Oil", "IN", 15),
    ("Apple", "OUT", 3),
]


# -- SYSTEM --

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Idempotent bootstrap.

    Creates missing tables. When the users table is empty, creates a default
    admin and prints its generated password once.
    """
    click.echo("START Initializing FreshCount...")
    db.create_all()
    click.echo("PASS Tables ready")

    if auth_service.count_users() > 0:
        click.echo("PASS Users already exist, skipping default admin")
        return

    password = secrets.token_urlsafe(12)
    user = auth_service.register_user(
        email=DEFAULT_ADMIN_EMAIL,
        password=password,
        name="Administrator",
        role="admin",
    )
    click.echo(f"PASS Created default admin: {user.email}")
    click.echo(f"     Password: {password}")
    click.echo("SECURITY Change this password after the first login.")


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Load demo data: two users, seven categories, twenty products and a few
    movements. Movements go through the stock ledger so balances stay
    consistent. Skips if any category already exists.
    """
    db.create_all()

    if db.session.query(Category).first() is not None:
        click.echo("WARN Categories already exist, skipping seed")
        return

    users = {}
    for email, password, name, role in SEED_USERS:
        existing = db.session.query(User).filter(User.email == email).first()
        if existing:
            users[role] = existing
            click.echo(f"WARN User '{email}' already exists, skipping...")
            continue
        users[role] = auth_service.register_user(email=email, password=password, name=name, role=role)
        click.echo(f"PASS Created user: {email} / {password} ({role})")

    admin = users["admin"]
    now = utcnow()

    categories = {}
    for name, description in SEED_CATEGORIES:
        category = Category(name=name, description=description, created_by_user_id=admin.id, created_at=now)
        db.session.add(category)
        categories[name] = category
    db.session.flush()

    products = {}
    for name, category_name, unit_type, opening in SEED_PRODUCTS:
        product = Product(
            name=name,
            category_id=categories[category_name].id,
            unit_type=unit_type,
            opening_stock=opening,
            current_stock=opening,
            created_by_user_id=admin.id,
            created_at=now,
            last_updated=now,
        )
        db.session.add(product)
        products[name] = product
    db.session.commit()
    click.echo(f"PASS Created {len(categories)} categories, {len(products)} products")

    # OUT needs an admin actor; IN is attributed to staff like a normal delivery
    for product_name, movement_type, quantity in SEED_MOVEMENTS:
        actor = users["staff"] if movement_type == "IN" else admin
        _, new_stock = stock_service.record_movement(
            product_id=products[product_name].id,
            movement_type=movement_type,
            quantity=float(quantity),
            actor=actor,
            notes="Sample stock movement",
        )
        click.echo(f"PASS {product_name}: {movement_type} {quantity} -> {format_quantity(new_stock)}")

    click.echo("DONE Seed complete")


# -- USERS --

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'staff']), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, name, password, role):
    """Create a user (prompts if options are omitted)."""
    try:
        user = auth_service.register_user(email=email, password=password, name=name, role=role)
    except FreshCountError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their roles."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role'}")
    click.echo("=" * 80)
    for u in users:
        click.echo(f"{u.id:<5} {u.email:<35} {u.name:<25} {u.role}")
    click.echo("=" * 80 + "\n")


@users_group.command('check-admin')
@with_appcontext
def check_admin_cli():
    """Report whether at least one admin account exists."""
    admins = db.session.query(User).filter(User.role == "admin").order_by(User.id.asc()).all()
    if not admins:
        click.echo("FAIL No admin user found. Run: python -m flask users create --role admin")
        raise SystemExit(1)

    for admin in admins:
        click.echo(f"PASS Admin: {admin.email} (ID: {admin.id})")


# -- STOCK --

@click.group('stock')
def stock_group():
    """Stock ledger maintenance commands."""


@stock_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Rewrite current_stock from the movement history')
@with_appcontext
def reconcile_cli(fix):
    """
    Compare each product's stored balance with a replay of its movements.
    """
    divergent = stock_service.find_divergent_products()
    if not divergent:
        click.echo("PASS All product balances match their ledgers")
        return

    for row in divergent:
        click.echo(
            f"WARN product {row['product_id']}: current_stock={format_quantity(row['current_stock'])} "
            f"ledger={format_quantity(row['closing_stock'])}"
        )

    if not fix:
        click.echo(f"FAIL {len(divergent)} product(s) out of sync. Re-run with --fix to repair.")
        raise SystemExit(1)

    for row in divergent:
        result = stock_service.reconcile_product(row["product_id"])
        click.echo(
            f"PASS product {result['product_id']}: "
            f"{format_quantity(result['before'])} -> {format_quantity(result['after'])}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
