# Overview: Flask CLI command groups for bootstrap, seeding, and stock maintenance.

# backend/retail_billing/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin/manager/cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username admin2 --email admin2@retail.local --password "Password123!" --role admin
#
# Catalog seeding:
# - python -m flask products list [--low-stock]
# - python -m flask products create --sku P-001 --name "Widget" --price 100.00 --tax-rate 10 --stock 10
#
# Inventory maintenance:
# - python -m flask inventory replay-stock --product-id 1 [--apply]
#   Compare stored stock with the ledger-implied stock; --apply writes the ledger value back.

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .errors import ServiceError
from .extensions import db
from .models import Product, User
from .money import format_cents, percent_to_bps, to_cents
from .services.auth_service import create_user, PasswordValidationError, UserExistsError
from .services import inventory_service

DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin", "admin@retail.local", "Admin", "admin"),
    ("manager", "manager@retail.local", "Manager", "manager"),
    ("cashier", "cashier@retail.local", "Cashier", "cashier"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database and default users.

    Creates:
    - All tables (if missing)
    - Users: admin, manager, cashier (password "Password123!")

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing retail billing system...")

    db.create_all()
    click.echo("PASS Tables created")

    for username, email, first_name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP User '{username}' already exists")
            continue
        create_user(username, email, DEFAULT_PASSWORD, first_name=first_name, role=role)
        click.echo(f"PASS Created user '{username}' ({role})")

    click.echo("DONE System initialized.")


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


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'manager', 'cashier']), prompt=True, help='Role')
@click.option('--first-name', default='', help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(username, email, password, role, first_name, last_name):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            username, email, password,
            first_name=first_name, last_name=last_name, role=role,
        )
    except (PasswordValidationError, UserExistsError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user '{user.username}' (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<10} "
            f"{'yes' if user.is_active else 'no'}"
        )


# =============================================================================
# PRODUCTS
# =============================================================================

@click.group('products')
def products_group():
    """Catalog seeding and inspection."""


@products_group.command('create')
@click.option('--sku', required=True, help='Unique SKU')
@click.option('--name', required=True, help='Product name')
@click.option('--price', required=True, help='Unit price, e.g. 100.00')
@click.option('--tax-rate', default='0', show_default=True, help='Tax rate percent, e.g. 10')
@click.option('--stock', type=int, default=0, show_default=True, help='Opening stock')
@click.option('--min-stock', type=int, default=0, show_default=True, help='Low-stock threshold')
@click.option('--cost', default=None, help='Cost price, e.g. 60.00')
@with_appcontext
def create_product_cli(sku, name, price, tax_rate, stock, min_stock, cost):
    """Create a product. Opening stock is recorded as an adjustment."""
    try:
        product = Product(
            sku=sku,
            name=name,
            unit_price_cents=to_cents(price),
            cost_price_cents=to_cents(cost) if cost is not None else None,
            tax_rate_bps=percent_to_bps(tax_rate),
            stock_quantity=0,
            min_stock_level=min_stock,
        )
    except ValueError as e:
        raise click.ClickException(f"Invalid amount: {e}")

    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise click.ClickException(f"SKU '{sku}' already exists")

    if stock:
        try:
            inventory_service.create_transaction(
                product_id=product.id,
                transaction_type="adjustment",
                quantity=stock,
                reference_type="opening_stock",
                notes="Opening stock",
            )
        except ServiceError as e:
            raise click.ClickException(e.message)

    db.session.refresh(product)
    click.echo(
        f"PASS Created product {product.sku} (ID: {product.id}) "
        f"price {format_cents(product.unit_price_cents)} stock {product.stock_quantity}"
    )


@products_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only products at or below min stock level')
@with_appcontext
def list_products_cli(low_stock):
    """List products with stock levels."""
    if low_stock:
        products = inventory_service.list_low_stock_products()
    else:
        products = db.session.query(Product).order_by(Product.id).all()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<5} {'SKU':<16} {'Name':<30} {'Price':>10} {'Stock':>7} {'Min':>5}")
    for p in products:
        click.echo(
            f"{p.id:<5} {p.sku:<16} {p.name[:30]:<30} {format_cents(p.unit_price_cents):>10} "
            f"{p.stock_quantity:>7} {p.min_stock_level:>5}"
        )


# =============================================================================
# INVENTORY
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Stock ledger maintenance."""


@inventory_group.command('replay-stock')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--apply', 'apply_', is_flag=True, help='Write the ledger value back to the product')
@with_appcontext
def replay_stock_cli(product_id, apply_):
    """
    Compare stored stock with the stock implied by the inventory ledger.

    Sales do not write ledger rows, so a difference is expected for products
    that have been sold. Only --apply when the ledger is known to be complete.
    """
    try:
        result = inventory_service.resync_stock_from_ledger(product_id, apply=apply_)
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"Product {result['product_id']}: stored {result['stored_stock']}, ledger {result['ledger_stock']}")
    if result["applied"]:
        click.echo(f"PASS Stock set to {result['ledger_stock']}")
    elif result["stored_stock"] != result["ledger_stock"]:
        click.echo("WARN Stored stock differs from ledger (use --apply to resync)")
    else:
        click.echo("PASS Stock matches ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
