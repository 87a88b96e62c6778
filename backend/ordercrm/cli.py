# Overview: Flask CLI command groups for bootstrap, rotation inspection and agent stock.

# backend/ordercrm/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to ordercrm (PowerShell: $env:FLASK_APP="ordercrm").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-name "Admin"] [--admin-email admin@ordercrm.local]
#   Create tables (dev only; use `flask db upgrade` in production) and the first admin user.
#
# Round-robin rotation:
# - python -m flask rotation show
#   List eligible sales reps in rotation order and who is next.
# - python -m flask rotation next
#   Advance the rotation once and print the picked rep.
# - python -m flask rotation reset --as-user 1
#   Restart the rotation from the first rep (admin user id required).
#
# Agents:
# - python -m flask agents list [--active/--all]
# - python -m flask agents stock 3
#   Show an agent's holdings and their value at cost.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN
from .services import agent_service, agent_stock_service, round_robin_service
from .services.permission_service import make_actor
from .validation import AuthorizationError, NotFoundError


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', help='Name of the first admin user')
@click.option('--admin-email', default='admin@ordercrm.local', help='Email of the first admin user')
@with_appcontext
def init_system(admin_name, admin_email):
    """Create all tables and the first admin user. Safe to re-run."""
    click.echo("START Initializing ordercrm...")
    db.create_all()
    click.echo("PASS Tables ready")

    admin = db.session.query(User).filter_by(role=ROLE_ADMIN).first()
    if admin:
        click.echo(f"PASS Using existing admin: {admin.name} (ID: {admin.id})")
        return

    admin = User(name=admin_name, email=admin_email, role=ROLE_ADMIN, is_active=True)
    db.session.add(admin)
    db.session.commit()
    click.echo(f"PASS Created admin: {admin.name} (ID: {admin.id}, {admin.email})")


@click.group('rotation')
def rotation_group():
    """Sales-rep round-robin inspection and control."""


@rotation_group.command('show')
@with_appcontext
def show_rotation():
    """List eligible reps in rotation order and mark who is next."""
    status = round_robin_service.get_rotation_status()
    reps = status["reps"]
    if not reps:
        click.echo("No active sales reps.")
        return

    click.echo(f"\nOrder by: {status['order_by']}   Last assigned index: {status['last_assigned_index']}")
    click.echo("=" * 70)
    click.echo(f"{'#':<4} {'ID':<6} {'Name':<30} {'Email'}")
    click.echo("=" * 70)
    for index, rep in enumerate(reps):
        marker = "->" if index == status["next_index"] else "  "
        click.echo(f"{marker}{index:<2} {rep['id']:<6} {rep['name']:<30} {rep['email']}")


@rotation_group.command('next')
@with_appcontext
def next_rep():
    """Advance the rotation once."""
    rep = round_robin_service.get_next_sales_rep()
    if rep is None:
        click.echo("FAIL No active sales reps available")
        raise SystemExit(1)
    click.echo(f"PASS Next rep: {rep.name} (ID: {rep.id})")


@rotation_group.command('reset')
@click.option('--as-user', 'user_id', type=int, required=True, help='Admin user performing the reset')
@with_appcontext
def reset_rotation(user_id):
    """Restart the rotation from the first rep."""
    try:
        round_robin_service.reset_round_robin_sequence(make_actor(user_id=user_id))
    except AuthorizationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo("PASS Round-robin sequence has been reset")


@click.group('agents')
def agents_group():
    """Agent inspection commands."""


@agents_group.command('list')
@click.option('--active/--all', 'active_only', default=False, help='Only active agents')
@with_appcontext
def list_agents(active_only):
    agents = agent_service.list_agents(active=True if active_only else None)
    if not agents:
        click.echo("No agents found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Phone':<16} {'Location':<20} {'Active'}")
    click.echo("=" * 80)
    for agent in agents:
        active_str = "Yes" if agent.is_active else "No"
        click.echo(f"{agent.id:<5} {agent.name:<25} {agent.phone:<16} {agent.location:<20} {active_str}")


@agents_group.command('stock')
@click.argument('agent_id', type=int)
@with_appcontext
def agent_stock(agent_id):
    """Show an agent's holdings and their value at cost."""
    try:
        rows = agent_stock_service.get_agent_stock(agent_id)
        value = agent_stock_service.get_agent_stock_value(agent_id)
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"\n{'Product':<30} {'Qty':>6} {'Defective':>10} {'Missing':>8}")
    click.echo("-" * 58)
    for row in rows:
        click.echo(f"{row.product.name:<30} {row.quantity:>6} {row.defective:>10} {row.missing:>8}")
    click.echo("-" * 58)
    click.echo(f"Units held: {value['units']}   Stock value: {_money(value['stock_value_cents'])}")
    click.echo(
        f"Defective value: {_money(value['defective_value_cents'])}   "
        f"Missing value: {_money(value['missing_value_cents'])}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(rotation_group)
    app.cli.add_command(agents_group)
