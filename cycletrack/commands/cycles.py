"""
CLI Commands for subscription cycles.

The batch sync can be run from cron as well as from the admin:

# Nightly reconciliation of every installed shop
0 3 * * * cd /app && flask cycles sync

# One shop only
flask cycles sync --tenant-id=1

# After deploying
flask cycles register-webhooks --base-url=https://cycles.example.com
"""
import json

import click
from flask import current_app
from flask.cli import with_appcontext

from ..config import CycleSettings
from ..extensions import db
from ..models.tenant import Tenant
from ..services.cycle_store import CycleStore
from ..services.cycle_sync_service import CycleSyncService
from ..services.shopify_client import ShopifyClient
from ..utils.exceptions import CycleTrackError

ORDERS_CREATE_TOPIC = 'ORDERS_CREATE'


@click.group('cycles')
def cycles_cli():
    """Subscription cycle commands."""
    pass


@cycles_cli.command('sync')
@click.option('--tenant-id', type=int, help='Specific tenant ID (or all if not specified)')
@with_appcontext
def sync_cycles(tenant_id):
    """
    Recompute cycles and tags for every paid subscription order.
    """
    if tenant_id:
        tenant = db.session.get(Tenant, tenant_id)
        if not tenant:
            click.echo(f"Tenant {tenant_id} not found")
            return
        tenants = [tenant]
    else:
        tenants = Tenant.query.filter_by(is_active=True).all()

    settings = CycleSettings.from_app_config(current_app.config)
    failed = 0

    for tenant in tenants:
        click.echo(f"\nProcessing tenant: {tenant.shopify_domain}")

        if not tenant.has_session:
            click.echo("  Skipped: no access token")
            continue

        try:
            result = CycleSyncService(tenant, settings).run(trigger='cli')
        except CycleTrackError as e:
            click.echo(f"  Not run: {e.message}")
            failed += 1
            continue

        if not result['success']:
            click.echo(f"  Failed: {result['error']}")
            failed += 1
            continue

        click.echo(f"  {result['message']}")
        for error in result['errors'][:5]:
            click.echo(f"    - {error}")
        if len(result['errors']) > 5:
            click.echo(f"    ... and {len(result['errors']) - 5} more")

    if failed:
        raise click.ClickException(f"{failed} tenant sync(s) failed")


@cycles_cli.command('show')
@click.argument('subscription_key')
@with_appcontext
def show_cycle(subscription_key):
    """
    Print the stored cycle record for a subscription key.

    Keys look like shop:{shop}::cust:{customer id}::sp:{selling plan id}
    """
    record = CycleStore().get(subscription_key)
    if record is None:
        raise click.ClickException(f"No cycle record for {subscription_key}")

    click.echo(json.dumps(record.to_dict(), indent=2))


@cycles_cli.command('register-webhooks')
@click.option('--base-url', required=True, help='Public base URL of this deployment')
@click.option('--tenant-id', type=int, help='Specific tenant ID (or all if not specified)')
@with_appcontext
def register_webhooks(base_url, tenant_id):
    """
    Subscribe shops to ORDERS_CREATE pointing at /webhook/orders/create.

    Shops already subscribed to that URL are left alone.
    """
    callback_url = f"{base_url.rstrip('/')}/webhook/orders/create"

    if tenant_id:
        tenant = db.session.get(Tenant, tenant_id)
        if not tenant:
            click.echo(f"Tenant {tenant_id} not found")
            return
        tenants = [tenant]
    else:
        tenants = Tenant.query.filter_by(is_active=True).all()

    settings = CycleSettings.from_app_config(current_app.config)

    for tenant in tenants:
        click.echo(f"\n{tenant.shopify_domain}:")
        if not tenant.has_session:
            click.echo("  Skipped: no access token")
            continue

        client = ShopifyClient.for_tenant(tenant, settings)
        try:
            existing = client.list_webhook_subscriptions()
            if any(
                w.get('topic') == ORDERS_CREATE_TOPIC
                and (w.get('endpoint') or {}).get('callbackUrl') == callback_url
                for w in existing
            ):
                click.echo(f"  Already registered: {ORDERS_CREATE_TOPIC} -> {callback_url}")
                continue

            created = client.create_webhook_subscription(ORDERS_CREATE_TOPIC, callback_url)
            click.echo(f"  Registered {ORDERS_CREATE_TOPIC} -> {callback_url} ({created.get('id')})")
        except CycleTrackError as e:
            click.echo(f"  Failed: {e.message}")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(cycles_cli)
