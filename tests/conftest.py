"""
Shared pytest fixtures.

Provides:
- app / client: Flask app on in-memory SQLite (testing config)
- sample_tenant: installed shop with access token and webhook secret
- make_order / order_node: builders for orders as the GraphQL API returns them
- mock_shopify: MagicMock standing in for ShopifyClient
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from cycletrack import create_app
from cycletrack.extensions import db as _db

SHOP_DOMAIN = 'test-shop.myshopify.com'
WEBHOOK_SECRET = 'test_webhook_secret_123'

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def sample_tenant(app):
    """Installed shop."""
    from cycletrack.models import Tenant

    tenant = Tenant(
        shop_name='Test Shop',
        shop_slug='test-shop',
        shopify_domain=SHOP_DOMAIN,
        shopify_access_token='shpat_test_token',
        webhook_secret=WEBHOOK_SECRET,
        is_active=True
    )
    _db.session.add(tenant)
    _db.session.commit()
    return tenant


def _order_node(order_id, created_at=None, tags=None, note=None, customer_id='gid://shopify/Customer/42',
                line_items=None):
    """GraphQL Order node. line_items: list of (selling_plan_id, variant_gid, product_gid)."""
    if line_items is None:
        line_items = [(None, 'gid://shopify/ProductVariant/1', 'gid://shopify/Product/1')]

    edges = []
    for selling_plan_id, variant_id, product_id in line_items:
        edges.append({
            'node': {
                'sellingPlan': {'sellingPlanId': selling_plan_id} if selling_plan_id else None,
                'variant': {'id': variant_id, 'product': {'id': product_id}} if variant_id else None,
            }
        })

    if not str(order_id).startswith('gid://'):
        order_id = f'gid://shopify/Order/{order_id}'

    return {
        'id': order_id,
        'createdAt': (created_at or BASE_TIME).isoformat().replace('+00:00', 'Z'),
        'tags': list(tags or []),
        'note': note,
        'customer': {'id': customer_id} if customer_id else None,
        'lineItems': {'edges': edges},
    }


@pytest.fixture
def order_node():
    """Builder for raw GraphQL order nodes."""
    return _order_node


@pytest.fixture
def make_order():
    """
    Builder for Order values.

    make_order(1, day=0, selling_plan='SP1') -> subscription order created BASE_TIME + 0 days
    """
    from cycletrack.services.orders import Order

    def build(order_id, day=0, selling_plan=None, tags=None, customer_id='gid://shopify/Customer/42',
              product_id='gid://shopify/Product/1', extra_products=()):
        items = [(selling_plan, f'gid://shopify/ProductVariant/{product_id.rsplit("/", 1)[-1]}', product_id)]
        for extra in extra_products:
            items.append((None, f'gid://shopify/ProductVariant/{extra.rsplit("/", 1)[-1]}', extra))
        node = _order_node(
            order_id,
            created_at=BASE_TIME + timedelta(days=day),
            tags=tags,
            customer_id=customer_id,
            line_items=items
        )
        return Order.from_node(node)

    return build


@pytest.fixture
def mock_shopify():
    """
    ShopifyClient double. update_order echoes its input back like the
    orderUpdate mutation does.
    """
    client = MagicMock()
    client.update_order.side_effect = lambda order_id, tags, note: {
        'id': order_id, 'tags': list(tags), 'note': note
    }
    client.get_customer_metafield.return_value = None
    return client
