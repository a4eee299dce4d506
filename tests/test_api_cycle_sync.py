"""
Tests for the Cycle Sync API.

Tests cover:
- Session token authentication
- POST /api/cycles/sync success, failure and conflict responses
- GET /api/cycles/sync method guard
- GET /api/cycles/runs history
"""
import time
from unittest.mock import patch

import jwt
import pytest

from cycletrack.services.orders import OrdersPage
from cycletrack.utils.exceptions import SourceUnavailable


def session_token(app, shop='test-shop.myshopify.com', **overrides):
    """App Bridge style session token signed with the app secret."""
    now = int(time.time())
    payload = {
        'iss': f'https://{shop}/admin',
        'dest': f'https://{shop}',
        'aud': app.config['SHOPIFY_API_KEY'],
        'sub': 'gid://shopify/StaffMember/1',
        'iat': now,
        'exp': now + 60,
    }
    payload.update(overrides)
    return jwt.encode(payload, app.config['SHOPIFY_API_SECRET'], algorithm='HS256')


def auth_headers(app, **overrides):
    return {'Authorization': f'Bearer {session_token(app, **overrides)}'}


@pytest.fixture
def shopify(mock_shopify):
    with patch('cycletrack.services.cycle_sync_service.ShopifyClient') as mock_class:
        mock_class.for_tenant.return_value = mock_shopify
        yield mock_shopify


class TestAuthentication:
    """Tests for require_shopify_auth on the sync endpoints."""

    def test_missing_token_returns_401(self, client, sample_tenant):
        response = client.post('/api/cycles/sync')

        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'AUTH_REQUIRED'

    def test_expired_token_returns_401(self, app, client, sample_tenant):
        headers = auth_headers(app, exp=int(time.time()) - 10)

        response = client.post('/api/cycles/sync', headers=headers)

        assert response.status_code == 401

    def test_wrong_audience_returns_401(self, app, client, sample_tenant):
        response = client.post('/api/cycles/sync', headers=auth_headers(app, aud='another-app'))

        assert response.status_code == 401

    def test_shop_param_ignored_outside_dev_mode(self, client, sample_tenant):
        response = client.post('/api/cycles/sync?shop=test-shop.myshopify.com')

        assert response.status_code == 401

    def test_shop_param_accepted_in_dev_mode(self, app, client, sample_tenant, shopify):
        app.config['SHOPIFY_AUTH_DEV_MODE'] = True
        shopify.fetch_orders_page.return_value = OrdersPage([])

        response = client.post('/api/cycles/sync?shop=test-shop.myshopify.com')

        assert response.status_code == 200

    def test_unknown_shop_returns_404(self, app, client, sample_tenant):
        response = client.post('/api/cycles/sync', headers=auth_headers(app, shop='other.myshopify.com'))

        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'SHOP_NOT_FOUND'

    def test_inactive_shop_returns_403(self, app, db, client, sample_tenant):
        sample_tenant.is_active = False
        db.session.commit()

        response = client.post('/api/cycles/sync', headers=auth_headers(app))

        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'SHOP_INACTIVE'


class TestRunCycleSync:
    """Tests for POST /api/cycles/sync."""

    def test_success_returns_aggregate(self, app, client, sample_tenant, shopify, make_order):
        orders = [make_order(1, day=1, selling_plan='SP1'), make_order(2, day=2, selling_plan='SP1')]
        shopify.fetch_orders_page.return_value = OrdersPage(orders)
        shopify.fetch_orders_for_customer.return_value = orders

        response = client.post('/api/cycles/sync', headers=auth_headers(app))

        assert response.status_code == 200
        assert response.get_json() == {
            'success': True,
            'processedOrders': 2,
            'errors': [],
            'message': 'Processed 2 orders',
        }

    def test_page_failure_returns_500(self, app, client, sample_tenant, shopify):
        shopify.fetch_orders_page.side_effect = SourceUnavailable('Could not reach Shopify')

        response = client.post('/api/cycles/sync', headers=auth_headers(app))

        assert response.status_code == 500
        assert response.get_json() == {'success': False, 'error': 'Could not reach Shopify'}

    def test_unexpected_error_returns_500(self, app, client, sample_tenant, shopify):
        shopify.fetch_orders_page.side_effect = RuntimeError('boom')

        response = client.post('/api/cycles/sync', headers=auth_headers(app))

        assert response.status_code == 500
        assert response.get_json() == {'success': False, 'error': 'boom'}

    def test_running_sync_returns_409(self, app, db, client, sample_tenant, shopify):
        from cycletrack.models import CycleSyncRun

        db.session.add(CycleSyncRun(shop=sample_tenant.shopify_domain, status='running'))
        db.session.commit()

        response = client.post('/api/cycles/sync', headers=auth_headers(app))

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'SYNC_ALREADY_RUNNING'

    def test_get_is_not_allowed(self, client):
        response = client.get('/api/cycles/sync')

        assert response.status_code == 405
        assert response.get_json() == {'message': 'Method not allowed'}


class TestListSyncRuns:
    """Tests for GET /api/cycles/runs."""

    def test_lists_runs_newest_first(self, app, client, sample_tenant, shopify):
        shopify.fetch_orders_page.return_value = OrdersPage([])
        client.post('/api/cycles/sync', headers=auth_headers(app))
        client.post('/api/cycles/sync', headers=auth_headers(app))

        response = client.get('/api/cycles/runs', headers=auth_headers(app))

        assert response.status_code == 200
        data = response.get_json()
        assert data['count'] == 2
        assert data['runs'][0]['id'] > data['runs'][1]['id']
        assert all(run['status'] == 'completed' for run in data['runs'])
