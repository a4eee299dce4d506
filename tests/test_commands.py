"""
Tests for the `flask cycles` CLI commands.
"""
import json
from unittest.mock import patch

import pytest

from cycletrack.services.cycle_store import CycleRecord, CycleStore
from cycletrack.services.orders import OrdersPage

KEY = 'shop:test-shop.myshopify.com::cust:42::sp:SP1'


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSyncCommand:

    @patch('cycletrack.services.cycle_sync_service.ShopifyClient')
    def test_sync_single_tenant(self, mock_class, runner, sample_tenant, mock_shopify, make_order):
        order = make_order(1, selling_plan='SP1')
        mock_class.for_tenant.return_value = mock_shopify
        mock_shopify.fetch_orders_page.return_value = OrdersPage([order])
        mock_shopify.fetch_orders_for_customer.return_value = [order]

        result = runner.invoke(args=['cycles', 'sync', '--tenant-id', str(sample_tenant.id)])

        assert result.exit_code == 0
        assert 'Processed 1 orders' in result.output

    def test_unknown_tenant(self, runner, sample_tenant):
        result = runner.invoke(args=['cycles', 'sync', '--tenant-id', '999'])

        assert 'Tenant 999 not found' in result.output

    @patch('cycletrack.services.cycle_sync_service.ShopifyClient')
    def test_failed_run_exits_non_zero(self, mock_class, runner, sample_tenant, mock_shopify):
        from cycletrack.utils.exceptions import SourceUnavailable

        mock_class.for_tenant.return_value = mock_shopify
        mock_shopify.fetch_orders_page.side_effect = SourceUnavailable('Could not reach Shopify')

        result = runner.invoke(args=['cycles', 'sync'])

        assert result.exit_code != 0
        assert 'Failed: Could not reach Shopify' in result.output


class TestShowCommand:

    def test_show_record(self, app, runner):
        CycleStore().upsert(CycleRecord(
            subscription_key=KEY, shop='test-shop.myshopify.com', customer_id='42',
            selling_plan_id='SP1', cycle=3
        ))

        result = runner.invoke(args=['cycles', 'show', KEY])

        assert result.exit_code == 0
        assert json.loads(result.output)['cycle'] == 3

    def test_show_missing_record(self, runner):
        result = runner.invoke(args=['cycles', 'show', KEY])

        assert result.exit_code != 0
        assert 'No cycle record' in result.output


class TestRegisterWebhooksCommand:

    @patch('cycletrack.commands.cycles.ShopifyClient')
    def test_registers_orders_create(self, mock_class, runner, sample_tenant, mock_shopify):
        mock_class.for_tenant.return_value = mock_shopify
        mock_shopify.list_webhook_subscriptions.return_value = []
        mock_shopify.create_webhook_subscription.return_value = {'id': 'gid://shopify/WebhookSubscription/1'}

        result = runner.invoke(args=['cycles', 'register-webhooks', '--base-url', 'https://cycles.example.com/'])

        assert result.exit_code == 0
        mock_shopify.create_webhook_subscription.assert_called_once_with(
            'ORDERS_CREATE', 'https://cycles.example.com/webhook/orders/create'
        )

    @patch('cycletrack.commands.cycles.ShopifyClient')
    def test_existing_subscription_is_kept(self, mock_class, runner, sample_tenant, mock_shopify):
        mock_class.for_tenant.return_value = mock_shopify
        mock_shopify.list_webhook_subscriptions.return_value = [{
            'id': 'gid://shopify/WebhookSubscription/1',
            'topic': 'ORDERS_CREATE',
            'endpoint': {'callbackUrl': 'https://cycles.example.com/webhook/orders/create'},
        }]

        result = runner.invoke(args=['cycles', 'register-webhooks', '--base-url', 'https://cycles.example.com'])

        assert 'Already registered' in result.output
        mock_shopify.create_webhook_subscription.assert_not_called()
