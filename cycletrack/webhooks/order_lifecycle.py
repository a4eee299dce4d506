"""
Order lifecycle webhook handlers.

ORDERS_CREATE: tags every new order with its subscription cycle
('Monthly-Free-Gift' on the first order of a subscription,
'Monthly-order-{n}-no-Gifts' afterwards) or with 'One-Time' when no line
item carries a selling plan. One-time purchases are also merged into the
customer's purchased products metafield.

Shopify retries webhooks that do not get a 2xx, so processing errors are
logged and acknowledged instead of returned.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..config import CycleSettings
from ..services.order_cycle_service import OrderCycleService
from . import require_webhook_verification

order_lifecycle_bp = Blueprint('order_lifecycle', __name__)

ORDERS_CREATE_TOPIC = 'orders/create'


def _ack(**extra):
    return jsonify({'status': 'ok', **extra}), 200


@order_lifecycle_bp.route('/orders/create', methods=['POST'])
@require_webhook_verification
def handle_order_created():
    """
    Handle ORDERS_CREATE webhook.

    The payload is only used for its admin_graphql_api_id; the order is
    re-read through the Admin API so selling plans and customer are
    current.
    """
    tenant = g.webhook_tenant

    topic = request.headers.get('X-Shopify-Topic', ORDERS_CREATE_TOPIC)
    if topic.lower() != ORDERS_CREATE_TOPIC:
        current_app.logger.info(f'Ignoring webhook topic {topic} from {tenant.shopify_domain}')
        return _ack(ignored=True)

    if not tenant.shopify_access_token:
        current_app.logger.warning(f'No session for {tenant.shopify_domain}, cannot process order')
        return jsonify({'error': 'No session'}), 401

    payload = request.get_json(silent=True) or {}
    order_gid = payload.get('admin_graphql_api_id')
    if not order_gid:
        current_app.logger.warning(f'Order webhook from {tenant.shopify_domain} without admin_graphql_api_id')
        return _ack()

    try:
        service = OrderCycleService(tenant, CycleSettings.from_app_config(current_app.config))
        result = service.process_order(order_gid)
        current_app.logger.info(
            f"Order {order_gid} processed ({result['status']}): "
            f"tags={result.get('tags')} cycle={result.get('cycle')}"
        )
    except Exception as e:
        current_app.logger.error(f'Error processing order create webhook for {order_gid}: {e}')

    return _ack()
