"""
Webhook handlers for the cycle tracker.
Processes Shopify order webhooks into subscription cycle updates.
"""
import base64
import hashlib
import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from ..models import Tenant


def verify_shopify_webhook_signature(data: bytes, hmac_header: str, secret: str) -> bool:
    """
    Verify Shopify webhook HMAC-SHA256 signature.

    Args:
        data: Raw request body bytes
        hmac_header: The X-Shopify-Hmac-SHA256 header value
        secret: The webhook secret (stored per tenant, or the app secret)

    Returns:
        True if signature is valid, False otherwise
    """
    if not secret:
        current_app.logger.warning('No webhook secret configured for verification')
        return False

    if not hmac_header:
        current_app.logger.warning('No HMAC header in webhook request')
        return False

    computed_hmac = base64.b64encode(
        hmac.new(secret.encode('utf-8'), data, hashlib.sha256).digest()
    ).decode('utf-8')

    return hmac.compare_digest(computed_hmac, hmac_header)


def require_webhook_verification(f):
    """
    Decorator to require Shopify webhook signature verification.

    1. Extracts the shop domain from headers
    2. Looks up the tenant and their webhook secret
    3. Verifies the HMAC signature
    4. Puts the tenant on g.webhook_tenant

    Usage:
        @bp.route('/orders/create', methods=['POST'])
        @require_webhook_verification
        def handle_order_created():
            tenant = g.webhook_tenant
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        shop_domain = request.headers.get('X-Shopify-Shop-Domain', '')
        if not shop_domain:
            current_app.logger.warning('Webhook missing X-Shopify-Shop-Domain header')
            return jsonify({'error': 'Missing shop domain header'}), 400

        tenant = Tenant.query.filter_by(shopify_domain=shop_domain).first()
        if not tenant:
            current_app.logger.warning(f'Webhook from unknown shop: {shop_domain}')
            return jsonify({'error': 'Unknown shop'}), 404

        hmac_header = request.headers.get('X-Shopify-Hmac-SHA256', '')
        webhook_secret = tenant.webhook_secret or current_app.config.get('SHOPIFY_API_SECRET')

        if not verify_shopify_webhook_signature(request.get_data(), hmac_header, webhook_secret):
            current_app.logger.warning(f'Invalid webhook signature from {shop_domain}')
            return jsonify({'error': 'Invalid signature'}), 401

        g.webhook_tenant = tenant
        g.tenant_id = tenant.id

        return f(*args, **kwargs)

    return decorated_function


from .order_lifecycle import order_lifecycle_bp

__all__ = [
    'order_lifecycle_bp',
    'verify_shopify_webhook_signature',
    'require_webhook_verification',
]
