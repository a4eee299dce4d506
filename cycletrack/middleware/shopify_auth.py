"""
Shopify Session Token Authentication Middleware.

Verifies Shopify session tokens (JWT) from the embedded admin to
authenticate requests to the sync endpoints. Falls back to the shop query
param / X-Shop-Domain header when SHOPIFY_AUTH_DEV_MODE is on.

Session tokens are issued by Shopify App Bridge and contain:
- iss: Shop domain (https://shop.myshopify.com/admin)
- dest: Shop domain
- aud: API key
- sub: Staff member GID
- exp: Expiration time
"""
import logging
from functools import wraps
from typing import Optional

import jwt
from flask import current_app, g, request

from ..models import Tenant
from ..utils.errors import ErrorCode, forbidden, not_found, unauthorized

logger = logging.getLogger(__name__)


def decode_session_token(token: str) -> Optional[dict]:
    """
    Decode and verify a Shopify session token.

    Returns:
        Decoded token payload or None if invalid
    """
    if not token:
        return None

    api_key = current_app.config.get('SHOPIFY_API_KEY', '')
    api_secret = current_app.config.get('SHOPIFY_API_SECRET', '')

    try:
        # Session tokens are signed with the app's API secret
        return jwt.decode(
            token,
            api_secret,
            algorithms=['HS256'],
            audience=api_key or None,
            options={
                'verify_aud': bool(api_key),
                'verify_exp': True,
            }
        )
    except jwt.ExpiredSignatureError:
        logger.info('Session token expired')
    except jwt.InvalidAudienceError:
        logger.warning('Invalid session token audience')
    except jwt.InvalidTokenError as e:
        logger.warning(f'Invalid session token: {e}')
    return None


def get_shop_from_token(payload: dict) -> Optional[str]:
    """Shop domain from the token's dest (or iss) URL."""
    for claim in ('dest', 'iss'):
        value = payload.get(claim, '')
        if value:
            value = value.replace('https://', '').replace('http://', '')
            return value.split('/')[0]
    return None


def get_shop_from_request() -> Optional[str]:
    """
    Get shop domain from request.

    Priority:
    1. Session token in Authorization header
    2. shop query parameter (dev mode only)
    3. X-Shop-Domain header (dev mode only)
    """
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        payload = decode_session_token(auth_header.split(' ', 1)[1])
        if payload:
            shop = get_shop_from_token(payload)
            if shop:
                g.staff_id = payload.get('sub')
                g.auth_method = 'session_token'
                return shop

    if current_app.config.get('SHOPIFY_AUTH_DEV_MODE'):
        shop = request.args.get('shop') or request.headers.get('X-Shop-Domain')
        if shop:
            g.staff_id = None
            g.auth_method = 'dev_shop_param'
            return shop

    return None


def require_shopify_auth(f):
    """
    Decorator to require Shopify authentication.

    Sets g.tenant, g.tenant_id and g.shop if authenticated.

    Usage:
        @require_shopify_auth
        def my_endpoint():
            tenant = g.tenant
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        shop = get_shop_from_request()
        if not shop:
            return unauthorized('Missing shop domain or session token')

        tenant = Tenant.query.filter_by(shopify_domain=shop).first()
        if not tenant:
            return not_found('This shop has not installed the app', ErrorCode.SHOP_NOT_FOUND)

        if not tenant.is_active:
            return forbidden("This shop's access has been disabled", ErrorCode.SHOP_INACTIVE)

        if not tenant.shopify_access_token:
            return forbidden('Please reinstall the app', ErrorCode.APP_NOT_INSTALLED)

        g.tenant = tenant
        g.tenant_id = tenant.id
        g.shop = shop

        return f(*args, **kwargs)

    return decorated_function
