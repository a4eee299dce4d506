"""
Middleware package for the cycle tracker.
"""
from .shopify_auth import require_shopify_auth, get_shop_from_request, decode_session_token
