"""
Business logic services for the subscription cycle tracker.
"""
from .cycle_store import CycleStore
from .cycle_sync_service import CycleSyncService
from .order_cycle_service import OrderCycleService
from .shopify_client import ShopifyClient

__all__ = [
    'CycleStore',
    'CycleSyncService',
    'OrderCycleService',
    'ShopifyClient',
]
