"""
Database models for the subscription cycle tracker.
"""
from .tenant import Tenant
from .subscription_cycle import SubscriptionCycle, SubscriptionCycleOrder
from .sync_run import CycleSyncRun

__all__ = [
    'Tenant',
    'SubscriptionCycle',
    'SubscriptionCycleOrder',
    'CycleSyncRun',
]
