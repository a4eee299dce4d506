"""
API blueprints for the cycle tracker admin.
"""
from .cycle_sync import cycle_sync_bp

__all__ = ['cycle_sync_bp']
