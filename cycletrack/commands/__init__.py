"""
CLI Commands for the cycle tracker.

Usage:
    flask cycles sync                  # Reconcile all active shops
    flask cycles sync --tenant-id 1    # Reconcile one shop
    flask cycles show KEY              # Print one cycle record
    flask cycles register-webhooks --base-url URL  # Subscribe shops to orders/create
"""
from .cycles import init_app as init_cycle_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_cycle_commands(app)
