"""
Gunicorn configuration for the cycle tracker.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# A batch sync runs inside one request, so workers need a long timeout
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = int(os.getenv('GUNICORN_TIMEOUT', '600'))
keepalive = 5
graceful_timeout = 30

# Logging
accesslog = '-'
errorlog = '-'
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'cycletrack'
preload_app = True


def on_starting(server):
    server.log.info("Starting cycle tracker server...")


def on_exit(server):
    server.log.info("Cycle tracker server shutting down...")
