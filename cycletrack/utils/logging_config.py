"""
Logging setup.

Configures the root logger once so module loggers and the Flask app
logger share one handler and format.
"""
import logging
import os
import sys

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging from LOG_LEVEL (default INFO)."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)

    _configured = True
