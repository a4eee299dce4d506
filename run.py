"""
Subscription cycle tracker entry point.
"""
import logging
import os
import sys

from cycletrack.utils.logging_config import setup_logging

setup_logging()
logger = logging.getLogger('cycletrack.run')

config_name = os.getenv('FLASK_ENV', 'production')
logger.info(f"Config: {config_name}")
logger.info(f"DATABASE_URL: {'set' if os.getenv('DATABASE_URL') else 'NOT SET'}")

try:
    from cycletrack import create_app
    app = create_app(config_name)
    logger.info(f"Routes: {len(list(app.url_map.iter_rules()))}")
except Exception:
    logger.exception("FATAL ERROR during app creation")
    sys.exit(1)

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_ENV') == 'development'
    )
