"""
Configuration management for the subscription cycle tracker.
"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shopify app credentials (access tokens are stored per tenant)
    SHOPIFY_API_VERSION = os.getenv('SHOPIFY_API_VERSION', '2025-01')
    SHOPIFY_API_KEY = os.getenv('SHOPIFY_CLIENT_ID', os.getenv('SHOPIFY_API_KEY', ''))
    SHOPIFY_API_SECRET = os.getenv('SHOPIFY_CLIENT_SECRET', os.getenv('SHOPIFY_API_SECRET', ''))
    SHOPIFY_REQUEST_TIMEOUT = float(os.getenv('SHOPIFY_REQUEST_TIMEOUT', '30'))

    # Admin auth: accept the shop query param / header without a session token
    SHOPIFY_AUTH_DEV_MODE = (
        os.getenv('FLASK_ENV') == 'development' or os.getenv('SHOPIFY_AUTH_DEV_MODE') == 'true'
    )

    # Customer metafield tracking one-time purchases
    PURCHASED_PRODUCTS_NAMESPACE = os.getenv('PURCHASED_PRODUCTS_NAMESPACE', 'seryni')
    PURCHASED_PRODUCTS_KEY = 'purchased_products'

    # Batch sync
    SYNC_FINANCIAL_STATUS = 'paid'
    SYNC_PAGE_SIZE = 20
    SYNC_LINE_ITEMS_PAGE_SIZE = 10
    CUSTOMER_HISTORY_PAGE_SIZE = 250
    ORDER_LINE_ITEMS_PAGE_SIZE = 50
    SYNC_ORDER_RETRIES = int(os.getenv('SYNC_ORDER_RETRIES', '1'))
    SYNC_RUN_LOCK_MINUTES = int(os.getenv('SYNC_RUN_LOCK_MINUTES', '30'))

    # 'incremental' (stored cycle + 1) or 'recount' (position in order history)
    WEBHOOK_CYCLE_STRATEGY = os.getenv('WEBHOOK_CYCLE_STRATEGY', 'incremental')


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///cycletrack_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing or too short
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SHOPIFY_AUTH_DEV_MODE = False
    SHOPIFY_API_KEY = 'test-api-key'
    SHOPIFY_API_SECRET = 'test-api-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SYNC_ORDER_RETRIES = 1
    WEBHOOK_CYCLE_STRATEGY = 'incremental'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()


@dataclass(frozen=True)
class CycleSettings:
    """
    Settings the reconciliation engine needs, passed explicitly to the
    drivers instead of being read from the environment.
    """
    metafield_namespace: str = BaseConfig.PURCHASED_PRODUCTS_NAMESPACE
    metafield_key: str = BaseConfig.PURCHASED_PRODUCTS_KEY
    financial_status: str = BaseConfig.SYNC_FINANCIAL_STATUS
    page_size: int = BaseConfig.SYNC_PAGE_SIZE
    order_retries: int = BaseConfig.SYNC_ORDER_RETRIES
    run_lock_minutes: int = BaseConfig.SYNC_RUN_LOCK_MINUTES
    webhook_strategy: str = BaseConfig.WEBHOOK_CYCLE_STRATEGY
    api_version: str = BaseConfig.SHOPIFY_API_VERSION
    request_timeout: float = BaseConfig.SHOPIFY_REQUEST_TIMEOUT
    history_page_size: int = BaseConfig.CUSTOMER_HISTORY_PAGE_SIZE
    sync_line_items: int = BaseConfig.SYNC_LINE_ITEMS_PAGE_SIZE
    order_line_items: int = BaseConfig.ORDER_LINE_ITEMS_PAGE_SIZE

    @classmethod
    def from_app_config(cls, config) -> 'CycleSettings':
        """Build settings from a Flask config mapping."""
        return cls(
            metafield_namespace=config.get('PURCHASED_PRODUCTS_NAMESPACE', cls.metafield_namespace),
            metafield_key=config.get('PURCHASED_PRODUCTS_KEY', cls.metafield_key),
            financial_status=config.get('SYNC_FINANCIAL_STATUS', cls.financial_status),
            page_size=config.get('SYNC_PAGE_SIZE', cls.page_size),
            order_retries=config.get('SYNC_ORDER_RETRIES', cls.order_retries),
            run_lock_minutes=config.get('SYNC_RUN_LOCK_MINUTES', cls.run_lock_minutes),
            webhook_strategy=config.get('WEBHOOK_CYCLE_STRATEGY', cls.webhook_strategy),
            api_version=config.get('SHOPIFY_API_VERSION', cls.api_version),
            request_timeout=config.get('SHOPIFY_REQUEST_TIMEOUT', cls.request_timeout),
            history_page_size=config.get('CUSTOMER_HISTORY_PAGE_SIZE', cls.history_page_size),
            sync_line_items=config.get('SYNC_LINE_ITEMS_PAGE_SIZE', cls.sync_line_items),
            order_line_items=config.get('ORDER_LINE_ITEMS_PAGE_SIZE', cls.order_line_items),
        )
