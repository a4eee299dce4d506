"""
Tenant model for the merchants using the app.
"""
from datetime import datetime
from ..extensions import db


class Tenant(db.Model):
    """
    Shopify shop that installed the app.
    Carries the per-merchant credentials passed to every driver.
    """
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    shop_name = db.Column(db.String(255), nullable=False)
    shop_slug = db.Column(db.String(100), unique=True, nullable=False)

    # Shopify integration
    shopify_domain = db.Column(db.String(255), unique=True)
    shopify_access_token = db.Column(db.Text)  # Offline token from OAuth
    webhook_secret = db.Column(db.String(100))

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Tenant {self.shop_slug}>'

    @property
    def has_session(self) -> bool:
        """True when the shop has an offline access token."""
        return bool(self.shopify_domain and self.shopify_access_token)

    def to_dict(self):
        return {
            'id': self.id,
            'shop_name': self.shop_name,
            'shop_slug': self.shop_slug,
            'shopify_domain': self.shopify_domain,
            'is_active': self.is_active
        }
