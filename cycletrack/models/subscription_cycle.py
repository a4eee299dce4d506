"""
Subscription cycle models.

One SubscriptionCycle row per subscription (shop + customer + selling
plan) holding the last known cycle number, and a ledger of the orders
already counted toward it.
"""
from datetime import datetime
from ..extensions import db


class SubscriptionCycle(db.Model):
    """
    Last known cycle for one recurring-order stream.

    subscription_key is the encoded identity
    'shop:{shop}::cust:{customer}::sp:{selling_plan}' and is unique:
    writes go through CycleStore upserts, never plain inserts.
    """
    __tablename__ = 'subscription_cycles'

    id = db.Column(db.Integer, primary_key=True)
    subscription_key = db.Column(db.String(512), unique=True, nullable=False)

    shop = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.String(100), nullable=False)
    selling_plan_id = db.Column(db.String(255))

    # Representative product of the subscription (first selling-plan line item)
    product_id = db.Column(db.String(255))
    variant_id = db.Column(db.String(255))

    cycle = db.Column(db.Integer, nullable=False, default=1)
    last_order_id = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('cycle >= 1', name='ck_subscription_cycles_cycle_positive'),
        db.Index('ix_subscription_cycles_shop_customer', 'shop', 'customer_id'),
    )

    def __repr__(self):
        return f'<SubscriptionCycle {self.subscription_key} cycle={self.cycle}>'

    def to_dict(self):
        return {
            'subscription_key': self.subscription_key,
            'shop': self.shop,
            'customer_id': self.customer_id,
            'selling_plan_id': self.selling_plan_id,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'cycle': self.cycle,
            'last_order_id': self.last_order_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class SubscriptionCycleOrder(db.Model):
    """
    Orders already counted, by either the webhook or a recount.

    order_id is unique, so a redelivered or late orders/create event finds
    its row and reuses the recorded cycle instead of incrementing again.
    """
    __tablename__ = 'subscription_cycle_orders'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(255), unique=True, nullable=False)
    subscription_key = db.Column(db.String(512), nullable=False, index=True)
    cycle = db.Column(db.Integer)  # NULL until the increment in the same transaction completes

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<SubscriptionCycleOrder {self.order_id} cycle={self.cycle}>'
