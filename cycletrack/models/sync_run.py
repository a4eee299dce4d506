"""
Batch sync run history.

Also serves as the per-shop run lock: a 'running' row younger than
SYNC_RUN_LOCK_MINUTES blocks a second run for the same shop.
"""
from datetime import datetime
from ..extensions import db


class CycleSyncRun(db.Model):
    """One execution of the batch cycle reconciliation."""
    __tablename__ = 'cycle_sync_runs'

    STATUS_RUNNING = 'running'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'

    id = db.Column(db.Integer, primary_key=True)
    shop = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_RUNNING)
    trigger = db.Column(db.String(20), default='admin')  # admin, cli

    processed_orders = db.Column(db.Integer, default=0)
    error_count = db.Column(db.Integer, default=0)
    errors = db.Column(db.JSON, default=list)
    message = db.Column(db.Text)

    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    finished_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index('ix_cycle_sync_runs_shop_status', 'shop', 'status'),
    )

    def __repr__(self):
        return f'<CycleSyncRun {self.id} {self.shop} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'shop': self.shop,
            'status': self.status,
            'trigger': self.trigger,
            'processed_orders': self.processed_orders,
            'error_count': self.error_count,
            'errors': self.errors or [],
            'message': self.message,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }
