"""
Cycle Sync Service.

Batch reconciliation of every paid subscription order of a shop. Cycles
are recomputed from order history (recount strategy), written to the
cycle store and re-applied as tags.

Run flow:
    acquire run lock -> fetch page of paid orders -> for each order with a
    selling plan: recount -> upsert -> reconcile tags -> next page ... ->
    aggregate result

A failing order is recorded and skipped; a failing page ends the run
with success=False.

These tasks can be triggered by:
1. The admin sync endpoint (POST /api/cycles/sync)
2. Flask CLI commands (flask cycles sync)
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import CycleSettings
from ..extensions import db
from ..models.sync_run import CycleSyncRun
from ..utils.exceptions import (
    CycleTrackError,
    SourceProtocolError,
    SourceUnavailable,
    StoreUnavailable,
    SyncAlreadyRunning,
)
from .cycle_resolver import recount_cycle, subscription_identity
from .cycle_store import CycleStore
from .orders import Order
from .shopify_client import ShopifyClient
from .tag_reconciler import reconcile_order

logger = logging.getLogger(__name__)

# Failures worth retrying the whole order for
RETRYABLE_ERRORS = (SourceUnavailable, SourceProtocolError)


class CycleSyncService:
    """
    Batch cycle reconciliation for one tenant.

    Usage:
        service = CycleSyncService(tenant, CycleSettings.from_app_config(app.config))
        result = service.run(trigger='admin')
    """

    def __init__(
        self,
        tenant,
        settings: Optional[CycleSettings] = None,
        client: Optional[ShopifyClient] = None,
        store: Optional[CycleStore] = None,
    ):
        self.tenant = tenant
        self.settings = settings or CycleSettings()
        self.client = client or ShopifyClient.for_tenant(tenant, self.settings)
        self.store = store or CycleStore()

    @property
    def shop(self) -> str:
        return self.tenant.shopify_domain

    # ==================== RUN ====================

    def run(self, trigger: str = 'admin') -> Dict[str, Any]:
        """
        Reconcile all paid subscription orders.

        Returns:
            {'success': True, 'processedOrders': n, 'errors': [...], 'message': ...}
            or {'success': False, 'error': ...} when a page cannot be fetched.

        Raises:
            SyncAlreadyRunning: If another run holds the lock for this shop
        """
        run = self._acquire_run_lock(trigger)
        logger.info(f'Starting subscription order sync for {self.shop} (run {run.id})')

        processed_orders = 0
        errors: List[str] = []
        cursor = None
        has_next_page = True
        search = f'financial_status:{self.settings.financial_status}'

        try:
            while has_next_page:
                page = self.client.fetch_orders_page(
                    query=search,
                    cursor=cursor,
                    first=self.settings.page_size,
                    line_items=self.settings.sync_line_items
                )
                logger.info(f'Fetched {len(page.orders)} orders')

                for order in page.orders:
                    if not order.has_selling_plan:
                        continue

                    try:
                        cycle = self._process_with_retry(order)
                        processed_orders += 1
                        logger.info(f'Processed order {order.id}: cycle {cycle}')
                    except Exception as e:
                        message = e.message if isinstance(e, CycleTrackError) else str(e)
                        logger.error(f'Order failed: {order.id}: {message}')
                        errors.append(f'Order {order.id}: {message}')

                has_next_page = page.has_next_page and bool(page.end_cursor)
                cursor = page.end_cursor

        except CycleTrackError as e:
            logger.error(
                f'Sync failed for {self.shop} after {processed_orders} orders: {e.message}'
            )
            self._finish_run(run, CycleSyncRun.STATUS_FAILED, processed_orders, errors, e.message)
            return {'success': False, 'error': e.message}
        except Exception as e:
            self._finish_run(run, CycleSyncRun.STATUS_FAILED, processed_orders, errors, str(e))
            raise

        message = f'Processed {processed_orders} orders'
        if errors:
            message += f' with {len(errors)} errors'

        self._finish_run(run, CycleSyncRun.STATUS_COMPLETED, processed_orders, errors, message)
        logger.info(f'Sync finished for {self.shop}: {message}')

        return {
            'success': True,
            'processedOrders': processed_orders,
            'errors': errors,
            'message': message,
        }

    def _process_with_retry(self, order: Order) -> int:
        """Process one order, retrying the whole order on transport/protocol failures."""
        attempts = 1 + max(self.settings.order_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                return self.process_order(order)
            except RETRYABLE_ERRORS as e:
                if attempt == attempts:
                    raise
                logger.warning(f'Retrying order {order.id} after error (attempt {attempt}): {e.message}')

    def process_order(self, order: Order) -> int:
        """
        Recount, persist and re-tag one subscription order.

        Returns:
            The order's cycle number
        """
        identity = subscription_identity(self.shop, order)
        if identity is None:
            raise ValueError(f"Order {order.id} has no selling plan")

        cycle = recount_cycle(self.client, order, identity)
        self.store.upsert(identity.to_record(cycle=cycle, last_order_id=order.id))
        reconcile_order(self.client, order, cycle)

        return cycle

    # ==================== RUN LOCK ====================

    def _acquire_run_lock(self, trigger: str) -> CycleSyncRun:
        """
        Start a run for this shop, refusing if a recent run is still going.

        Runs older than SYNC_RUN_LOCK_MINUTES are assumed dead and closed.
        Two runs started at the same instant can both get through; the
        cycle store's atomic upserts are the safety net for that case.
        """
        cutoff = datetime.utcnow() - timedelta(minutes=self.settings.run_lock_minutes)

        try:
            running = CycleSyncRun.query.filter(
                CycleSyncRun.shop == self.shop,
                CycleSyncRun.status == CycleSyncRun.STATUS_RUNNING
            ).all()

            for existing in running:
                if existing.started_at and existing.started_at >= cutoff:
                    raise SyncAlreadyRunning(self.shop, existing.id)

            for stale in running:
                logger.warning(f'Closing stale sync run {stale.id} for {self.shop}')
                stale.status = CycleSyncRun.STATUS_FAILED
                stale.message = 'Run lock expired'
                stale.finished_at = datetime.utcnow()

            run = CycleSyncRun(
                shop=self.shop,
                status=CycleSyncRun.STATUS_RUNNING,
                trigger=trigger,
                errors=[]
            )
            db.session.add(run)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreUnavailable(f"Could not start sync run: {e}", original_error=e) from e

        return run

    def _finish_run(
        self,
        run: CycleSyncRun,
        status: str,
        processed_orders: int,
        errors: List[str],
        message: str
    ) -> None:
        try:
            run.status = status
            run.processed_orders = processed_orders
            run.error_count = len(errors)
            run.errors = list(errors)
            run.message = message
            run.finished_at = datetime.utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Could not record end of sync run {run.id}: {e}')


def get_recent_runs(shop: str, limit: int = 10) -> List[CycleSyncRun]:
    """Most recent sync runs for a shop, newest first."""
    return (
        CycleSyncRun.query
        .filter_by(shop=shop)
        .order_by(CycleSyncRun.started_at.desc(), CycleSyncRun.id.desc())
        .limit(limit)
        .all()
    )
