"""
Order Cycle Service.

Processes one newly created order (the orders/create webhook path):

    fetch order -> has selling plan?
        no  -> tag 'One-Time', merge purchased products metafield
        yes -> resolve cycle (incremental by default) -> reconcile tags
"""
import logging
from typing import Any, Dict, Optional

from ..config import CycleSettings
from .cycle_resolver import increment_cycle, recount_cycle, subscription_identity
from .cycle_store import CycleStore
from .orders import Order
from .purchased_products import record_purchased_products
from .shopify_client import ShopifyClient
from .tag_reconciler import reconcile_order, tag_one_time

logger = logging.getLogger(__name__)


class OrderCycleService:
    """
    Single-order reconciliation for one tenant.

    Usage:
        service = OrderCycleService(tenant, CycleSettings.from_app_config(app.config))
        result = service.process_order('gid://shopify/Order/123')
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

    def process_order(self, order_id: str) -> Dict[str, Any]:
        """
        Fetch an order and bring its cycle state, tags and note up to date.

        Errors from Shopify or the store propagate to the caller.
        """
        order = self.client.fetch_order(order_id)
        if order is None:
            logger.warning(f'Order {order_id} not found on {self.shop}')
            return {'status': 'not_found', 'order_id': order_id}

        identity = subscription_identity(self.shop, order)
        if identity is None:
            return self._process_one_time(order)

        if self.settings.webhook_strategy == 'recount':
            cycle = recount_cycle(self.client, order, identity)
            self.store.upsert(identity.to_record(cycle=cycle, last_order_id=order.id))
            duplicate = False
        else:
            assignment = increment_cycle(self.store, identity, order.id)
            cycle = assignment.cycle
            duplicate = assignment.duplicate

        update = reconcile_order(self.client, order, cycle)

        return {
            'status': 'subscription',
            'order_id': order.id,
            'subscription_key': identity.key,
            'cycle': cycle,
            'duplicate': duplicate,
            'tags': update.tags,
            'note': update.note,
        }

    def _process_one_time(self, order: Order) -> Dict[str, Any]:
        update = tag_one_time(self.client, order)

        products = record_purchased_products(
            self.client,
            order,
            self.settings.metafield_namespace,
            self.settings.metafield_key
        )

        return {
            'status': 'one_time',
            'order_id': order.id,
            'tags': update.tags,
            'note': update.note,
            'purchased_products': products,
        }
