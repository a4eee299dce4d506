"""
Cycle Resolver.

Works out which subscription an order belongs to and its 1-based cycle
number within that subscription. Two strategies:

- recount: position of the order in the customer's chronological history
  of orders on the same selling plan. Derived only from Shopify data, so
  running it twice gives the same answer. Used by the batch sync.
- incremental: stored cycle + 1, guarded by the order-id ledger in the
  CycleStore. Used by the orders/create webhook.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .cycle_store import CycleAssignment, CycleRecord, CycleStore
from .orders import Order, gid_to_id
from ..utils.exceptions import CycleResolutionError

logger = logging.getLogger(__name__)

# Orders without a creation timestamp sort last
_MISSING_TIMESTAMP = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class SubscriptionIdentity:
    """Shop + customer + selling plan: one recurring-order stream."""
    shop: str
    customer_id: str
    selling_plan_id: str
    product_id: Optional[str] = None
    variant_id: Optional[str] = None

    @property
    def key(self) -> str:
        return f'shop:{self.shop}::cust:{self.customer_id}::sp:{self.selling_plan_id}'

    def to_record(self, cycle: int = 1, last_order_id: Optional[str] = None) -> CycleRecord:
        return CycleRecord(
            subscription_key=self.key,
            shop=self.shop,
            customer_id=self.customer_id,
            selling_plan_id=self.selling_plan_id,
            product_id=self.product_id or '',
            variant_id=self.variant_id or '',
            cycle=cycle,
            last_order_id=last_order_id,
        )


def subscription_identity(shop: str, order: Order) -> Optional[SubscriptionIdentity]:
    """
    Identity of the subscription an order belongs to.

    Returns None for orders with no selling-plan line item (one-time
    orders). Raises CycleResolutionError for subscription orders without a
    customer, which cannot be attributed to any stream.
    """
    item = order.subscription_line_item
    if item is None:
        return None

    customer_id = gid_to_id(order.customer_id)
    if not customer_id:
        raise CycleResolutionError(f"Order {order.id} has a selling plan but no customer")

    return SubscriptionIdentity(
        shop=shop,
        customer_id=customer_id,
        selling_plan_id=item.selling_plan_id,
        product_id=item.product_id,
        variant_id=item.variant_id,
    )


def subscription_history(orders: List[Order], selling_plan_id: str) -> List[Order]:
    """
    Orders on `selling_plan_id`, oldest first.

    sorted() is stable, so orders sharing a timestamp keep the order
    Shopify returned them in.
    """
    relevant = [o for o in orders if o.has_selling_plan_id(selling_plan_id)]
    return sorted(relevant, key=lambda o: o.created_at or _MISSING_TIMESTAMP)


def cycle_from_history(order_id: str, history: List[Order]) -> int:
    """1-based position of `order_id` in a sorted subscription history."""
    for position, order in enumerate(history, start=1):
        if order.id == order_id:
            return position
    raise CycleResolutionError(f"Order {order_id} not found in its subscription history")


def recount_cycle(client, order: Order, identity: SubscriptionIdentity) -> int:
    """Recount strategy: derive the cycle from the customer's full order history."""
    orders = client.fetch_orders_for_customer(identity.customer_id)
    history = subscription_history(orders, identity.selling_plan_id)
    cycle = cycle_from_history(order.id, history)

    logger.debug(f'Recount for {order.id}: cycle {cycle} of {len(history)} ({identity.key})')
    return cycle


def increment_cycle(store: CycleStore, identity: SubscriptionIdentity, order_id: str) -> CycleAssignment:
    """Incremental strategy: stored cycle + 1, or 1 if no record exists."""
    return store.increment(identity.to_record(), order_id)
