"""
Purchased products tracking for one-time orders.

Keeps a customer metafield (JSON array of product GIDs) listing every
product the customer bought outside a subscription. The list only grows.
"""
import json
import logging
from typing import Iterable, List, Optional

from .orders import Order

logger = logging.getLogger(__name__)


def parse_product_list(value: Optional[str]) -> List[str]:
    """Decode the metafield value; unreadable or non-list values count as empty."""
    if not value:
        return []
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f'Ignoring unreadable purchased products value: {value!r}')
        return []
    if not isinstance(decoded, list):
        logger.warning(f'Ignoring non-list purchased products value: {value!r}')
        return []
    return [str(p) for p in decoded if p]


def merge_products(existing: Iterable[str], new: Iterable[str]) -> List[str]:
    """Union keeping first-seen order."""
    merged = []
    seen = set()
    for product_id in list(existing) + list(new):
        if product_id and product_id not in seen:
            seen.add(product_id)
            merged.append(product_id)
    return merged


def record_purchased_products(client, order: Order, namespace: str, key: str) -> Optional[List[str]]:
    """
    Add the order's products to the customer's purchased products metafield.

    Returns:
        The merged list written to Shopify, or None for guest orders
    """
    if not order.customer_id:
        logger.info(f'Order {order.id} has no customer, skipping purchased products')
        return None

    current = parse_product_list(client.get_customer_metafield(order.customer_id, namespace, key))
    merged = merge_products(current, order.product_ids)

    if merged == current:
        logger.debug(f'Purchased products for {order.customer_id} already up to date')
        return merged

    client.set_customer_metafield(order.customer_id, namespace, key, json.dumps(merged), 'json')

    logger.info(f'Updated {namespace}.{key} for {order.customer_id}: {len(merged)} products')
    return merged
