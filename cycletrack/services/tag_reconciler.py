"""
Tag Reconciler.

Derives the cycle tag for an order and rewrites the order's tags and note
so it carries exactly one cycle tag. Both the webhook and the batch sync
go through this module; the cycle tag pattern is defined only here.

Tag rules:
    cycle 1      -> 'Monthly-Free-Gift'
    cycle N > 1  -> 'Monthly-order-N-no-Gifts'
    no selling plan -> 'One-Time' (added, never stripped)
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .orders import Order, clean_tags

logger = logging.getLogger(__name__)


GIFT_TAG = 'Monthly-Free-Gift'
NO_GIFT_TAG_TEMPLATE = 'Monthly-order-{cycle}-no-Gifts'
ONE_TIME_TAG = 'One-Time'

# Matches both cycle tag shapes, whatever the cycle number
CYCLE_TAG_PATTERN = re.compile(r'^Monthly-(Free-Gift|order-\d+-no-Gifts)$', re.IGNORECASE)


@dataclass
class OrderUpdateResult:
    order_id: str
    tags: List[str]
    note: Optional[str]
    cycle: Optional[int] = None

    def to_dict(self):
        return {
            'order_id': self.order_id,
            'tags': self.tags,
            'note': self.note,
            'cycle': self.cycle,
        }


def derive_tag(cycle: int) -> str:
    """Cycle tag for a 1-based cycle number."""
    if cycle < 1:
        raise ValueError(f"Cycle must be >= 1, got {cycle}")
    if cycle == 1:
        return GIFT_TAG
    return NO_GIFT_TAG_TEMPLATE.format(cycle=cycle)


def is_cycle_tag(tag: str) -> bool:
    return bool(CYCLE_TAG_PATTERN.match(tag.strip()))


def strip_cycle_tags(tags: Iterable[str]) -> List[str]:
    """Drop every app-owned cycle tag, keep everything else in order."""
    return [t for t in clean_tags(list(tags)) if not is_cycle_tag(t)]


def _dedupe(tags: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for tag in tags:
        if tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def reconcile_tags(current_tags: Iterable[str], derived_tag: str) -> List[str]:
    """
    New tag list for an order: user tags (first occurrence order kept)
    followed by the single derived cycle tag.

    Idempotent: reconcile_tags(reconcile_tags(t, x), x) == reconcile_tags(t, x).
    """
    return _dedupe(strip_cycle_tags(current_tags)) + [derived_tag]


def apply_update(client, order_id: str, tags: List[str], note: Optional[str]) -> OrderUpdateResult:
    """
    Write tags and note back to Shopify.

    UpdateRejected (user errors) and SourceProtocolError/SourceUnavailable
    propagate unchanged to the driver.
    """
    updated = client.update_order(order_id, tags, note)
    return OrderUpdateResult(
        order_id=updated.get('id', order_id),
        tags=list(updated.get('tags') or tags),
        note=updated.get('note', note),
    )


def reconcile_order(client, order: Order, cycle: int) -> OrderUpdateResult:
    """Replace the order's cycle tag and note with the ones for `cycle`."""
    tag = derive_tag(cycle)
    tags = reconcile_tags(order.tags, tag)

    result = apply_update(client, order.id, tags, tag)
    result.cycle = cycle

    logger.info(f'Order {order.id} tagged as: {tag}')
    return result


def tag_one_time(client, order: Order) -> OrderUpdateResult:
    """Tag an order without a selling plan as a one-time purchase."""
    tags = _dedupe(clean_tags(order.tags) + [ONE_TIME_TAG])

    result = apply_update(client, order.id, tags, ONE_TIME_TAG)

    logger.info(f'Order {order.id} has no selling plan, tagged as {ONE_TIME_TAG}')
    return result
