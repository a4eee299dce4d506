"""
Order value types read from the Shopify Admin GraphQL API.

The engine only ever reads orders; these dataclasses hold the fields the
cycle resolver and tag reconciler need, parsed once from GraphQL nodes.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from ..utils.exceptions import SourceProtocolError


def gid_to_id(gid: Optional[str]) -> Optional[str]:
    """
    Extract the numeric part of a Shopify GID.

    'gid://shopify/Customer/123456789' -> '123456789'
    """
    if not gid:
        return None
    return str(gid).rstrip('/').split('/')[-1] or None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as returned by Shopify ('Z' suffix allowed).

    Timestamps without an offset are taken as UTC so all parsed values compare.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (TypeError, ValueError) as e:
        raise SourceProtocolError(f"Malformed timestamp from Shopify: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_tags(tags) -> List[str]:
    """Trim tags and drop blanks. Accepts a list or a comma separated string."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(',')
    return [t.strip() for t in tags if t and t.strip()]


@dataclass
class LineItem:
    selling_plan_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_id: Optional[str] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> 'LineItem':
        selling_plan = node.get('sellingPlan') or {}
        variant = node.get('variant') or {}
        product = variant.get('product') or {}
        return cls(
            selling_plan_id=selling_plan.get('sellingPlanId'),
            variant_id=variant.get('id'),
            product_id=product.get('id'),
        )


@dataclass
class Order:
    id: str
    created_at: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    note: Optional[str] = None
    customer_id: Optional[str] = None
    line_items: List[LineItem] = field(default_factory=list)

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> 'Order':
        """Build an Order from a GraphQL `Order` node."""
        if not isinstance(node, dict) or not node.get('id'):
            raise SourceProtocolError(f"Malformed order node from Shopify: {node!r}")

        customer = node.get('customer') or {}
        edges = (node.get('lineItems') or {}).get('edges') or []

        return cls(
            id=node['id'],
            created_at=parse_timestamp(node.get('createdAt')),
            tags=clean_tags(node.get('tags')),
            note=node.get('note'),
            customer_id=customer.get('id'),
            line_items=[LineItem.from_node(edge.get('node') or {}) for edge in edges],
        )

    @property
    def subscription_line_item(self) -> Optional[LineItem]:
        """First line item purchased on a selling plan, if any."""
        for item in self.line_items:
            if item.selling_plan_id:
                return item
        return None

    @property
    def has_selling_plan(self) -> bool:
        return self.subscription_line_item is not None

    def has_selling_plan_id(self, selling_plan_id: str) -> bool:
        return any(item.selling_plan_id == selling_plan_id for item in self.line_items)

    @property
    def product_ids(self) -> List[str]:
        """Product GIDs of all line items, in line item order (may repeat)."""
        return [item.product_id for item in self.line_items if item.product_id]


@dataclass
class OrdersPage:
    orders: List[Order]
    end_cursor: Optional[str] = None
    has_next_page: bool = False
