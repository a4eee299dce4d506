"""
Shopify Admin API client.
Reads orders and customer metafields, writes order tags/notes and metafields.
"""
import logging
import httpx
from typing import Optional, Dict, Any, List

from ..utils.exceptions import (
    ConfigurationError,
    SourceProtocolError,
    SourceUnavailable,
    UpdateRejected,
)
from .orders import Order, OrdersPage, gid_to_id

logger = logging.getLogger(__name__)


ORDER_FIELDS = """
    id
    createdAt
    tags
    note
    customer { id }
    lineItems(first: $lineItems) {
        edges {
            node {
                sellingPlan { sellingPlanId }
                variant {
                    id
                    product { id }
                }
            }
        }
    }
"""

ORDERS_PAGE_QUERY = """
query getOrders($first: Int!, $cursor: String, $query: String, $lineItems: Int!) {
    orders(first: $first, after: $cursor, query: $query) {
        edges {
            node {
                %s
            }
        }
        pageInfo {
            hasNextPage
            endCursor
        }
    }
}
""" % ORDER_FIELDS

ORDER_QUERY = """
query getOrder($id: ID!, $lineItems: Int!) {
    order(id: $id) {
        %s
    }
}
""" % ORDER_FIELDS

ORDER_UPDATE_MUTATION = """
mutation orderUpdate($input: OrderInput!) {
    orderUpdate(input: $input) {
        order {
            id
            tags
            note
        }
        userErrors {
            field
            message
        }
    }
}
"""

CUSTOMER_METAFIELD_QUERY = """
query getCustomerMetafield($id: ID!, $namespace: String!, $key: String!) {
    customer(id: $id) {
        id
        metafield(namespace: $namespace, key: $key) {
            id
            value
        }
    }
}
"""

METAFIELDS_SET_MUTATION = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
    metafieldsSet(metafields: $metafields) {
        metafields {
            id
            key
            namespace
            value
        }
        userErrors {
            field
            message
        }
    }
}
"""


WEBHOOK_SUBSCRIPTIONS_QUERY = """
query {
    webhookSubscriptions(first: 100) {
        edges {
            node {
                id
                topic
                endpoint {
                    ... on WebhookHttpEndpoint {
                        callbackUrl
                    }
                }
            }
        }
    }
}
"""

WEBHOOK_SUBSCRIPTION_CREATE_MUTATION = """
mutation webhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!) {
    webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription) {
        webhookSubscription {
            id
            topic
        }
        userErrors {
            field
            message
        }
    }
}
"""

class ShopifyClient:
    """
    Client for Shopify Admin GraphQL API.

    Supports:
    - Paginated order listing (cursor based, strictly forward)
    - Customer order history
    - Single order lookup
    - Order tag/note updates
    - Customer metafield read/write
    - Webhook subscription setup

    Transport failures, timeouts and HTTP error statuses raise
    SourceUnavailable; GraphQL error payloads and malformed bodies raise
    SourceProtocolError; mutation userErrors raise UpdateRejected.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = '2025-01',
        timeout: float = 30.0,
        history_page_size: int = 250,
        order_line_items: int = 50,
    ):
        if not shop_domain or not access_token:
            raise ConfigurationError("Shop domain and access token are required")

        self.shop_domain = shop_domain.replace('https://', '').replace('http://', '').rstrip('/')
        self.access_token = access_token

        self.api_version = api_version
        self.timeout = timeout
        self.history_page_size = history_page_size
        self.order_line_items = order_line_items
        self.graphql_url = f'https://{self.shop_domain}/admin/api/{api_version}/graphql.json'

    @classmethod
    def for_tenant(cls, tenant, settings) -> 'ShopifyClient':
        """Build a client from a Tenant row and CycleSettings."""
        if not tenant.has_session:
            raise ConfigurationError(f"Tenant {tenant.shop_slug} missing Shopify credentials")
        return cls(
            tenant.shopify_domain,
            tenant.shopify_access_token,
            api_version=settings.api_version,
            timeout=settings.request_timeout,
            history_page_size=settings.history_page_size,
            order_line_items=settings.order_line_items,
        )

    def _execute_query(self, query: str, variables: Optional[Dict] = None) -> Dict[str, Any]:
        """Execute a GraphQL query."""
        headers = {
            'X-Shopify-Access-Token': self.access_token,
            'Content-Type': 'application/json'
        }

        payload = {'query': query}
        if variables:
            payload['variables'] = variables

        try:
            with httpx.Client() as client:
                response = client.post(
                    self.graphql_url,
                    headers=headers,
                    json=payload,
                    timeout=self.timeout
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(
                f"Shopify returned HTTP {e.response.status_code} for {self.shop_domain}",
                original_error=e
            ) from e
        except httpx.RequestError as e:
            raise SourceUnavailable(f"Could not reach Shopify for {self.shop_domain}: {e}", original_error=e) from e
        except ValueError as e:
            raise SourceProtocolError(f"Invalid JSON from Shopify: {e}") from e

        if not isinstance(result, dict):
            raise SourceProtocolError(f"Unexpected Shopify response: {result!r}")

        if result.get('errors'):
            raise SourceProtocolError(f"GraphQL errors: {result['errors']}", errors=result['errors'])

        data = result.get('data')
        if data is None:
            raise SourceProtocolError("Shopify response has no data")

        return data

    # ==================== ORDERS ====================

    def fetch_orders_page(
        self,
        query: Optional[str] = None,
        cursor: Optional[str] = None,
        first: int = 20,
        line_items: int = 10
    ) -> OrdersPage:
        """
        Fetch one page of orders.

        Args:
            query: Shopify search query, e.g. 'financial_status:paid'
            cursor: endCursor of the previous page (None for the first page)
            first: Page size
            line_items: How many line items to expand per order

        Returns:
            OrdersPage with orders, end cursor and has_next_page
        """
        variables = {
            'first': first,
            'cursor': cursor,
            'query': query,
            'lineItems': line_items,
        }

        data = self._execute_query(ORDERS_PAGE_QUERY, variables)

        connection = data.get('orders')
        if not isinstance(connection, dict):
            raise SourceProtocolError("Shopify response is missing 'orders'")

        page_info = connection.get('pageInfo') or {}
        orders = [Order.from_node(edge.get('node')) for edge in connection.get('edges') or []]

        return OrdersPage(
            orders=orders,
            end_cursor=page_info.get('endCursor'),
            has_next_page=bool(page_info.get('hasNextPage')),
        )

    def fetch_orders_for_customer(self, customer_id: str) -> List[Order]:
        """
        Fetch the full order history of a customer.

        Follows cursors until the last page, in the order Shopify returns them.

        Args:
            customer_id: Shopify customer ID (numeric or GID)
        """
        numeric_id = gid_to_id(customer_id)
        search = f'customer_id:{numeric_id}'

        orders: List[Order] = []
        cursor = None
        while True:
            page = self.fetch_orders_page(
                query=search,
                cursor=cursor,
                first=self.history_page_size,
                line_items=self.order_line_items
            )
            orders.extend(page.orders)
            if not page.has_next_page or not page.end_cursor:
                break
            cursor = page.end_cursor

        logger.debug(f'Fetched {len(orders)} orders for customer {numeric_id}')
        return orders

    def fetch_order(self, order_id: str) -> Optional[Order]:
        """
        Fetch a single order by GID.

        Returns:
            Order or None if Shopify has no such order
        """
        if not order_id.startswith('gid://'):
            order_id = f'gid://shopify/Order/{order_id}'

        data = self._execute_query(ORDER_QUERY, {'id': order_id, 'lineItems': self.order_line_items})
        node = data.get('order')
        if not node:
            return None
        return Order.from_node(node)

    def update_order(self, order_id: str, tags: List[str], note: Optional[str]) -> Dict[str, Any]:
        """
        Replace an order's tags and note.

        Args:
            order_id: Order GID
            tags: Full replacement tag list
            note: Replacement note

        Returns:
            Dict with the updated order's id, tags and note

        Raises:
            UpdateRejected: If Shopify reports user errors
        """
        variables = {
            'input': {
                'id': order_id,
                'tags': tags,
                'note': note,
            }
        }

        result = self._execute_query(ORDER_UPDATE_MUTATION, variables)

        mutation_result = result.get('orderUpdate') or {}
        user_errors = mutation_result.get('userErrors') or []

        if user_errors:
            raise UpdateRejected(user_errors)

        order = mutation_result.get('order') or {}

        return {
            'id': order.get('id', order_id),
            'tags': order.get('tags', tags),
            'note': order.get('note', note),
        }

    # ==================== CUSTOMER METAFIELDS ====================

    def get_customer_metafield(self, customer_id: str, namespace: str, key: str) -> Optional[str]:
        """
        Read a customer metafield's raw value.

        Returns:
            The metafield value string, or None if unset
        """
        if not customer_id.startswith('gid://'):
            customer_id = f'gid://shopify/Customer/{customer_id}'

        data = self._execute_query(CUSTOMER_METAFIELD_QUERY, {
            'id': customer_id,
            'namespace': namespace,
            'key': key,
        })

        customer = data.get('customer') or {}
        metafield = customer.get('metafield') or {}
        return metafield.get('value')

    def set_customer_metafield(
        self,
        customer_id: str,
        namespace: str,
        key: str,
        value: str,
        value_type: str = 'json'
    ) -> Dict[str, Any]:
        """
        Create or overwrite a customer metafield.

        Raises:
            UpdateRejected: If Shopify reports user errors
        """
        if not customer_id.startswith('gid://'):
            customer_id = f'gid://shopify/Customer/{customer_id}'

        variables = {
            'metafields': [
                {
                    'namespace': namespace,
                    'key': key,
                    'type': value_type,
                    'ownerId': customer_id,
                    'value': value,
                }
            ]
        }

        result = self._execute_query(METAFIELDS_SET_MUTATION, variables)

        mutation_result = result.get('metafieldsSet') or {}
        user_errors = mutation_result.get('userErrors') or []

        if user_errors:
            raise UpdateRejected(user_errors)

        metafields = mutation_result.get('metafields') or []
        return metafields[0] if metafields else {}

    # ==================== WEBHOOK SUBSCRIPTIONS ====================

    def list_webhook_subscriptions(self) -> List[Dict[str, Any]]:
        """Existing webhook subscriptions (id, topic, endpoint.callbackUrl)."""
        data = self._execute_query(WEBHOOK_SUBSCRIPTIONS_QUERY)
        edges = (data.get('webhookSubscriptions') or {}).get('edges') or []
        return [edge['node'] for edge in edges if edge.get('node')]

    def create_webhook_subscription(self, topic: str, callback_url: str) -> Dict[str, Any]:
        """
        Subscribe the app to a webhook topic.

        Raises:
            UpdateRejected: If Shopify reports user errors
        """
        variables = {
            'topic': topic,
            'webhookSubscription': {
                'callbackUrl': callback_url,
                'format': 'JSON',
            },
        }

        result = self._execute_query(WEBHOOK_SUBSCRIPTION_CREATE_MUTATION, variables)

        mutation_result = result.get('webhookSubscriptionCreate') or {}
        user_errors = mutation_result.get('userErrors') or []

        if user_errors:
            raise UpdateRejected(user_errors)

        return mutation_result.get('webhookSubscription') or {}
