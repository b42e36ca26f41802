"""
Shopify Order Feed
Read-only client that turns Shopify orders into ExternalOrderSnapshots
"""
import httpx
from typing import Optional, List, Dict, Any
import asyncio
from datetime import datetime, timedelta, timezone
import logging

from config import (
    SHOPIFY_SHOP_URL, SHOPIFY_ACCESS_TOKEN, SHOPIFY_API_VERSION,
    UPSTREAM_TIMEOUT_SECONDS, ORDER_NUMBER_PREFIX, ORDER_LOOKUP_DAYS
)
from models.snapshot import ExternalOrderSnapshot, ExternalLineItem, SnapshotFilter, Fulfillment
from services.errors import Unauthenticated, UpstreamUnavailable

logger = logging.getLogger(__name__)

ORDER_FIELDS = (
    "id,name,order_number,customer,email,phone,shipping_address,billing_address,"
    "line_items,created_at,processed_at,note,fulfillment_status"
)


def generate_order_number(shopify_order_number: Any, prefix: str = ORDER_NUMBER_PREFIX) -> str:
    """Workshop order number from the Shopify order number: 101542 -> 'SW-1542'"""
    return f"{prefix}{str(shopify_order_number)[-4:]}"


def _upstream_sequence(snapshot: ExternalOrderSnapshot):
    """Sort key: full upstream order number, then creation time"""
    number = snapshot.source_order_number
    return (int(number) if number.isdigit() else -1, snapshot.created_at or "")


class ShopifyService:
    def __init__(
        self,
        shop_url: str,
        access_token: str,
        api_version: str = SHOPIFY_API_VERSION,
        timeout: float = UPSTREAM_TIMEOUT_SECONDS,
        prefix: str = ORDER_NUMBER_PREFIX,
        page_delay: float = 0.5,
        lookup_days: int = ORDER_LOOKUP_DAYS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize Shopify API client"""
        # Clean up shop URL
        self.shop_url = (shop_url or "").replace("https://", "").replace("http://", "").rstrip("/")
        if self.shop_url and not self.shop_url.endswith(".myshopify.com"):
            self.shop_url = f"{self.shop_url}.myshopify.com"

        self.access_token = access_token
        self.base_url = f"https://{self.shop_url}/admin/api/{api_version}"
        self.headers = {
            "X-Shopify-Access-Token": access_token or "",
            "Content-Type": "application/json"
        }
        self.timeout = timeout
        self.prefix = prefix
        self.page_delay = page_delay
        self.lookup_days = lookup_days
        self.transport = transport

    @classmethod
    def from_config(cls) -> "ShopifyService":
        return cls(SHOPIFY_SHOP_URL, SHOPIFY_ACCESS_TOKEN)

    @property
    def is_configured(self) -> bool:
        return bool(self.shop_url and self.access_token)

    def _client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise Unauthenticated("Shopify credentials not configured (SHOPIFY_SHOP_URL / SHOPIFY_ACCESS_TOKEN)")
        return httpx.AsyncClient(headers=self.headers, timeout=self.timeout, transport=self.transport)

    async def _get(self, client: httpx.AsyncClient, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise Unauthenticated(f"Shopify rejected credentials (HTTP {status})") from e
            raise UpstreamUnavailable(f"Shopify API error (HTTP {status}): {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Shopify unreachable: {e}") from e

    async def test_connection(self) -> Dict[str, Any]:
        """Test API connection by fetching shop info"""
        try:
            async with self._client() as client:
                response = await self._get(client, f"{self.base_url}/shop.json")
                return {"success": True, "shop": response.json().get("shop", {})}
        except UpstreamUnavailable as e:
            return {"success": False, "error": str(e)}

    async def fetch_order_snapshot(self, order_number: str) -> Optional[ExternalOrderSnapshot]:
        """Fetch the current snapshot of one order by workshop order number.

        Workshop numbers keep only the last four digits, so #1542 and #11542
        both map to SW-1542. The newest matching upstream order wins.
        Returns None when Shopify has no matching order.
        """
        snapshot_filter = SnapshotFilter()
        if self.lookup_days:
            since = datetime.now(timezone.utc) - timedelta(days=self.lookup_days)
            snapshot_filter.created_at_min = since.isoformat()

        candidates = [
            s for s in await self.fetch_order_snapshots(snapshot_filter)
            if s.order_number == order_number
        ]
        if not candidates:
            return None
        if len(candidates) > 1:
            logger.info(
                f"{len(candidates)} Shopify orders end in {order_number}: "
                f"{', '.join(c.source_order_number for c in candidates)}"
            )
        return max(candidates, key=_upstream_sequence)

    async def fetch_order_snapshots(self, snapshot_filter: Optional[SnapshotFilter] = None) -> List[ExternalOrderSnapshot]:
        """Fetch all orders matching the filter, following Link-header pagination"""
        snapshot_filter = snapshot_filter or SnapshotFilter()
        params: Optional[Dict[str, Any]] = {
            "status": snapshot_filter.status,
            "limit": snapshot_filter.limit,
            "fields": ORDER_FIELDS,
        }
        if snapshot_filter.created_at_min:
            params["created_at_min"] = snapshot_filter.created_at_min
        if snapshot_filter.fulfillment_status:
            params["fulfillment_status"] = snapshot_filter.fulfillment_status

        orders = []
        url = f"{self.base_url}/orders.json"

        async with self._client() as client:
            while url:
                response = await self._get(client, url, params=params)
                orders.extend(response.json().get("orders", []))

                # Handle pagination; the next link already carries the query
                link_header = response.headers.get("Link", "")
                url = None
                params = None
                if 'rel="next"' in link_header:
                    for link in link_header.split(","):
                        if 'rel="next"' in link:
                            url = link.split(";")[0].strip("<> ")
                            break

                # Rate limiting - 2 req/sec
                if url:
                    await asyncio.sleep(self.page_delay)

        # Same order can appear twice across pages when it changes mid-fetch
        seen = set()
        snapshots = []
        for shopify_order in orders:
            if shopify_order.get("id") in seen:
                continue
            seen.add(shopify_order.get("id"))
            snapshots.append(transform_shopify_order(shopify_order, self.prefix))
        return snapshots

    async def fetch_fulfillments(self, external_order_id: str) -> List[Fulfillment]:
        """Fetch fulfillments (with tracking info) for one Shopify order"""
        async with self._client() as client:
            response = await self._get(client, f"{self.base_url}/orders/{external_order_id}/fulfillments.json")
        return [Fulfillment(**f) for f in response.json().get("fulfillments", [])]


def transform_shopify_order(shopify_order: Dict, prefix: str = ORDER_NUMBER_PREFIX) -> ExternalOrderSnapshot:
    """Transform Shopify order to an order snapshot"""
    # Get customer info
    customer = shopify_order.get("customer") or {}
    shipping_address = shopify_order.get("shipping_address") or shopify_order.get("billing_address") or {}
    customer_name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()
    if not customer_name:
        customer_name = shipping_address.get("name") or "Unknown Customer"

    # Transform line items
    line_items = []
    for item in shopify_order.get("line_items", []):
        properties = {
            p.get("name"): str(p.get("value", ""))
            for p in item.get("properties") or []
            if p.get("name")
        }
        line_items.append(ExternalLineItem(
            line_item_id=str(item.get("id", "")),
            title=item.get("title") or item.get("name") or "",
            variant_title=item.get("variant_title"),
            sku=item.get("sku") or None,
            quantity=item.get("quantity", 1),
            fulfillable_quantity=item.get("fulfillable_quantity") or 0,
            fulfillment_status=item.get("fulfillment_status"),
            properties=properties,
        ))

    return ExternalOrderSnapshot(
        external_order_id=str(shopify_order.get("id", "")),
        order_number=generate_order_number(shopify_order.get("order_number", ""), prefix),
        source_order_number=str(shopify_order.get("order_number", "")),
        customer_name=customer_name,
        customer_email=customer.get("email") or shopify_order.get("email"),
        customer_phone=customer.get("phone") or shopify_order.get("phone") or shipping_address.get("phone"),
        shipping_address={
            "address1": shipping_address.get("address1", ""),
            "address2": shipping_address.get("address2", ""),
            "city": shipping_address.get("city", ""),
            "province": shipping_address.get("province", ""),
            "country": shipping_address.get("country", ""),
            "zip": shipping_address.get("zip", ""),
            "phone": shipping_address.get("phone", ""),
        } if shipping_address else None,
        note=shopify_order.get("note"),
        created_at=shopify_order.get("created_at"),
        processed_at=shopify_order.get("processed_at"),
        line_items=line_items,
    )
