"""
Shopify order feed, against a mocked HTTP transport
"""
import httpx
import pytest

from models.snapshot import SnapshotFilter
from services.errors import Unauthenticated, UpstreamUnavailable
from services.shopify_service import ShopifyService, generate_order_number, transform_shopify_order


SHOPIFY_ORDER = {
    "id": 5550001,
    "order_number": 101542,
    "customer": {"first_name": "Ada", "last_name": "Flute", "email": "ada@example.com"},
    "shipping_address": {"address1": "1 Clay Street", "city": "Utrecht", "zip": "3511", "country": "Netherlands"},
    "note": "Gift wrap",
    "created_at": "2026-10-01T10:00:00+00:00",
    "line_items": [
        {
            "id": 9001, "title": "Innato Dm4 (432Hz)", "variant_title": "Blue / Dm4 / Engraved",
            "sku": "INN-DM4", "quantity": 1, "fulfillable_quantity": 1, "fulfillment_status": None,
            "properties": [{"name": "Engraving text", "value": "For Sam"}],
        },
        {
            "id": 9002, "title": "Natey Am3", "quantity": 1, "fulfillable_quantity": 0,
            "fulfillment_status": "fulfilled", "properties": [],
        },
    ],
}


def make_service(handler, **kwargs):
    return ShopifyService(
        "workshop-test", "shpat_test", page_delay=0, transport=httpx.MockTransport(handler), **kwargs
    )


class TestTransform:
    def test_generate_order_number(self):
        assert generate_order_number(101542) == "SW-1542"
        assert generate_order_number("1542", prefix="XX-") == "XX-1542"

    def test_transform_shopify_order(self):
        snapshot = transform_shopify_order(SHOPIFY_ORDER)

        assert snapshot.order_number == "SW-1542"
        assert snapshot.external_order_id == "5550001"
        assert snapshot.customer_name == "Ada Flute"
        assert snapshot.shipping_address["city"] == "Utrecht"
        assert [li.line_item_id for li in snapshot.line_items] == ["9001", "9002"]
        assert snapshot.line_items[0].properties == {"Engraving text": "For Sam"}
        assert snapshot.line_items[1].fulfillment_status == "fulfilled"

    def test_missing_customer_falls_back_to_address_name(self):
        snapshot = transform_shopify_order({"id": 1, "order_number": 1000, "shipping_address": {"name": "Sam"}})
        assert snapshot.customer_name == "Sam"


class TestShopifyService:
    def test_shop_url_is_normalized(self):
        service = ShopifyService("https://workshop-test/", "token")
        assert service.base_url.startswith("https://workshop-test.myshopify.com/admin/api/")

    async def test_fetch_order_snapshot(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["token"] = request.headers.get("X-Shopify-Access-Token")
            return httpx.Response(200, json={"orders": [SHOPIFY_ORDER]})

        snapshot = await make_service(handler).fetch_order_snapshot("SW-1542")

        assert snapshot.order_number == "SW-1542"
        assert snapshot.source_order_number == "101542"
        assert "created_at_min" in seen["url"].params
        assert seen["token"] == "shpat_test"

    async def test_five_digit_order_number_picks_newest_match(self):
        old = {**SHOPIFY_ORDER, "id": 1, "order_number": 1542, "created_at": "2021-03-01T10:00:00+00:00"}
        current = {**SHOPIFY_ORDER, "id": 2, "order_number": 11542, "created_at": "2026-10-01T10:00:00+00:00"}
        other = {**SHOPIFY_ORDER, "id": 3, "order_number": 11543}

        service = make_service(lambda request: httpx.Response(200, json={"orders": [old, current, other]}))
        snapshot = await service.fetch_order_snapshot("SW-1542")

        assert snapshot.external_order_id == "2"
        assert snapshot.source_order_number == "11542"

    async def test_unlimited_lookup_window(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"orders": [SHOPIFY_ORDER]})

        await make_service(handler, lookup_days=0).fetch_order_snapshot("SW-1542")
        assert "created_at_min" not in seen["params"]

    async def test_fetch_order_snapshot_not_found(self):
        service = make_service(lambda request: httpx.Response(200, json={"orders": []}))
        assert await service.fetch_order_snapshot("SW-1542") is None

    async def test_rejected_credentials(self):
        service = make_service(lambda request: httpx.Response(401, json={"errors": "Invalid API key"}))
        with pytest.raises(Unauthenticated):
            await service.fetch_order_snapshot("SW-1542")

    async def test_server_error(self):
        service = make_service(lambda request: httpx.Response(503, text="maintenance"))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await service.fetch_order_snapshot("SW-1542")
        assert not isinstance(exc_info.value, Unauthenticated)

    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailable):
            await make_service(handler).fetch_order_snapshot("SW-1542")

    async def test_not_configured(self):
        service = ShopifyService("", "")
        assert service.is_configured is False
        with pytest.raises(Unauthenticated):
            await service.fetch_order_snapshot("SW-1542")

    async def test_pagination_and_dedup(self):
        second = {**SHOPIFY_ORDER, "id": 5550002, "order_number": 101543}
        next_url = "https://workshop-test.myshopify.com/admin/api/2024-10/orders.json?page_info=abc&limit=250"

        def handler(request):
            if request.url.params.get("page_info") == "abc":
                return httpx.Response(200, json={"orders": [SHOPIFY_ORDER, second]})
            assert request.url.params["created_at_min"] == "2026-10-01T00:00:00+00:00"
            return httpx.Response(
                200, json={"orders": [SHOPIFY_ORDER]}, headers={"Link": f'<{next_url}>; rel="next"'}
            )

        snapshots = await make_service(handler).fetch_order_snapshots(
            SnapshotFilter(created_at_min="2026-10-01T00:00:00+00:00")
        )

        assert [s.order_number for s in snapshots] == ["SW-1542", "SW-1543"]

    async def test_fetch_fulfillments(self):
        def handler(request):
            assert request.url.path.endswith("/orders/5550001/fulfillments.json")
            return httpx.Response(200, json={"fulfillments": [
                {"id": 1, "status": "success", "tracking_company": "UPS", "tracking_number": "1Z999"}
            ]})

        fulfillments = await make_service(handler).fetch_fulfillments("5550001")
        assert fulfillments[0].tracking_number == "1Z999"

    async def test_connection_failure_is_reported(self):
        service = make_service(lambda request: httpx.Response(403))
        result = await service.test_connection()
        assert result["success"] is False
