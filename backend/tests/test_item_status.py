"""
Item status flags and the building freeze point
"""
import pytest

from models.order import OrderStatus
from models.serial_number import FreezeStatus
from services.errors import NotFound, ValidationError
from services.item_status import update_item_status, archive_item


@pytest.fixture
async def item(store):
    order = await store.create_order({"order_number": "SW-1542"})
    return await store.create_order_item({
        "order_id": order.order_id,
        "serial_number": "SW-1542-2",
        "item_type": "Innato Dm4 (432Hz)",
        "tuning": "Dm4",
        "external_line_item_id": "ext-200",
        "specifications": {"type": "Innato Dm4 (432Hz)", "fluteType": "INNATO", "tuning": "Dm4", "frequency": "432"},
    })


class TestUpdateItemStatus:
    async def test_building_freezes_serial_number(self, store, registry, item):
        result = await update_item_status(store, registry, item.item_id, "building", True)

        assert result["freeze"].status == FreezeStatus.FROZEN
        assert result["item"].status == OrderStatus.BUILDING
        assert result["item"].build_date is not None
        assert "building" in result["item"].status_change_dates
        record = await registry.resolve("SW-1542-2")
        assert (record.type, record.display_tuning, record.frequency) == ("INNATO", "Dm4", "432")
        assert await registry.lookup_binding("ext-200") == "1542-2"

    async def test_rechecking_building_is_already_frozen(self, store, registry, item):
        await update_item_status(store, registry, item.item_id, "building", True)
        again = await update_item_status(store, registry, item.item_id, "building", True)

        assert again["freeze"].status == FreezeStatus.ALREADY_FROZEN

    async def test_unchecking_building_keeps_freeze(self, store, registry, item):
        await update_item_status(store, registry, item.item_id, "building", True)
        result = await update_item_status(store, registry, item.item_id, "building", False)

        assert result["item"].build_date is None
        assert "building" not in result["item"].status_change_dates
        assert await registry.resolve("1542-2") is not None

    async def test_other_stage_does_not_freeze(self, store, registry, item):
        result = await update_item_status(store, registry, item.item_id, "firing", True)

        assert result["freeze"] is None
        assert result["item"].status == OrderStatus.FIRING
        assert await registry.resolve("1542-2") is None

    async def test_unknown_status(self, store, registry, item):
        with pytest.raises(ValidationError):
            await update_item_status(store, registry, item.item_id, "glazing", True)

    async def test_missing_item(self, store, registry):
        with pytest.raises(NotFound):
            await update_item_status(store, registry, 404, "building", True)


class TestArchiveItem:
    async def test_archive(self, store, item):
        archived = await archive_item(store, item.item_id, "Customer cancelled one flute")
        assert archived.is_archived is True
        assert archived.archived_reason == "Customer cancelled one flute"

    async def test_archive_missing(self, store):
        with pytest.raises(NotFound):
            await archive_item(store, 404)
