"""Tests for the catalog store adapter against the in-memory collection."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pricewatch.core.errors import StoreConflict
from pricewatch.domain.models.product import AlertSettings, Platform, PricePoint, ProductRecord
from pricewatch.domain.repositories.product_repo import ProductRepo
from tests.fakes import FakeDB


def _record(product_id: str = "B0ABC12345", price: float = 999.0, **extra) -> ProductRecord:
    ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return ProductRecord(
        platform=Platform.AMAZON,
        product_id=product_id,
        url=f"https://www.amazon.in/dp/{product_id}",
        name="Widget",
        current_price=price,
        image_url="https://img/widget.jpg",
        price_history=[PricePoint(price=price, timestamp=ts)],
        **extra,
    )


@pytest.mark.asyncio
async def test_ensure_indexes_creates_unique_key() -> None:
    db = FakeDB()
    await ProductRepo(db).ensure_indexes()
    assert ("platform", "product_id") in db["products"].unique_keys


@pytest.mark.asyncio
async def test_insert_then_find(db) -> None:
    repo = ProductRepo(db)
    saved = await repo.insert(_record())
    assert saved.created_at is not None

    found = await repo.find_one(Platform.AMAZON, "B0ABC12345")
    assert found is not None
    assert found.platform is Platform.AMAZON
    assert [p.price for p in found.price_history] == [999.0]


@pytest.mark.asyncio
async def test_duplicate_insert_raises_store_conflict(db, products) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record())
    with pytest.raises(StoreConflict):
        await repo.insert(_record(price=10.0))
    assert len(products.docs) == 1


@pytest.mark.asyncio
async def test_apply_refresh_appends_history_atomically(db) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record())
    point = PricePoint(price=949.0, timestamp=datetime.now(timezone.utc))

    assert await repo.apply_refresh(
        Platform.AMAZON, "B0ABC12345", fields={"rating_avg": 4.5}, price_point=point
    )

    found = await repo.find_one(Platform.AMAZON, "B0ABC12345")
    assert found.current_price == 949.0
    assert [p.price for p in found.price_history] == [999.0, 949.0]
    assert found.rating_avg == 4.5


@pytest.mark.asyncio
async def test_apply_refresh_without_price_point_keeps_history(db) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record())
    await repo.apply_refresh(Platform.AMAZON, "B0ABC12345", fields={"rating_count": 12})
    found = await repo.find_one(Platform.AMAZON, "B0ABC12345")
    assert len(found.price_history) == 1
    assert found.rating_count == 12


@pytest.mark.asyncio
async def test_find_all_skips_invalid_documents(db, products) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record("B0AAAAAAAA"))
    products.docs.append({"platform": "amazon", "product_id": "BROKEN", "price_history": []})
    records = await repo.find_all()
    assert [r.product_id for r in records] == ["B0AAAAAAAA"]


@pytest.mark.asyncio
async def test_find_by_owner_skips_invalid_documents(db, products) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record("B0AAAAAAAA", owner_ref="user-1"))
    products.docs.append({"platform": "amazon", "product_id": "BROKEN", "owner_ref": "user-1", "price_history": []})

    assert [r.product_id for r in await repo.find_by_owner("user-1")] == ["B0AAAAAAAA"]
    assert [r.product_id for r in await repo.find_by_owner(None)] == ["B0AAAAAAAA"]


@pytest.mark.asyncio
async def test_claim_owner_only_once(db) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record())
    assert await repo.claim_owner(Platform.AMAZON, "B0ABC12345", "user-1") is True
    assert await repo.claim_owner(Platform.AMAZON, "B0ABC12345", "user-2") is False
    found = await repo.find_one(Platform.AMAZON, "B0ABC12345")
    assert found.owner_ref == "user-1"


@pytest.mark.asyncio
async def test_owner_scoped_listing_and_delete(db) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record("B0AAAAAAAA", owner_ref="user-1"))
    await repo.insert(_record("B0BBBBBBBB", owner_ref="user-2"))

    mine = await repo.find_by_owner("user-1")
    assert [r.product_id for r in mine] == ["B0AAAAAAAA"]
    assert len(await repo.find_by_owner(None)) == 2

    assert await repo.delete(Platform.AMAZON, "B0BBBBBBBB", owner_ref="user-1") is False
    assert await repo.delete(Platform.AMAZON, "B0BBBBBBBB", owner_ref="user-2") is True


@pytest.mark.asyncio
async def test_set_alert(db) -> None:
    repo = ProductRepo(db)
    await repo.insert(_record())
    alert = AlertSettings(enabled=True, target_price=900.0, owner_ref="user-1")
    assert await repo.set_alert(Platform.AMAZON, "B0ABC12345", alert)
    assert not await repo.set_alert(Platform.FLIPKART, "B0ABC12345", alert)
    found = await repo.find_one(Platform.AMAZON, "B0ABC12345")
    assert found.alert == alert


def test_record_rejects_history_out_of_sync_with_price() -> None:
    with pytest.raises(ValueError):
        ProductRecord(
            platform=Platform.AMAZON,
            product_id="X",
            url="https://www.amazon.in/dp/X",
            name="Widget",
            current_price=10.0,
            price_history=[PricePoint(price=12.0, timestamp=datetime.now(timezone.utc))],
        )


def test_record_requires_history() -> None:
    with pytest.raises(ValueError):
        ProductRecord(
            platform=Platform.AMAZON,
            product_id="X",
            url="https://www.amazon.in/dp/X",
            name="Widget",
            current_price=10.0,
            price_history=[],
        )
