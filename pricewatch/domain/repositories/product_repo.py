# pricewatch/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional, List, Any, Dict
from datetime import datetime, timezone
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from pricewatch.core.config import get_settings
from pricewatch.core.errors import StoreConflict
from pricewatch.domain.models.product import AlertSettings, Platform, PricePoint, ProductRecord

logger = logging.getLogger(__name__)

UNIQUE_INDEX_NAME = "platform_product_id_unique"


class ProductRepo:
    """
    Catalog store adapter backed by the 'products' collection.
    One document per (platform, product_id), enforced by a unique index:
    concurrent creators race on insert and the loser gets StoreConflict.
    price_history is only ever grown with an atomic $push.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: Optional[str] = None):
        self.col = db[collection_name or get_settings().PRODUCTS_COLLECTION]

    @staticmethod
    def _key(platform: Platform, product_id: str) -> Dict[str, Any]:
        return {"platform": Platform(platform).value, "product_id": product_id}

    async def ensure_indexes(self) -> None:
        await self.col.create_index(
            [("platform", ASCENDING), ("product_id", ASCENDING)],
            unique=True,
            name=UNIQUE_INDEX_NAME,
        )
        await self.col.create_index([("owner_ref", ASCENDING)], name="owner_ref")

    # ----- Reads ---------------------------------------------------------------

    async def find_one(self, platform: Platform, product_id: str) -> Optional[ProductRecord]:
        doc = await self.col.find_one(self._key(platform, product_id), {"_id": 0})
        return ProductRecord.model_validate(doc) if doc else None

    async def find_all(self) -> List[ProductRecord]:
        """Whole catalog. Documents that no longer validate are skipped with a warning."""
        return await self._valid_records(self.col.find({}, {"_id": 0}))

    async def find_by_owner(self, owner_ref: Optional[str], limit: int = 100) -> List[ProductRecord]:
        query = {"owner_ref": owner_ref} if owner_ref else {}
        cursor = self.col.find(query, {"_id": 0}).sort("updated_at", DESCENDING).limit(limit)
        return await self._valid_records(cursor)

    @staticmethod
    async def _valid_records(cursor) -> List[ProductRecord]:
        records: List[ProductRecord] = []
        async for doc in cursor:
            try:
                records.append(ProductRecord.model_validate(doc))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid product document platform=%s product_id=%s err=%s",
                    doc.get("platform"), doc.get("product_id"), e.error_count(),
                )
        return records

    # ----- Writes --------------------------------------------------------------

    async def insert(self, record: ProductRecord) -> ProductRecord:
        """Insert a new record; raises StoreConflict if (platform, product_id) already exists."""
        now = datetime.now(timezone.utc)
        record = record.model_copy(update={"created_at": record.created_at or now, "updated_at": now})
        try:
            await self.col.insert_one(record.to_document())
        except DuplicateKeyError as e:
            raise StoreConflict(
                f"Product already tracked: {record.platform.value}/{record.product_id}"
            ) from e
        return record

    async def set_image(self, platform: Platform, product_id: str, image_url: str) -> bool:
        res = await self.col.update_one(
            self._key(platform, product_id),
            {"$set": {"image_url": image_url, "updated_at": datetime.now(timezone.utc)}},
        )
        return res.matched_count > 0

    async def apply_refresh(
        self,
        platform: Platform,
        product_id: str,
        *,
        fields: Dict[str, Any],
        price_point: Optional[PricePoint] = None,
    ) -> bool:
        """
        Partial update after a re-scrape: $set the refreshed fields and, when
        the price moved, $push the new point onto price_history in the same
        operation.
        """
        update: Dict[str, Any] = {"$set": {**fields, "updated_at": datetime.now(timezone.utc)}}
        if price_point is not None:
            update["$set"]["current_price"] = price_point.price
            update["$push"] = {"price_history": price_point.model_dump()}
        res = await self.col.update_one(self._key(platform, product_id), update)
        return res.matched_count > 0

    async def set_alert(self, platform: Platform, product_id: str, alert: AlertSettings) -> bool:
        res = await self.col.update_one(
            self._key(platform, product_id),
            {"$set": {"alert": alert.model_dump(), "updated_at": datetime.now(timezone.utc)}},
        )
        return res.matched_count > 0

    async def claim_owner(self, platform: Platform, product_id: str, owner_ref: str) -> bool:
        """Attach an owner to a record that has none yet. Returns True if this call set it."""
        res = await self.col.update_one(
            {**self._key(platform, product_id), "owner_ref": None},
            {"$set": {"owner_ref": owner_ref}},
        )
        return res.modified_count > 0

    async def delete(self, platform: Platform, product_id: str, owner_ref: Optional[str] = None) -> bool:
        query = self._key(platform, product_id)
        if owner_ref:
            query["owner_ref"] = owner_ref
        res = await self.col.delete_one(query)
        return res.deleted_count > 0
