"""Shared fixtures: an in-memory catalog with its unique index in place."""

from __future__ import annotations

import pytest

from pricewatch.core.config import get_settings
from tests.fakes import FakeDB


@pytest.fixture
def db() -> FakeDB:
    fake = FakeDB()
    # same constraint ProductRepo.ensure_indexes() creates in Mongo
    fake[get_settings().PRODUCTS_COLLECTION].unique_keys.append(("platform", "product_id"))
    return fake


@pytest.fixture
def products(db: FakeDB):
    return db[get_settings().PRODUCTS_COLLECTION]
