import pytest

from factories import CATEGORIES, SUBCATEGORIES, FakeCatalog, FakeLedger, FakeStorage

from app.services.taxonomy import TaxonomyIndex


@pytest.fixture
def taxonomy() -> TaxonomyIndex:
    return TaxonomyIndex(CATEGORIES, SUBCATEGORIES)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()
