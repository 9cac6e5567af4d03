import asyncio
import threading
from decimal import Decimal

import pytest

from factories import HEADER, PNG_BYTES, FakeCatalog, make_csv, make_xlsx, make_zip

from app.schemas.bulk_upload import ImportResult, RowErrorCode
from app.services import bulk_import
from app.services.bulk_import import is_accepted_upload, result_status_code, run_import
from app.services.errors import EmptyFileError, TaxonomyConflictError
from app.services.pricing import MetalRateData
from app.services.taxonomy import CategoryRef


def _import(data, filename, catalog, ledger, storage, content_type=None) -> ImportResult:
    return asyncio.run(run_import(data, filename, content_type, catalog, ledger, storage))


def _sheet(*rows):
    return make_csv([HEADER, *rows])


def test_valid_batch_is_committed(catalog, ledger, storage):
    data = _sheet(
        ["Band", "Rings", "Gold Rings", "100", "", "", "", ""],
        ["Chain", "Necklaces", "Gold Necklaces", "", "", "12", "22KT", "true"],
    )
    result = _import(data, "products.csv", catalog, ledger, storage)

    assert result.success
    assert result.validation_passed
    assert result.total_rows == 2
    assert result.success_count == 2
    assert result.created_products == ["p1", "p2"]
    assert result_status_code(result) == 201
    assert [p["row"].name for p in catalog.products] == ["Band", "Chain"]


def test_one_bad_row_blocks_the_whole_batch(catalog, ledger, storage):
    data = make_zip({
        "products.csv": _sheet(
            ["Band", "Rings", "Gold Rings", "100", "ring1.jpg", "", "", ""],
            ["", "Rings", "Gold Rings", "100", "", "", "", ""],
        ),
        "ring1.jpg": PNG_BYTES,
    })
    result = _import(data, "bundle.zip", catalog, ledger, storage)

    assert not result.success
    assert not result.validation_passed
    assert result.success_count == 0
    assert result.error_count == 1
    assert result.created_products is None
    assert result_status_code(result) == 400
    # nothing written anywhere
    assert catalog.products == []
    assert ledger.assets == []
    assert storage.objects == {}


def test_errors_address_spreadsheet_rows(catalog, ledger, storage):
    data = _sheet(
        ["A", "Rings", "Gold Rings", "1", "", "", "", ""],
        ["B", "Rings", "Gold Rings", "-1", "", "", "", ""],
        ["C", "Rings", "Gold Rings", "1", "", "", "", ""],
    )
    result = _import(data, "products.csv", catalog, ledger, storage)
    assert [(e.row, e.field) for e in result.errors] == [(3, "price")]


def test_errors_collected_across_rows(catalog, ledger, storage):
    data = _sheet(
        ["", "Rings", "Gold Rings", "", "", "", "", ""],
        ["B", "Bangles", "Gold Rings", "1", "", "", "", ""],
    )
    result = _import(data, "products.csv", catalog, ledger, storage)
    assert [(e.row, e.field) for e in result.errors] == [(2, "name"), (2, "price"), (3, "category")]
    assert result.error_count == 3


def test_insertion_failure_does_not_undo_other_rows(ledger, storage):
    catalog = FakeCatalog(fail_names={"Broken"})
    data = make_zip({
        "products.xlsx": make_xlsx([
            HEADER,
            ["Band", "Rings", "Gold Rings", 100, "a.jpg", None, None, None],
            ["Broken", "Rings", "Gold Rings", 100, "b.jpg", None, None, None],
            ["Chain", "Necklaces", "Gold Necklaces", 50, None, None, None, None],
        ]),
        "a.jpg": PNG_BYTES,
        "b.jpg": PNG_BYTES,
    })
    result = _import(data, "bundle.zip", catalog, ledger, storage)

    assert not result.success
    assert result.validation_passed
    assert result_status_code(result) == 207
    assert result.success_count == 2
    assert result.error_count == 1
    assert result.created_products == ["p1", "p2"]
    (error,) = result.errors
    assert (error.row, error.field, error.code) == (3, "general", RowErrorCode.INSERTION_FAILED)
    assert "Duplicate product" in error.message
    # the failed row's upload is removed again and never recorded as an asset
    assert len(storage.deleted) == 1
    assert len(storage.objects) == 1
    assert [a["original_filename"] for a in ledger.assets] == ["a.jpg"]


def test_assets_are_linked_to_created_products(catalog, ledger, storage):
    data = make_zip({
        "products.csv": _sheet(["Band", "Rings", "Gold Rings", "100", "Ring1.jpg,https://x/a.jpg", "", "", ""]),
        "images/ring1.jpg": PNG_BYTES,
    })
    result = _import(data, "bundle.zip", catalog, ledger, storage)

    assert result.success
    assert result.message == "Successfully created 1 products with 1 images"
    images = catalog.products[0]["images"]
    assert len(images) == 2
    assert "Ring1.jpg" not in images
    (asset,) = ledger.assets
    assert asset["url"] == images[0]
    assert asset["ref_type"] == "Product"
    assert asset["ref_id"] == "p1"
    assert asset["size"] == len(PNG_BYTES)


def test_dynamic_price_snapshot_uses_metal_rate(ledger, storage):
    rate = MetalRateData("22KT", Decimal("60000"), Decimal("500"), Decimal("3"))
    catalog = FakeCatalog(metal_rates={"22kt": rate})
    data = _sheet(
        ["Chain", "Necklaces", "Gold Necklaces", "", "", "10", "22kt", "yes"],
        ["Anklet", "Necklaces", "Gold Necklaces", "", "", "2", "Platinum", "yes"],
    )
    _import(data, "products.csv", catalog, ledger, storage)
    chain, anklet = (p["row"] for p in catalog.products)
    # (6000 * 10 + 500 * 10) * 1.03
    assert chain.price == Decimal("66950.00")
    assert anklet.price is None


def test_empty_sheet_raises(catalog, ledger, storage):
    with pytest.raises(EmptyFileError):
        _import(make_csv([HEADER]), "products.csv", catalog, ledger, storage)


def test_taxonomy_collision_stops_import(ledger, storage):
    catalog = FakeCatalog(categories=[CategoryRef("c1", "Rings", "rings"), CategoryRef("c3", "rings", "rings-old")])
    with pytest.raises(TaxonomyConflictError):
        _import(_sheet(["Band", "Rings", "Gold Rings", "1", "", "", "", ""]), "products.csv", catalog, ledger, storage)
    assert catalog.products == []


def test_accepted_upload_types():
    assert is_accepted_upload("products.xlsx", None)
    assert is_accepted_upload("products.XLS", None)
    assert is_accepted_upload("upload", "text/csv")
    assert is_accepted_upload("bundle.zip", "application/octet-stream")
    assert not is_accepted_upload("photo.png", "image/png")


def test_decoding_runs_off_the_event_loop_thread(catalog, ledger, storage, monkeypatch):
    threads = []
    decode = bulk_import.decode_spreadsheet

    def recording_decode(*args):
        threads.append(threading.get_ident())
        return decode(*args)

    monkeypatch.setattr(bulk_import, "decode_spreadsheet", recording_decode)
    result = _import(_sheet(["Band", "Rings", "Gold Rings", "100", "", "", "", ""]), "products.csv", catalog, ledger, storage)

    assert result.success_count == 1
    assert threads and threads[0] != threading.get_ident()
