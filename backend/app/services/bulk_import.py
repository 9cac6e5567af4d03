"""
Bulk product import.

Flow: upload bytes -> archive extraction -> spreadsheet decoding -> per-row
validation against a fresh taxonomy snapshot -> batch gate -> image resolution
and per-row commit.

Validation is all or nothing: when any row has an error the whole report is
returned and nothing is written (no products, no uploads, no asset records).
Commit is best effort per row: once the batch is accepted each row is inserted
on its own, and a failing row is reported as an insertion error without
rolling back rows already created. Callers get 400 / 207 / 201 accordingly.
"""

import dataclasses
import logging
from typing import Protocol

import httpx

from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.schemas.bulk_upload import ImportResult, RowError, RowErrorCode
from app.services.archive import ImageBundle, extract_upload, is_archive
from app.services.errors import EmptyFileError
from app.services.image_resolver import ResolvedImages, UploadedImage, resolve_images_for_rows
from app.services.pricing import MetalRateData, calculate_price
from app.services.row_validator import ResolvedRow, resolve_row, validate_row
from app.services.spreadsheet import SPREADSHEET_CONTENT_TYPES, RawRow, decode_spreadsheet, is_spreadsheet_name
from app.services.storage import ObjectStorage
from app.services.taxonomy import CategoryRef, SubcategoryRef, TaxonomyIndex

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "Validation failed. Please fix the errors and try again."


class CatalogStore(Protocol):
    async def list_active_categories(self) -> list[CategoryRef]: ...

    async def list_subcategories(self) -> list[SubcategoryRef]: ...

    async def metal_rate_for(self, metal_type: str) -> MetalRateData | None: ...

    async def insert_product(self, row: ResolvedRow, images: list[str]) -> str: ...


class AssetLedger(Protocol):
    async def record(
        self,
        url: str,
        key: str,
        mime_type: str,
        size: int,
        original_filename: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> str: ...


def is_accepted_upload(filename: str | None, content_type: str | None) -> bool:
    if is_archive(filename, content_type):
        return True
    if filename and is_spreadsheet_name(filename):
        return True
    return bool(content_type) and content_type.split(";")[0].strip().lower() in SPREADSHEET_CONTENT_TYPES


def validate_batch(rows: list[RawRow], taxonomy: TaxonomyIndex) -> list[RowError]:
    errors: list[RowError] = []
    for row in rows:
        errors.extend(validate_row(row, taxonomy))
    return errors


def result_status_code(result: ImportResult) -> int:
    if not result.validation_passed:
        return 400
    return 201 if result.success else 207


async def run_import(
    data: bytes,
    filename: str | None,
    content_type: str | None,
    catalog: CatalogStore,
    ledger: AssetLedger,
    storage: ObjectStorage | None,
    upload_concurrency: int | None = None,
) -> ImportResult:
    upload = await run_in_threadpool(extract_upload, data, filename, content_type)
    with upload:
        rows = await run_in_threadpool(
            decode_spreadsheet, upload.spreadsheet, upload.spreadsheet_name, upload.content_type
        )
        if not rows:
            raise EmptyFileError()

        taxonomy = TaxonomyIndex(await catalog.list_active_categories(), await catalog.list_subcategories())
        errors = validate_batch(rows, taxonomy)
        if errors:
            logger.info(f"Bulk import rejected: {len(errors)} validation errors across {len(rows)} rows")
            return ImportResult(
                success=False,
                message=VALIDATION_FAILED_MESSAGE,
                validation_passed=False,
                total_rows=len(rows),
                success_count=0,
                error_count=len(errors),
                errors=errors,
            )

        resolved = [resolve_row(row, taxonomy) for row in rows]
        return await commit_rows(
            resolved,
            upload.images,
            catalog,
            ledger,
            storage,
            upload_concurrency or settings.IMAGE_UPLOAD_CONCURRENCY,
        )


def _insertion_error(row: ResolvedRow, exc: BaseException) -> RowError:
    return RowError(row=row.ordinal, field="general", message=str(exc) or type(exc).__name__, code=RowErrorCode.INSERTION_FAILED)


async def _priced(row: ResolvedRow, catalog: CatalogStore) -> ResolvedRow:
    if not row.use_dynamic_pricing or row.weight_in_grams is None or row.metal_type is None:
        return row
    rate = await catalog.metal_rate_for(row.metal_type)
    if rate is None:
        logger.info(f"Row {row.ordinal}: no active rate for {row.metal_type}, price computed at read time")
        return row
    return dataclasses.replace(row, price=calculate_price(row.weight_in_grams, rate).final_price)


async def _record_assets(uploads: list[UploadedImage], product_id: str, ledger: AssetLedger) -> None:
    for upload in uploads:
        try:
            await ledger.record(
                url=upload.url,
                key=upload.key,
                mime_type=upload.mime_type,
                size=upload.size,
                original_filename=upload.filename,
                ref_type="Product",
                ref_id=product_id,
            )
        except Exception as e:
            # the product and its image URL already exist; only the bookkeeping is missing
            logger.error(f"Failed to record asset {upload.key} for product {product_id}: {e}")


async def _discard_uploads(uploads: list[UploadedImage], storage: ObjectStorage | None) -> None:
    if storage is None:
        return
    for upload in uploads:
        try:
            await storage.delete(upload.key)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to delete orphaned upload {upload.key}: {e}")


async def commit_rows(
    rows: list[ResolvedRow],
    images: ImageBundle,
    catalog: CatalogStore,
    ledger: AssetLedger,
    storage: ObjectStorage | None,
    upload_concurrency: int = 4,
) -> ImportResult:
    outcomes = await resolve_images_for_rows(rows, images, storage, upload_concurrency)

    created: list[str] = []
    insertion_errors: list[RowError] = []
    uploaded_images = 0

    for row in rows:
        outcome = outcomes[row.ordinal]
        if not isinstance(outcome, ResolvedImages):
            logger.error(f"Row {row.ordinal}: image resolution failed: {outcome!r}")
            insertion_errors.append(_insertion_error(row, outcome))
            continue
        try:
            product_id = await catalog.insert_product(await _priced(row, catalog), outcome.urls)
        except Exception as e:
            logger.warning(f"Row {row.ordinal}: failed to create product {row.name!r}: {e}")
            insertion_errors.append(_insertion_error(row, e))
            await _discard_uploads(outcome.uploads, storage)
            continue
        await _record_assets(outcome.uploads, product_id, ledger)
        created.append(product_id)
        uploaded_images += len(outcome.uploads)

    if insertion_errors:
        message = f"Created {len(created)} products with {len(insertion_errors)} errors"
    else:
        message = f"Successfully created {len(created)} products"
        if uploaded_images:
            message += f" with {uploaded_images} images"
    logger.info(f"Bulk import committed: {message}")

    return ImportResult(
        success=not insertion_errors,
        message=message,
        validation_passed=True,
        total_rows=len(rows),
        success_count=len(created),
        error_count=len(insertion_errors),
        errors=insertion_errors,
        created_products=created,
    )
