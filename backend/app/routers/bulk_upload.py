import io

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from app.config import settings
from app.services.bulk_import import is_accepted_upload, result_status_code, run_import
from app.services.catalog_store import SqlAssetLedger, SqlCatalogStore, get_asset_ledger, get_catalog_store
from app.services.errors import BulkImportError, UnsupportedFileTypeError
from app.services.storage import ObjectStorage, get_object_storage
from app.services.template import build_template

router = APIRouter(prefix="/bulk-upload", tags=["bulk-upload"])


@router.post("/products")
async def bulk_upload_products(
    file: UploadFile | None = File(default=None),
    catalog: SqlCatalogStore = Depends(get_catalog_store),
    ledger: SqlAssetLedger = Depends(get_asset_ledger),
    storage: ObjectStorage | None = Depends(get_object_storage),
):
    if file is None:
        raise BulkImportError("No file uploaded")
    if not is_accepted_upload(file.filename, file.content_type):
        raise UnsupportedFileTypeError("Only Excel files (.xlsx, .xls, .csv) and ZIP files are allowed")

    content = await file.read(settings.BULK_UPLOAD_MAX_BYTES + 1)
    if len(content) > settings.BULK_UPLOAD_MAX_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.BULK_UPLOAD_MAX_BYTES // (1024 * 1024)}MB upload limit",
        )

    result = await run_import(content, file.filename, file.content_type, catalog, ledger, storage)
    return JSONResponse(status_code=result_status_code(result), content=result.to_response())


@router.get("/template")
async def download_template(catalog: SqlCatalogStore = Depends(get_catalog_store)):
    content = build_template(await catalog.list_active_categories(), await catalog.list_subcategories())
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=product_upload_template.xlsx"},
    )
