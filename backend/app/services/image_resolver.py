import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import httpx
from starlette.concurrency import run_in_threadpool

from app.services.archive import ImageBundle
from app.services.row_validator import ImageFile, ImageRef, ImageUrl, ResolvedRow
from app.services.storage import ObjectStorage, generate_key

logger = logging.getLogger(__name__)

IMAGE_KEY_PREFIX = "products"

IMAGE_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def image_mime_type(filename: str) -> str:
    return IMAGE_MIME_TYPES.get(PurePosixPath(filename).suffix.lower(), "image/jpeg")


@dataclass
class UploadedImage:
    url: str
    key: str
    filename: str
    mime_type: str
    size: int


@dataclass
class ResolvedImages:
    urls: list[str] = field(default_factory=list)
    uploads: list[UploadedImage] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


async def resolve_images(
    refs: list[ImageRef],
    bundle: ImageBundle,
    storage: ObjectStorage | None,
    ordinal: int | None = None,
) -> ResolvedImages:
    """URLs pass through; filenames are uploaded from the bundle or dropped with a warning."""
    resolved = ResolvedImages()
    for ref in refs:
        if isinstance(ref, ImageUrl):
            resolved.urls.append(ref.url)
            continue

        data = await run_in_threadpool(bundle.get, ref.filename)
        if data is None:
            logger.warning(f"Row {ordinal}: image {ref.filename} referenced but not found in ZIP")
            resolved.skipped.append(ref.filename)
            continue
        if storage is None:
            logger.warning(f"Row {ordinal}: object storage not configured, skipping image {ref.filename}")
            resolved.skipped.append(ref.filename)
            continue

        key = generate_key(IMAGE_KEY_PREFIX, ref.filename)
        mime_type = image_mime_type(ref.filename)
        try:
            url = await storage.put(key, data, mime_type)
        except httpx.HTTPError as e:
            logger.warning(f"Row {ordinal}: failed to upload image {ref.filename}: {e}")
            resolved.skipped.append(ref.filename)
            continue
        resolved.urls.append(url)
        resolved.uploads.append(UploadedImage(url=url, key=key, filename=ref.filename, mime_type=mime_type, size=len(data)))
    return resolved


async def resolve_images_for_rows(
    rows: list[ResolvedRow],
    bundle: ImageBundle,
    storage: ObjectStorage | None,
    concurrency: int = 4,
) -> dict[int, ResolvedImages | BaseException]:
    """Resolve every row's images, at most ``concurrency`` rows uploading at once.

    A row whose resolution raised maps to the exception so the caller can
    attribute it to that row alone.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def resolve(row: ResolvedRow) -> ResolvedImages:
        if not any(isinstance(ref, ImageFile) for ref in row.images):
            return await resolve_images(row.images, bundle, storage, row.ordinal)
        async with semaphore:
            return await resolve_images(row.images, bundle, storage, row.ordinal)

    outcomes = await asyncio.gather(*(resolve(row) for row in rows), return_exceptions=True)
    return {row.ordinal: outcome for row, outcome in zip(rows, outcomes)}
