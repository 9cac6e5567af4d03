import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from app.services.errors import CorruptArchiveError, NoSpreadsheetInArchiveError
from app.services.spreadsheet import is_spreadsheet_name

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPES = {"application/zip", "application/x-zip-compressed"}
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

_READ_ERRORS = (zipfile.BadZipFile, RuntimeError, OSError, zlib.error)


def is_archive(filename: str | None, content_type: str | None) -> bool:
    if content_type and content_type.split(";")[0].strip().lower() in ARCHIVE_CONTENT_TYPES:
        return True
    return bool(filename) and filename.lower().endswith(".zip")


def _base_name(entry_name: str) -> str:
    return PurePosixPath(entry_name.replace("\\", "/")).name


class ImageBundle:
    """Images shipped inside an upload archive, keyed by lower-cased base filename.

    Entry bytes are only read from the archive when a row asks for them.
    """

    def __init__(self, archive: zipfile.ZipFile | None = None, entries: dict[str, zipfile.ZipInfo] | None = None):
        self._archive = archive
        self._entries = entries or {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, filename: str) -> bool:
        return filename.strip().lower() in self._entries

    def names(self) -> list[str]:
        return list(self._entries)

    def get(self, filename: str) -> bytes | None:
        info = self._entries.get(filename.strip().lower())
        if info is None or self._archive is None:
            return None
        try:
            return self._archive.read(info)
        except _READ_ERRORS as exc:
            logger.warning(f"Could not read {info.filename} from archive: {exc}")
            return None

    def close(self) -> None:
        if self._archive is not None:
            self._archive.close()
            self._archive = None


@dataclass
class ExtractedUpload:
    spreadsheet: bytes
    spreadsheet_name: str | None
    content_type: str | None = None
    images: ImageBundle = field(default_factory=ImageBundle)

    def close(self) -> None:
        self.images.close()

    def __enter__(self) -> "ExtractedUpload":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def extract_upload(data: bytes, filename: str | None, content_type: str | None) -> ExtractedUpload:
    """Split an upload into its spreadsheet and (for ZIP uploads) the bundled images."""
    if not is_archive(filename, content_type):
        return ExtractedUpload(spreadsheet=data, spreadsheet_name=filename, content_type=content_type)

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        raise CorruptArchiveError(f"Failed to extract ZIP file: {exc}") from exc

    spreadsheet_info: zipfile.ZipInfo | None = None
    images: dict[str, zipfile.ZipInfo] = {}
    for info in archive.infolist():
        if info.is_dir():
            continue
        base = _base_name(info.filename)
        if not base or info.filename.startswith("__MACOSX/") or base.startswith("._"):
            continue
        lower = base.lower()
        if is_spreadsheet_name(lower):
            if spreadsheet_info is None:
                spreadsheet_info = info
            else:
                logger.warning(f"Ignoring extra spreadsheet {info.filename} in archive")
        elif lower.endswith(IMAGE_EXTENSIONS):
            if lower in images:
                logger.warning(f"Duplicate image name {base} in archive, keeping {images[lower].filename}")
                continue
            images[lower] = info

    if spreadsheet_info is None:
        archive.close()
        raise NoSpreadsheetInArchiveError()

    try:
        sheet_bytes = archive.read(spreadsheet_info)
    except _READ_ERRORS as exc:
        archive.close()
        raise CorruptArchiveError(f"Failed to extract ZIP file: {exc}") from exc

    logger.info(f"Extracted {spreadsheet_info.filename} and {len(images)} images from {filename or 'archive'}")
    return ExtractedUpload(
        spreadsheet=sheet_bytes,
        spreadsheet_name=_base_name(spreadsheet_info.filename),
        images=ImageBundle(archive, images),
    )
