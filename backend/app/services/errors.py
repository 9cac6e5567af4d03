class BulkImportError(Exception):
    """An upload that cannot be imported at all (as opposed to per-row validation errors)."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFileTypeError(BulkImportError):
    pass


class CorruptArchiveError(BulkImportError):
    pass


class NoSpreadsheetInArchiveError(BulkImportError):
    def __init__(self, message: str = "No Excel file found in ZIP. Please include a .xlsx, .xls, or .csv file."):
        super().__init__(message)


class CorruptSpreadsheetError(BulkImportError):
    pass


class EmptyFileError(BulkImportError):
    def __init__(self, message: str = "Excel file is empty"):
        super().__init__(message)


class TaxonomyConflictError(BulkImportError):
    """Two distinct taxonomy entries share a case-folded name or slug."""

    status_code = 409
