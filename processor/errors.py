"""Exception types raised across the sync service."""
from typing import Optional


class SheetFetchError(Exception):
    """A spreadsheet export could not be retrieved."""

    def __init__(self, sheet: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.sheet = sheet
        self.status_code = status_code


class UnsupportedYearError(ValueError):
    """Requested Steam feature year is not tracked."""


class SyncInProgressError(Exception):
    """Another sync pass holds the sync lock."""


class InvalidQueryError(ValueError):
    """A read-API parameter could not be interpreted."""
