"""Exception types raised outside of a scan.

Inside ``IssueTracker.scan()`` these are caught at the component boundary and
turned into ``ScanWarning`` entries; everywhere else they propagate.
"""


class FixTraceError(Exception):
    """Base class for FixTrace errors."""


class StoreError(FixTraceError):
    """The persistent state store failed."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class StoreReadError(StoreError):
    """The store could not be read, or held data that cannot be parsed."""


class StoreWriteError(StoreError):
    """A write to the store did not succeed."""


class CatalogError(FixTraceError):
    """An issue catalog file is missing or malformed."""
