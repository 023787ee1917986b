"""Errors raised by the backing store."""


class StoreError(Exception):
    """Base class for backing store failures."""


class StoreReadError(StoreError):
    """A read query (count, listing, subscription fetch) failed."""


class StoreWriteError(StoreError):
    """A write to the backing store failed."""
