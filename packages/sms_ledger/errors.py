"""Exceptions raised across ``sms_ledger``."""

from __future__ import annotations


class StorageUnavailableError(RuntimeError):
    """The ledger store could not be reached.

    Retryable: ingestion is idempotent, so the caller should re-buffer the
    message and ingest it again later.
    """


__all__ = ["StorageUnavailableError"]
