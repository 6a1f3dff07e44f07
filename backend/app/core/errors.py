# backend/app/core/errors.py


class CorrelationError(Exception):
    """Base class for failures raised by the correlation service."""


class RecordCorrupt(CorrelationError):
    """
    A single raw log record could not be read at all (bad encoding,
    missing timestamp). Callers skip the record and keep the batch going.
    """


class LogSourceUnavailable(CorrelationError):
    """The log store could not be queried. Treated as "no evidence"."""


class StoreUnavailable(CorrelationError):
    """The correlation / result store failed. Fatal for the current run only."""
