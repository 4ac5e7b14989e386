class DbBenchError(Exception):
    """Base exception for dbbench errors."""


class ConfigurationError(DbBenchError):
    """Invalid or missing setup, detected before any operation runs."""


class DbError(DbBenchError):
    """A backend failed to perform an operation."""


class OperationFailure(DbBenchError):
    """An attempt of a retryable operation failed; logged and counted, never raised."""


class TerminalFailure(DbBenchError):
    """A non-retryable operation failed and is surfaced to the caller."""
