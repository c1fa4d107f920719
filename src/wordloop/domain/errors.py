"""
Error taxonomy for wordloop.

Only persistence problems are exceptions. Missing records, quota limits,
empty queues and graduation are reported through result values.
"""


class WordloopError(Exception):
    """Base class for all wordloop errors."""


class PersistenceFailure(WordloopError):
    """
    A store adapter could not read or write.

    Attributes:
        operation: Port method that failed, e.g. "upsert_progress".
        cause: The underlying exception, if any.
    """

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")
