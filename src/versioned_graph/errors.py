"""Exception taxonomy for the versioned graph.

Only version conflicts inside a transaction are recoverable, and those are
reported as a ``Conflict`` result rather than raised (see ``store.base``).
Everything here is fatal to the call that raised it.
"""


class GraphStoreError(Exception):
    """Base class for all graph/store errors."""

    pass


class NotFoundError(GraphStoreError):
    """Raised when a key that must exist is absent."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key not found: {key!r}")


class AlreadyExistsError(GraphStoreError):
    """Raised when creating a key that already exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key already exists: {key!r}")


class VersionConflictError(GraphStoreError):
    """Raised by single-shot conditional writes whose expected version is stale."""

    def __init__(self, key: str, expected_version: int, actual_version: int):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {key!r}: expected version {expected_version}, found {actual_version}"
        )


class MalformedRecordError(GraphStoreError):
    """Raised when stored bytes cannot be decoded into a node record."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        if key is not None:
            message = f"Malformed record at {key!r}: {message}"
        super().__init__(message)


class InvalidOperationError(GraphStoreError):
    """Raised when an operation is meaningless for the current graph state."""

    pass


class StoreUnavailableError(GraphStoreError):
    """Raised on connectivity, permission or other backend failures."""

    pass


class RetryExhaustedError(GraphStoreError):
    """Raised when an optimistic transaction keeps conflicting past its retry budget."""

    def __init__(self, operation: str, attempts: int, key: str | None = None):
        self.operation = operation
        self.attempts = attempts
        self.key = key

        message = f"{operation} gave up after {attempts} conflicting attempts"
        if key is not None:
            message += f" (last conflict on {key!r})"

        super().__init__(message)
