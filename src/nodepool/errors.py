"""Error taxonomy for node pool reconciliation.

Every failure leaves the core as one of these types. Callers use `retryable`
to decide whether running the same operation again can succeed; nothing in
this package retries on its own.
"""

from __future__ import annotations

# HTTP status codes that indicate a transient condition on the ARM side
RETRYABLE_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504})


class NodePoolError(Exception):
    """Base class for all node pool reconciliation errors."""

    retryable: bool = False


class ValidationError(NodePoolError):
    """Raised when a desired configuration violates a cross-field invariant.

    All violations found in a single pass are combined so the caller can fix
    every problem at once.
    """

    def __init__(self, violations: list[str], subject: str = "node pool configuration") -> None:
        self.violations = list(violations)
        self.subject = subject
        message = f"Invalid {subject}:\n  - " + "\n  - ".join(self.violations)
        super().__init__(message)


class InvalidResourceIdError(NodePoolError, ValueError):
    """Raised when an Azure resource ID cannot be parsed into the expected shape."""

    pass


class NotFoundError(NodePoolError):
    """Raised when a resource that must exist was not found."""

    pass


class AlreadyExistsError(NodePoolError):
    """Raised on create when a node pool with the same identity already exists."""

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(
            f"A node pool with the ID {resource_id!r} already exists - "
            "to be managed it needs to be imported"
        )


class IncompatibleParentError(NodePoolError):
    """Raised when the parent cluster cannot host additional node pools."""

    pass


class MissingIdentifierError(NodePoolError):
    """Raised when a response lacks the identifier needed to finish an operation."""

    pass


class RemoteTransportError(NodePoolError):
    """Raised when a call to the Azure control plane fails.

    Attributes:
        operation: Human-readable operation name (e.g. "creating node pool").
        target: Identity of the resource the call was made for.
        status_code: HTTP status code, if the failure carried one.
    """

    def __init__(
        self,
        operation: str,
        target: str,
        cause: Exception | str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.target = target
        self.status_code = status_code
        self.retryable = status_code is None or status_code in RETRYABLE_STATUS_CODES
        super().__init__(f"{operation} {target}: {cause}")


class OperationTimeoutError(RemoteTransportError):
    """Raised when a remote call or long-running operation exceeds its budget.

    Remote state is left as the provider left it; the operation may still
    complete server-side.
    """

    def __init__(self, operation: str, target: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            operation,
            target,
            f"timed out waiting for completion after {timeout_seconds:g}s",
        )
        self.retryable = True
