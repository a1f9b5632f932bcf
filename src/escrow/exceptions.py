"""Escrow-specific errors layered on Protean's exception taxonomy.

Callers that only know Protean can keep catching ``ValidationError``;
callers that care about the distinction can catch the subclasses.
"""

from protean.exceptions import ValidationError


class InvalidStateTransitionError(ValidationError):
    """An operation was attempted from a state that does not allow it.

    Raised before any mutation, so the aggregate is left untouched.
    """


class RetryableOperationError(Exception):
    """A collaborator (usually persistence) failed transiently.

    No state was committed; the caller may retry the same operation.
    """

    def __init__(self, operation: str, order_id: str | None, cause: Exception) -> None:
        self.operation = operation
        self.order_id = order_id
        self.cause = cause
        super().__init__(f"{operation} failed for order {order_id}: {cause}")
