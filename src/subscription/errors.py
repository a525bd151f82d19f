"""Domain exceptions for subscriptions.

Validation and filter errors are raised to the caller; sync failures are
recorded in the history log and then re-raised by the sync engine.
"""


class SubscriptionError(Exception):
    """Base exception for subscription errors."""


class InvalidFilterError(SubscriptionError):
    """Raised when a subscription's filter lists cannot be compiled."""

    def __init__(self, field: str, message: str) -> None:
        """Initialize the error.

        Args:
            field: Filter field that failed to parse.
            message: Human-readable error message.
        """
        self.field = field
        self.message = message
        super().__init__(f"Invalid filter field '{field}': {message}")

    def to_dict(self) -> dict[str, str]:
        """Convert error to dictionary for logging."""
        return {"field": self.field, "message": self.message}


class SubscriptionValidationError(SubscriptionError):
    """Raised when a create or update request is malformed."""

    def __init__(self, message: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Convert error to dictionary for logging."""
        return {"message": self.message}


class SubscriptionAccessDeniedError(SubscriptionError):
    """Raised when a user modifies a subscription they do not own."""

    def __init__(self, subscription_id: str, user_id: str) -> None:
        """Initialize the error.

        Args:
            subscription_id: Target subscription.
            user_id: User who attempted the change.
        """
        self.subscription_id = subscription_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} may not modify subscription {subscription_id}"
        )

    def to_dict(self) -> dict[str, str]:
        """Convert error to dictionary for logging."""
        return {"subscription_id": self.subscription_id, "user_id": self.user_id}
