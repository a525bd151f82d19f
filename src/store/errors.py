"""Domain exceptions for the content and subscription stores.

This module defines a hierarchy of exceptions for the storage layer,
separating infrastructure errors (database or adapter failures) from
domain errors (missing records).
"""


class StoreError(Exception):
    """Base exception for all store errors.

    All exceptions raised by store adapters should inherit from this class
    so composers can isolate a failing content family.
    """


class StoreConnectionError(StoreError):
    """Raised when the database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class StoreUnavailableError(StoreError):
    """Raised when a content family's adapter call fails.

    Composers treat this as locally recoverable: the family contributes
    an empty result and composition continues with the others.
    """

    def __init__(self, content_type: str, message: str = "store unavailable") -> None:
        """Initialize the error.

        Args:
            content_type: Content family whose adapter failed.
            message: Human-readable error message.
        """
        self.content_type = content_type
        self.message = message
        super().__init__(f"{content_type}: {message}")

    def to_dict(self) -> dict[str, str]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {"content_type": self.content_type, "message": self.message}


class SubscriptionNotFoundError(StoreError):
    """Raised when a requested subscription does not exist."""

    def __init__(self, subscription_id: str) -> None:
        """Initialize the error with the missing subscription ID.

        Args:
            subscription_id: The subscription ID that was not found.
        """
        self.subscription_id = subscription_id
        super().__init__(f"Subscription not found: {subscription_id}")


class ContentNotFoundError(StoreError):
    """Raised when a content item cannot be found for a pin toggle."""

    def __init__(self, content_type: str, content_id: str) -> None:
        """Initialize the error.

        Args:
            content_type: Content family searched.
            content_id: Missing item identifier.
        """
        self.content_type = content_type
        self.content_id = content_id
        super().__init__(f"Content not found: {content_type}:{content_id}")


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
