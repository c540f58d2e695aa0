"""Domain exceptions for the branch store.

This module defines a hierarchy of exceptions for the store layer,
separating infrastructure errors (database issues) from domain errors
(missing records).
"""


class StoreError(Exception):
    """Base exception for all branch store errors.

    All exceptions raised by the store should inherit from this class
    to enable consistent error handling at the application level.
    """


class ConnectionError(StoreError):
    """Raised when database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class StoryNotFoundError(StoreError):
    """Raised when a requested story does not exist."""

    def __init__(self, story_id: str) -> None:
        """Initialize the error with the missing story ID.

        Args:
            story_id: The story ID that was not found.
        """
        self.story_id = story_id
        super().__init__(f"Story not found: {story_id}")


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
