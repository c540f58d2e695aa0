"""Signal source errors."""


class SignalQueryError(Exception):
    """Raised when a signal source query fails.

    Attributes:
        query: Name of the failed query.
        message: Error description.
    """

    def __init__(self, query: str, message: str) -> None:
        """Initialize the error.

        Args:
            query: Name of the failed query.
            message: Error description.
        """
        self.query = query
        self.message = message
        super().__init__(f"Signal query '{query}' failed: {message}")
