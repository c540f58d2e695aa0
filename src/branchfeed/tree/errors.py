"""Exceptions for path validation against a story tree."""


class PathValidationError(Exception):
    """Base exception for paths rejected before any resolution or mutation."""


class InvalidPathToken(PathValidationError):
    """Raised when a path contains a token other than 'A' or 'B'."""

    def __init__(self, token: object, position: int) -> None:
        """Initialize the error.

        Args:
            token: The offending token.
            position: Zero-based index of the token in the path.
        """
        self.token = token
        self.position = position
        super().__init__(f"Invalid path token at position {position}: {token!r}")


class PathDepthExceeded(PathValidationError):
    """Raised when a path is longer than the story's max_depth."""

    def __init__(self, length: int, max_depth: int) -> None:
        """Initialize the error.

        Args:
            length: Length of the rejected path.
            max_depth: Maximum depth allowed by the story.
        """
        self.length = length
        self.max_depth = max_depth
        super().__init__(f"Path length {length} exceeds max_depth {max_depth}")
