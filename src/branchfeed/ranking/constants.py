"""Constants for the ranking module."""

# Human-readable candidate reasons
REASON_MUTUAL_SINGULAR = "{count} mutual connection"
REASON_MUTUAL_PLURAL = "{count} mutual connections"
REASON_LIKED_AUTHOR = "Author of stories you liked"
REASON_POPULAR_CREATOR = "Popular creator"
REASON_FOLLOWED_AUTHOR = "From creators you follow"
REASON_ENJOYED_AUTHOR = "More from authors you enjoyed"
REASON_POPULAR_STORY = "Popular now"

# Worker threads when none is configured
DEFAULT_MAX_WORKERS: int = 3

# Seconds between cancellation checks while pools are in flight
CANCEL_POLL_SECONDS: float = 0.05
