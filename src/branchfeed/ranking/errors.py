"""Ranking engine errors."""

from branchfeed.ranking.models import PoolPriority, RankingProduct


class RankingError(Exception):
    """Base exception for ranking errors."""


class RankingUnavailable(RankingError):
    """Raised when every attempted pool failed.

    Callers fall back to an empty or cached list.
    """

    def __init__(
        self, product: RankingProduct, pools_failed: tuple[PoolPriority, ...]
    ) -> None:
        """Initialize the error.

        Args:
            product: Product being ranked.
            pools_failed: Pools that failed.
        """
        self.product = product
        self.pools_failed = pools_failed
        names = ", ".join(p.label for p in pools_failed)
        super().__init__(f"All signal pools failed for {product.value}: {names}")


class RankingCancelled(RankingError):
    """Raised when the caller cancelled a ranking call.

    Partial pool results are discarded.
    """

    def __init__(self, product: RankingProduct) -> None:
        """Initialize the error.

        Args:
            product: Product being ranked.
        """
        self.product = product
        super().__init__(f"Ranking for {product.value} was cancelled")
