"""Priority merge, exclusion and ordering of candidate pools."""

from collections.abc import Collection, Iterable, Sequence

from branchfeed.ranking.models import Candidate, PoolPriority, PoolResult


def merge_by_priority(
    pools: Iterable[PoolResult],
    excluded_ids: Collection[str],
) -> list[Candidate]:
    """Merge pools into one candidate per entity, first write wins.

    Pools are visited in priority order (P1, then P2, then P3) regardless of
    the order they are given in. Within a pool, source order is kept. An id
    already taken by a higher-priority pool is never overwritten, and
    excluded ids are dropped.

    Args:
        pools: Pool results; failed pools contribute nothing.
        excluded_ids: Ids that must never be returned.

    Returns:
        Merged candidates in insertion order.
    """
    merged: dict[str, Candidate] = {}
    for pool in sorted(pools, key=lambda p: p.pool.value):
        if pool.failed:
            continue
        for candidate in pool.candidates:
            if candidate.entity_id in excluded_ids:
                continue
            if candidate.entity_id in merged:
                continue
            merged[candidate.entity_id] = candidate
    return list(merged.values())


def order_candidates(candidates: Sequence[Candidate], limit: int) -> list[Candidate]:
    """Sort by score descending and keep the first ``limit``.

    The sort is stable, so ties keep merge order (pool priority, then
    source order).

    Args:
        candidates: Merged candidates.
        limit: Maximum number to return.

    Returns:
        Ordered, truncated candidates.
    """
    if limit <= 0:
        return []
    return sorted(candidates, key=lambda c: c.score, reverse=True)[:limit]


def rank_pools_pure(
    pools: Sequence[tuple[PoolPriority, Sequence[Candidate]]],
    excluded_ids: Collection[str] = (),
    limit: int = 10,
) -> list[Candidate]:
    """Pure function API for merging and ordering pre-scored pools.

    Args:
        pools: (priority, candidates) pairs.
        excluded_ids: Ids that must never be returned.
        limit: Maximum number to return.

    Returns:
        Ordered candidates.
    """
    results = [PoolResult(pool=priority, candidates=list(items)) for priority, items in pools]
    return order_candidates(merge_by_priority(results, excluded_ids), limit)
