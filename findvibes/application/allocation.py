from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from findvibes.domain.entities import MAX_SEEDS, RecommendationRequest, SeedCategory


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def partition_seeds(seeds: Sequence[str], size: int = MAX_SEEDS) -> List[Tuple[str, ...]]:
    """Split seeds into consecutive chunks of ``size``; the last one may be shorter.

    Args:
        seeds: Seed identifiers in their original order
        size: Maximum chunk length

    Returns:
        Non-overlapping chunks whose concatenation equals ``seeds``
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [tuple(seeds[i:i + size]) for i in range(0, len(seeds), size)]


def allocate(seeds: Sequence[str], category: SeedCategory, total_limit: int) -> List[RecommendationRequest]:
    """Turn a seed set and a target result count into quota-compliant requests.

    Fewer than ``MAX_SEEDS`` seeds yield a single request carrying the whole
    limit. Otherwise each full chunk receives an even share of ``total_limit``
    across the full chunks (at least one, never more than what is left), and
    a trailing partial chunk receives the remainder. Chunks are issued only
    while some of the limit is left.

    Args:
        seeds: Seed identifiers of one category
        category: Which seed parameter the ids populate
        total_limit: Number of tracks wanted across all requests

    Returns:
        Requests in issue order
    """
    if total_limit < 0:
        raise ValueError(f"total_limit must be non-negative, got {total_limit}")
    if not seeds:
        return []
    if len(seeds) < MAX_SEEDS:
        return [RecommendationRequest(category=category, seeds=tuple(seeds), limit=total_limit)]

    full_chunks = len(seeds) // MAX_SEEDS
    # Small limits spread over many chunks still get one track per chunk
    share = max(1, round_half_up(total_limit / full_chunks))

    requests: List[RecommendationRequest] = []
    remaining = total_limit
    for chunk in partition_seeds(seeds):
        if remaining <= 0:
            break
        if len(chunk) == MAX_SEEDS:
            limit = min(share, remaining)
        else:
            limit = remaining
        requests.append(RecommendationRequest(category=category, seeds=chunk, limit=limit))
        remaining -= limit
    return requests
