"""
Decision cache module for autoapprove.

The second tier of the decision pipeline: a content-addressed store of
previously rendered allow/deny verdicts with time-based expiry.

Design principles:
    - Fingerprints ignore mapping key order
    - Identical requests in different projects are different entries
    - Passthrough is never stored
    - Corruption reads as an empty cache, never as an error
"""

from autoapprove.cache.store import (
    CACHE_FILE,
    CacheStats,
    DecisionCache,
    compute_fingerprint,
)

__all__ = [
    "CACHE_FILE",
    "CacheStats",
    "DecisionCache",
    "compute_fingerprint",
]
