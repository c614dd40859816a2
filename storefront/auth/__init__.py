"""
Caller identity and abuse protection.
"""

from storefront.auth.ratelimit import CounterStore, InMemoryCounterStore, SlidingWindowLimiter
from storefront.auth.tokens import PUBLIC, Principal, extract_bearer, require_role, verify_token

__all__ = [
    "Principal",
    "PUBLIC",
    "extract_bearer",
    "verify_token",
    "require_role",
    "CounterStore",
    "InMemoryCounterStore",
    "SlidingWindowLimiter",
]
