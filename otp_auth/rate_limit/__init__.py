"""
Rate Limiting
=============
Per-identity sliding window admission control for code requests.
"""

from .models import RateLimitResult, RateLimitInfo
from .sliding_window import RateLimiter, SlidingWindowLimiter

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitInfo",
    # Limiters
    "RateLimiter",
    "SlidingWindowLimiter",
]
