"""
Prediction verification.

- quota: call budget and TTL result cache for the result provider
- markets: market taxonomy, actual-value extraction, outcome rule
- verifier: single and bulk verification
- tracker: result state transitions and accuracy stats
"""

from valuebet.verification.quota import (
    InMemoryQuotaStore,
    QuotaCheck,
    QuotaConfig,
    QuotaStore,
    RateLimiter,
    get_rate_limiter,
    init_rate_limiter,
)
from valuebet.verification.verifier import (
    BulkVerificationReport,
    VerificationConfig,
    VerificationController,
    VerificationOutcome,
)

__all__ = [
    "InMemoryQuotaStore",
    "QuotaCheck",
    "QuotaConfig",
    "QuotaStore",
    "RateLimiter",
    "get_rate_limiter",
    "init_rate_limiter",
    "BulkVerificationReport",
    "VerificationConfig",
    "VerificationController",
    "VerificationOutcome",
]
