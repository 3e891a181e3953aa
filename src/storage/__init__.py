"""
Storage module for lecturer claims.

Provides the in-memory claims repository:
- Claim identity and status changes
- Summary and workflow analytics
- Demo seed data
"""

from .claim_repository import (
    CLAIM_FILTERS,
    CLAIM_SORTS,
    ClaimsRepository,
    seed_demo_claims,
)

__all__ = [
    "ClaimsRepository",
    "seed_demo_claims",
    "CLAIM_FILTERS",
    "CLAIM_SORTS",
]
