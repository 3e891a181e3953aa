"""
Lecturer claims module.

Claim entity, status model, read models and submission validation.
"""

from .errors import ClaimError, ClaimValidationError, FileStorageError, InvalidTransitionError
from .schema import (
    # Enums
    ClaimStatus,
    ProgressStatus,
    ClaimFlag,
    # Models
    FileReference,
    ClaimInput,
    Claim,
    # Read models
    ClaimSummary,
    WorkflowAnalysis,
    LecturerSummary,
    PaymentSummary,
    MonthlyBreakdown,
    # Helpers
    AUTO_APPROVAL_TAG,
    calculate_total,
    progress_for,
)
from .validator import ClaimValidator, ValidationResult, validate_claim

__all__ = [
    # Errors
    "ClaimError",
    "ClaimValidationError",
    "InvalidTransitionError",
    "FileStorageError",
    # Enums
    "ClaimStatus",
    "ProgressStatus",
    "ClaimFlag",
    # Models
    "FileReference",
    "ClaimInput",
    "Claim",
    "ClaimSummary",
    "WorkflowAnalysis",
    "LecturerSummary",
    "PaymentSummary",
    "MonthlyBreakdown",
    # Validation
    "ClaimValidator",
    "ValidationResult",
    "validate_claim",
    # Helpers
    "AUTO_APPROVAL_TAG",
    "calculate_total",
    "progress_for",
]
