"""
Typed exceptions for the lecturer claims workflow.

    ClaimError (base)
    |
    +-- ClaimValidationError      submission failed one or more field checks
    +-- InvalidTransitionError    status change not allowed from current status
    +-- FileStorageError          supporting document rejected or not written

"Not found" is not an error here: id-keyed lookups return None.
"""

from typing import List, Optional


class ClaimError(Exception):
    """Base class for claim workflow errors."""

    code: str = "CLAIM_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ClaimValidationError(ClaimError):
    """A claim submission violated one or more constraints. Nothing was written."""

    code = "CLAIM_VALIDATION_FAILED"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Claim is invalid")

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "errors": self.errors}


class InvalidTransitionError(ClaimError):
    """Requested status change is not permitted."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, claim_id: int, current_status: str, requested_status: str, reason: Optional[str] = None):
        self.claim_id = claim_id
        self.current_status = current_status
        self.requested_status = requested_status
        message = reason or (
            f"Claim {claim_id} is already {current_status} and cannot move to {requested_status}"
        )
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "claim_id": self.claim_id,
            "current_status": self.current_status,
            "requested_status": self.requested_status,
        }


class FileStorageError(ClaimError):
    """Supporting document could not be stored."""

    code = "FILE_STORAGE_FAILED"
