"""
Field checks for claim submissions.

Every violated constraint is reported, not only the first one, so the
submitter can fix the whole form in one pass.
"""

import math
from typing import List, Optional

from pydantic import BaseModel, Field

from ..utils.config import Settings, get_settings
from .schema import ClaimInput, calculate_total

# Allowed gap between a submitted total and hours x rate
AMOUNT_TOLERANCE = 0.01


class ValidationResult(BaseModel):
    """Outcome of validating one submission."""
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)


class ClaimValidator:
    """Validates raw claim submissions against the configured bounds."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def validate(self, claim: ClaimInput) -> ValidationResult:
        s = self.settings
        errors: List[str] = []

        name = claim.lecturer_name
        if not name:
            errors.append("Lecturer name is required")
        elif not s.lecturer_name_min_length <= len(name) <= s.lecturer_name_max_length:
            errors.append(
                f"Lecturer name must be between {s.lecturer_name_min_length} "
                f"and {s.lecturer_name_max_length} characters"
            )

        # NaN fails no range comparison
        hours_ok = False
        if not math.isfinite(claim.hours_worked):
            errors.append("Hours worked must be a valid number")
        elif claim.hours_worked <= 0:
            errors.append("Hours worked must be greater than 0")
        elif claim.hours_worked > s.max_hours:
            errors.append(f"Hours worked cannot exceed {s.max_hours:g} hours per claim")
        else:
            hours_ok = True

        rate_ok = False
        if not math.isfinite(claim.hourly_rate):
            errors.append("Hourly rate must be a valid number")
        elif claim.hourly_rate <= 0:
            errors.append("Hourly rate must be greater than 0")
        elif claim.hourly_rate > s.max_rate:
            errors.append(f"Hourly rate cannot exceed R{s.max_rate:g} per hour")
        else:
            rate_ok = True

        # A missing or zero total means "calculate it for me"
        if claim.total_amount is not None and claim.total_amount != 0:
            total_ok = math.isfinite(claim.total_amount)
            if not total_ok:
                errors.append("Total amount must be a valid number")
            elif claim.total_amount < 0:
                errors.append("Total amount must be greater than 0")
            elif claim.total_amount > s.max_total_amount:
                errors.append(f"Total amount cannot exceed R{s.max_total_amount:,.0f} per claim")

            if hours_ok and rate_ok and total_ok:
                calculated = calculate_total(claim.hours_worked, claim.hourly_rate)
                if abs(calculated - claim.total_amount) > AMOUNT_TOLERANCE:
                    errors.append(
                        f"Calculated amount (R{calculated:.2f}) doesn't match "
                        f"provided total (R{claim.total_amount:.2f})"
                    )

        if claim.notes and len(claim.notes) > s.max_notes_length:
            errors.append(f"Additional notes cannot exceed {s.max_notes_length} characters")

        return ValidationResult(is_valid=not errors, errors=errors)


def validate_claim(claim: ClaimInput, settings: Optional[Settings] = None) -> ValidationResult:
    """Validate a submission with the default bounds."""
    return ClaimValidator(settings).validate(claim)
