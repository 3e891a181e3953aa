"""
Canonical schema for lecturer hours-worked claims.

Defines the claim entity, its status model and the read models derived
from the claim collection.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ============================================================================
# Enums
# ============================================================================


class ClaimStatus(str, Enum):
    """Lifecycle status of a claim. Only pending claims can still move."""
    PENDING = "pending"
    APPROVED = "approved"
    AUTO_APPROVED = "auto-approved"
    REJECTED = "rejected"

    @property
    def counts_as_approved(self) -> bool:
        """Approved by a reviewer or by the rule engine."""
        return self in (ClaimStatus.APPROVED, ClaimStatus.AUTO_APPROVED)

    @property
    def is_terminal(self) -> bool:
        return self is not ClaimStatus.PENDING


class ProgressStatus(str, Enum):
    """Human-readable progress label shown to lecturers."""
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    AUTO_APPROVED = "Auto-Approved"


_PROGRESS_BY_STATUS: Dict[ClaimStatus, ProgressStatus] = {
    ClaimStatus.PENDING: ProgressStatus.UNDER_REVIEW,
    ClaimStatus.APPROVED: ProgressStatus.APPROVED,
    ClaimStatus.AUTO_APPROVED: ProgressStatus.AUTO_APPROVED,
    ClaimStatus.REJECTED: ProgressStatus.REJECTED,
}


def progress_for(status: ClaimStatus) -> ProgressStatus:
    """Progress label for a claim that has been through the workflow."""
    return _PROGRESS_BY_STATUS[status]


class ClaimFlag(str, Enum):
    """Anomalies raised by the approval rules."""
    HIGH_AMOUNT = "high_amount"
    OVERTIME = "overtime"
    UNUSUAL_RATE = "unusual_rate"

    @property
    def tag(self) -> str:
        """Bracketed marker rendered into the claim notes."""
        return _FLAG_TAGS[self]


_FLAG_TAGS: Dict[ClaimFlag, str] = {
    ClaimFlag.HIGH_AMOUNT: "[FLAGGED: High amount requires manager review]",
    ClaimFlag.OVERTIME: "[FLAGGED: Overtime hours require justification]",
    ClaimFlag.UNUSUAL_RATE: "[FLAGGED: Unusual hourly rate requires verification]",
}

AUTO_APPROVAL_TAG = "[AUTO-APPROVED: Small claim]"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def calculate_total(hours_worked: float, hourly_rate: float) -> float:
    """Claim amount: hours x rate, rounded to cents."""
    return round(hours_worked * hourly_rate, 2)


# ============================================================================
# Claim Models
# ============================================================================


class FileReference(BaseModel):
    """Supporting document attached at submission time."""
    file_name: str = Field(description="Name of the file as uploaded")
    stored_name: Optional[str] = Field(None, description="Name the file was stored under")
    file_path: str = Field(description="Path the stored file is served from")
    size_bytes: int = Field(default=0, ge=0)


class ClaimInput(BaseModel):
    """
    Raw claim submission as entered by the lecturer.

    Field bounds are checked by ClaimValidator, which reports every
    violation in one result.
    """
    lecturer_name: str = Field(default="", description="Lecturer submitting the claim")
    hours_worked: float = Field(default=0.0, description="Hours worked in the claim period")
    hourly_rate: float = Field(default=0.0, description="Agreed hourly rate")
    notes: Optional[str] = Field(None, description="Free-text notes from the lecturer")
    total_amount: Optional[float] = Field(
        None,
        description="Total as calculated by the submitter; must agree with hours x rate",
    )
    file: Optional[FileReference] = None

    @field_validator("lecturer_name")
    @classmethod
    def strip_lecturer_name(cls, v: str) -> str:
        return (v or "").strip()


class Claim(BaseModel):
    """
    Lecturer claim for hours worked.

    The id, tracking token and submission time are fixed once the claim is
    built. The total amount is always derived from hours and rate. Notes are
    appended to, never rewritten.
    """

    id: int = Field(default=0, ge=0, frozen=True, description="Sequential id assigned by the repository")
    tracking_token: str = Field(
        default_factory=lambda: uuid4().hex,
        frozen=True,
        description="Opaque token for notification groups and self-lookup",
    )

    lecturer_name: str = Field(..., min_length=1, description="Lecturer who submitted the claim")
    hours_worked: float = Field(..., gt=0, description="Hours worked")
    hourly_rate: float = Field(..., gt=0, description="Hourly rate")

    notes: str = Field(default="", description="Lecturer notes plus appended workflow and reviewer tags")
    flags: List[ClaimFlag] = Field(default_factory=list, description="Anomalies raised by the approval rules")

    status: ClaimStatus = Field(default=ClaimStatus.PENDING)
    progress: ProgressStatus = Field(default=ProgressStatus.SUBMITTED)

    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    file: Optional[FileReference] = None

    submitted_at: datetime = Field(default_factory=utc_now, frozen=True)
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "id": 1,
                    "tracking_token": "3f1c9a0e5b7d4e2a9c8b6d4f2e0a1b3c",
                    "lecturer_name": "Dr. Sarah Johnson",
                    "hours_worked": 25.5,
                    "hourly_rate": 45.0,
                    "total_amount": 1147.5,
                    "notes": "Lecture prep",
                    "flags": [],
                    "status": "pending",
                    "progress": "Under Review",
                    "submitted_at": "2024-03-01T09:30:00Z",
                    "reviewed_at": None,
                }
            ]
        }
    )

    @computed_field
    @property
    def total_amount(self) -> float:
        return calculate_total(self.hours_worked, self.hourly_rate)

    @property
    def is_flagged(self) -> bool:
        return bool(self.flags)

    @property
    def is_auto_approved(self) -> bool:
        return self.status is ClaimStatus.AUTO_APPROVED

    def append_note(self, text: str) -> None:
        """Append text to the notes, separated by a space."""
        text = (text or "").strip()
        if not text:
            return
        self.notes = f"{self.notes} {text}".strip()

    def add_flag(self, flag: ClaimFlag) -> None:
        """Record a flag and render its tag into the notes."""
        if flag in self.flags:
            return
        self.flags.append(flag)
        self.append_note(flag.tag)

    def mark_reviewed(self, at: datetime, reviewed_by: Optional[str] = None) -> None:
        """Stamp review time and bring the progress label in line with status."""
        self.reviewed_at = at
        if reviewed_by:
            self.reviewed_by = reviewed_by
        self.progress = progress_for(self.status)


# ============================================================================
# Read Models
# ============================================================================


class ClaimSummary(BaseModel):
    """Counts by status. Approved counts include auto-approved claims."""
    total_claims: int = 0
    pending_claims: int = 0
    approved_claims: int = 0
    rejected_claims: int = 0
    auto_approved_claims: int = 0
    total_amount_approved: float = 0.0
    processed_this_month: int = 0


class WorkflowAnalysis(BaseModel):
    """How the approval rules have been treating the claim set."""
    total_claims: int = 0
    auto_approved_claims: int = 0
    flagged_claims: int = 0
    auto_approval_rate: float = 0.0
    average_processing_hours: Optional[float] = Field(
        None,
        description="Mean hours from submission to review over reviewed claims; null when none reviewed",
    )
    rule_frequency: Dict[str, int] = Field(default_factory=dict)


class LecturerSummary(BaseModel):
    lecturer_name: str
    total_claims: int = 0
    pending_claims: int = 0
    approved_claims: int = 0
    total_approved: float = 0.0
    last_submission: Optional[datetime] = None


class PaymentSummary(BaseModel):
    """Approved claims awaiting payment."""
    ready_for_payment: int = 0
    total_amount: float = 0.0
    total_lecturers: int = 0
    processed_this_month: int = 0
    average_claim_amount: float = 0.0


class MonthlyBreakdown(BaseModel):
    period: str = Field(description="Submission month as YYYY-MM")
    total_claims: int = 0
    approved_claims: int = 0
    total_amount: float = 0.0
