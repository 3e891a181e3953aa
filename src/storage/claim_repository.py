"""
In-memory claims repository.

Owns the claim collection: identity, status changes and the read models
derived from it. The store lives for the lifetime of the process and is
not persisted.
"""

import logging
import threading
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..claims.errors import ClaimValidationError, InvalidTransitionError
from ..claims.schema import (
    Claim,
    ClaimInput,
    ClaimStatus,
    ClaimSummary,
    LecturerSummary,
    MonthlyBreakdown,
    PaymentSummary,
    WorkflowAnalysis,
    progress_for,
    utc_now,
)
from ..claims.validator import ClaimValidator
from ..utils.config import Settings, get_settings
from ..workflow import ApprovalWorkflow, WorkflowOutcome

logger = logging.getLogger(__name__)


# Filters and sort orders offered to reviewers
CLAIM_FILTERS: Dict[str, Callable[[Claim], bool]] = {
    "all": lambda c: True,
    "pending": lambda c: c.status is ClaimStatus.PENDING,
    "approved": lambda c: c.status.counts_as_approved,
    "auto-approved": lambda c: c.status is ClaimStatus.AUTO_APPROVED,
    "rejected": lambda c: c.status is ClaimStatus.REJECTED,
    "flagged": lambda c: c.is_flagged,
}

CLAIM_SORTS: Dict[str, tuple] = {
    # name: (key, reverse)
    "newest": (lambda c: (c.submitted_at, c.id), True),
    "oldest": (lambda c: (c.submitted_at, c.id), False),
    "amount-high": (lambda c: (c.total_amount, c.id), True),
    "amount-low": (lambda c: (c.total_amount, c.id), False),
    "name": (lambda c: (c.lecturer_name.lower(), c.id), False),
}


def _newest_first(claims: Iterable[Claim]) -> List[Claim]:
    # Ties on timestamp fall back to insertion order via the id
    return sorted(claims, key=lambda c: (c.submitted_at, c.id), reverse=True)


def _approved_total(claims: Iterable[Claim]) -> float:
    return round(sum(c.total_amount for c in claims if c.status.counts_as_approved), 2)


def _error_messages(error: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()]


def _reviewed_in_month(claim: Claim, now: datetime) -> bool:
    return (
        claim.reviewed_at is not None
        and claim.reviewed_at.year == now.year
        and claim.reviewed_at.month == now.month
    )


class ClaimsRepository:
    """
    Thread-safe in-memory store for lecturer claims.

    Usage:
        repo = ClaimsRepository()

        # Submit a claim (validated, then run through the approval rules)
        claim = repo.create(ClaimInput(lecturer_name="Dr. A", hours_worked=8, hourly_rate=45))

        # Retrieve
        claim = repo.get_by_id(claim.id)

        # Review
        repo.update_status(claim.id, ClaimStatus.APPROVED, reviewed_by="coordinator")

        # Analytics
        repo.get_summary()
        repo.get_workflow_analysis()

    A single lock guards the collection and the id counter. Stored claims
    are never mutated in place: updates build a new claim and swap it in,
    and every claim handed out is a copy.
    """

    def __init__(
        self,
        workflow: Optional[ApprovalWorkflow] = None,
        validator: Optional[ClaimValidator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings()
        self.workflow = workflow or ApprovalWorkflow(settings=self.settings)
        self.validator = validator or ClaimValidator(self.settings)
        self.allow_terminal_overwrite = self.settings.allow_terminal_overwrite
        self._clock = clock

        self._lock = threading.RLock()
        self._claims: Dict[int, Claim] = {}
        self._ids_by_token: Dict[str, int] = {}
        self._next_id = 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)

    def _snapshot(self) -> List[Claim]:
        """Point-in-time view of the stored claims (shared, do not mutate)."""
        with self._lock:
            return list(self._claims.values())

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, claim_input: Union[ClaimInput, dict]) -> Claim:
        """
        Validate, store and evaluate a new claim.

        Raises:
            ClaimValidationError: listing every violated constraint
        """
        return self.create_with_outcome(claim_input).claim

    def create_with_outcome(self, claim_input: Union[ClaimInput, dict]) -> WorkflowOutcome:
        """
        Validate, store and evaluate a new claim.

        Returns:
            WorkflowOutcome holding a copy of the stored claim, the names of
            the rules that matched and whether the claim was auto-approved

        Raises:
            ClaimValidationError: listing every violated constraint
        """
        if isinstance(claim_input, dict):
            try:
                claim_input = ClaimInput(**claim_input)
            except ValidationError as e:
                raise ClaimValidationError(_error_messages(e)) from e

        result = self.validator.validate(claim_input)
        if not result.is_valid:
            logger.warning(f"Rejected claim submission from '{claim_input.lecturer_name}': {result.errors}")
            raise ClaimValidationError(result.errors)

        with self._lock:
            claim_id = self._next_id
            try:
                claim = Claim(
                    id=claim_id,
                    lecturer_name=claim_input.lecturer_name,
                    hours_worked=claim_input.hours_worked,
                    hourly_rate=claim_input.hourly_rate,
                    notes=(claim_input.notes or "").strip(),
                    file=claim_input.file,
                    submitted_at=self._clock(),
                )
            except ValidationError as e:
                raise ClaimValidationError(_error_messages(e)) from e
            # The id is only consumed once the claim exists
            self._next_id += 1

            outcome = self.workflow.process_claim(claim)
            if claim.status.is_terminal:
                claim.mark_reviewed(self._clock())
            else:
                claim.progress = progress_for(claim.status)

            self._claims[claim_id] = claim
            self._ids_by_token[claim.tracking_token] = claim_id

        logger.info(
            f"Claim {claim_id} created for {claim.lecturer_name}: "
            f"R{claim.total_amount:.2f}, {claim.status.value}"
        )
        return replace(outcome, claim=claim.model_copy(deep=True))

    def update_status(
        self,
        claim_id: int,
        status: Union[ClaimStatus, str],
        reviewed_by: Optional[str] = None,
        note: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Optional[Claim]:
        """
        Record a review decision.

        Args:
            claim_id: Claim to update
            status: New status (approved, rejected or auto-approved)
            reviewed_by: Reviewer identity
            note: Reviewer comment, appended to the notes
            reason: Rejection reason, stored and appended to the notes

        Returns:
            The updated claim, or None if no claim has that id

        Raises:
            InvalidTransitionError: target is pending, or the claim is already
                decided and terminal overwrites are disabled
        """
        status = ClaimStatus(status)

        with self._lock:
            stored = self._claims.get(claim_id)
            if stored is None:
                return None

            if status is ClaimStatus.PENDING:
                raise InvalidTransitionError(
                    claim_id, stored.status.value, status.value,
                    reason=f"Claim {claim_id} cannot be moved back to pending",
                )
            if stored.status.is_terminal and not self.allow_terminal_overwrite:
                raise InvalidTransitionError(claim_id, stored.status.value, status.value)

            updated = stored.model_copy(deep=True)
            updated.status = status
            if status is ClaimStatus.REJECTED and reason:
                updated.rejection_reason = reason
                updated.append_note(f"[Rejection Reason: {reason}]")
            if note:
                updated.append_note(f"[Coordinator Note: {note}]")
            updated.mark_reviewed(self._clock(), reviewed_by)

            self._claims[claim_id] = updated

        logger.info(
            f"Claim {claim_id} {stored.status.value} -> {status.value}"
            + (f" by {reviewed_by}" if reviewed_by else "")
        )
        return updated.model_copy(deep=True)

    def bulk_update_status(
        self,
        claim_ids: Iterable[int],
        status: Union[ClaimStatus, str],
        reviewed_by: Optional[str] = None,
    ) -> List[Claim]:
        """
        Apply the same decision to several claims.

        Unknown ids and claims that may not change are skipped.

        Returns:
            The claims that were updated
        """
        updated = []
        for claim_id in claim_ids:
            try:
                claim = self.update_status(claim_id, status, reviewed_by=reviewed_by)
            except InvalidTransitionError as e:
                logger.warning(f"Bulk update skipped claim {claim_id}: {e.message}")
                continue
            if claim is not None:
                updated.append(claim)
        return updated

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all(self) -> List[Claim]:
        """All claims, newest first."""
        with self._lock:
            claims = [c.model_copy(deep=True) for c in self._claims.values()]
        return _newest_first(claims)

    def get_by_id(self, claim_id: int) -> Optional[Claim]:
        with self._lock:
            claim = self._claims.get(claim_id)
            return claim.model_copy(deep=True) if claim else None

    def get_by_tracking_token(self, token: str) -> Optional[Claim]:
        with self._lock:
            claim_id = self._ids_by_token.get(token)
            if claim_id is None:
                return None
            return self._claims[claim_id].model_copy(deep=True)

    def get_recent(self, count: int) -> List[Claim]:
        """At most ``count`` claims, newest first."""
        if count <= 0:
            return []
        return self.get_all()[:count]

    def get_claims_for_lecturer(self, lecturer_name: str) -> List[Claim]:
        return [c for c in self.get_all() if c.lecturer_name == lecturer_name]

    def list_claims(self, filter: str = "all", sort_by: str = "newest") -> List[Claim]:
        """
        Claims matching a reviewer filter, in the requested order.

        Unknown filters show everything; unknown sort orders fall back to newest first.
        """
        predicate = CLAIM_FILTERS.get(filter, CLAIM_FILTERS["all"])
        key, reverse = CLAIM_SORTS.get(sort_by, CLAIM_SORTS["newest"])
        return sorted((c for c in self.get_all() if predicate(c)), key=key, reverse=reverse)

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_summary(self) -> ClaimSummary:
        claims = self._snapshot()
        now = self._clock()
        return ClaimSummary(
            total_claims=len(claims),
            pending_claims=sum(1 for c in claims if c.status is ClaimStatus.PENDING),
            approved_claims=sum(1 for c in claims if c.status.counts_as_approved),
            rejected_claims=sum(1 for c in claims if c.status is ClaimStatus.REJECTED),
            auto_approved_claims=sum(1 for c in claims if c.status is ClaimStatus.AUTO_APPROVED),
            total_amount_approved=_approved_total(claims),
            processed_this_month=sum(
                1 for c in claims if c.status.counts_as_approved and _reviewed_in_month(c, now)
            ),
        )

    def get_workflow_analysis(self) -> WorkflowAnalysis:
        """
        Rule-engine statistics over every stored claim.

        The rule frequency table re-runs the rule conditions read-only, so
        it reflects the current rule set rather than the one in force when
        each claim was submitted.
        """
        claims = self._snapshot()
        total = len(claims)
        auto_approved = sum(1 for c in claims if c.status is ClaimStatus.AUTO_APPROVED)

        durations = [
            (c.reviewed_at - c.submitted_at).total_seconds() / 3600
            for c in claims
            if c.reviewed_at is not None
        ]
        average_hours = sum(durations) / len(durations) if durations else None

        frequency = Counter({rule.name: 0 for rule in self.workflow.engine.rules})
        for claim in claims:
            frequency.update(self.workflow.matching_rules(claim))

        return WorkflowAnalysis(
            total_claims=total,
            auto_approved_claims=auto_approved,
            flagged_claims=sum(1 for c in claims if c.is_flagged),
            auto_approval_rate=auto_approved / total if total else 0.0,
            average_processing_hours=average_hours,
            rule_frequency=dict(frequency),
        )

    def get_lecturer_summaries(self) -> List[LecturerSummary]:
        by_lecturer: Dict[str, List[Claim]] = {}
        for claim in self._snapshot():
            by_lecturer.setdefault(claim.lecturer_name, []).append(claim)

        return [
            LecturerSummary(
                lecturer_name=name,
                total_claims=len(claims),
                pending_claims=sum(1 for c in claims if c.status is ClaimStatus.PENDING),
                approved_claims=sum(1 for c in claims if c.status.counts_as_approved),
                total_approved=_approved_total(claims),
                last_submission=max(c.submitted_at for c in claims),
            )
            for name, claims in sorted(by_lecturer.items())
        ]

    def get_payment_summary(self) -> PaymentSummary:
        approved = [c for c in self._snapshot() if c.status.counts_as_approved]
        now = self._clock()
        total = _approved_total(approved)
        return PaymentSummary(
            ready_for_payment=len(approved),
            total_amount=total,
            total_lecturers=len({c.lecturer_name for c in approved}),
            processed_this_month=sum(1 for c in approved if _reviewed_in_month(c, now)),
            average_claim_amount=round(total / len(approved), 2) if approved else 0.0,
        )

    def get_monthly_breakdown(self) -> List[MonthlyBreakdown]:
        by_period: Dict[str, List[Claim]] = {}
        for claim in self._snapshot():
            by_period.setdefault(claim.submitted_at.strftime("%Y-%m"), []).append(claim)

        return [
            MonthlyBreakdown(
                period=period,
                total_claims=len(claims),
                approved_claims=sum(1 for c in claims if c.status.counts_as_approved),
                total_amount=_approved_total(claims),
            )
            for period, claims in sorted(by_period.items())
        ]


# =============================================================================
# Demo Data
# =============================================================================

DEMO_CLAIMS = [
    ({"lecturer_name": "Dr. Sarah Johnson", "hours_worked": 25.5, "hourly_rate": 45.0, "notes": "Lecture prep"},
     ClaimStatus.APPROVED),
    ({"lecturer_name": "Prof. Michael Chen", "hours_worked": 18, "hourly_rate": 52.0, "notes": "Tutorials"},
     None),
    ({"lecturer_name": "Dr. Emily Watson", "hours_worked": 12, "hourly_rate": 48.0, "notes": "Lab supervision"},
     ClaimStatus.REJECTED),
]


def seed_demo_claims(repository: ClaimsRepository) -> List[Claim]:
    """Populate a repository with a few demo claims in mixed states."""
    seeded = []
    for fields, decision in DEMO_CLAIMS:
        claim = repository.create(fields)
        if decision is not None:
            claim = repository.update_status(claim.id, decision, reviewed_by="demo")
        seeded.append(claim)
    logger.info(f"Seeded {len(seeded)} demo claims")
    return seeded
