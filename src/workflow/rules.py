"""
Approval rules for lecturer claims.

Each rule is a small object with a condition (``matches``) and an effect
(``apply``). The engine evaluates every rule in declaration order; a later
rule sees whatever an earlier rule changed on the claim.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..claims.schema import AUTO_APPROVAL_TAG, Claim, ClaimFlag, ClaimStatus
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Rules
# =============================================================================


class Rule(ABC):
    """Base class for approval rules."""

    name: str = ""

    @abstractmethod
    def matches(self, claim: Claim) -> bool:
        """Return True if the rule applies to the claim. Must not mutate it."""
        pass

    @abstractmethod
    def apply(self, claim: Claim) -> None:
        """Apply the rule's effect to the claim in place."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class SmallClaimAutoApprovalRule(Rule):
    """Small, short claims skip manual review."""

    name = "Small-claim auto-approval"

    def __init__(self, max_amount: float = 1000.0, max_hours: float = 10.0):
        self.max_amount = max_amount
        self.max_hours = max_hours

    def matches(self, claim: Claim) -> bool:
        return claim.total_amount <= self.max_amount and claim.hours_worked <= self.max_hours

    def apply(self, claim: Claim) -> None:
        # Reviewed claims keep their decision
        if claim.status is not ClaimStatus.PENDING:
            return
        claim.status = ClaimStatus.AUTO_APPROVED
        claim.append_note(AUTO_APPROVAL_TAG)


class FlagRule(Rule):
    """A rule whose only effect is to raise a flag on the claim."""

    flag: ClaimFlag

    def apply(self, claim: Claim) -> None:
        claim.add_flag(self.flag)


class HighAmountFlagRule(FlagRule):
    name = "High-amount flag"
    flag = ClaimFlag.HIGH_AMOUNT

    def __init__(self, threshold: float = 5000.0):
        self.threshold = threshold

    def matches(self, claim: Claim) -> bool:
        return claim.total_amount > self.threshold


class OvertimeFlagRule(FlagRule):
    name = "Overtime flag"
    flag = ClaimFlag.OVERTIME

    def __init__(self, max_hours: float = 40.0):
        self.max_hours = max_hours

    def matches(self, claim: Claim) -> bool:
        return claim.hours_worked > self.max_hours


class UnusualRateFlagRule(FlagRule):
    name = "Unusual-rate flag"
    flag = ClaimFlag.UNUSUAL_RATE

    def __init__(self, min_rate: float = 30.0, max_rate: float = 200.0):
        self.min_rate = min_rate
        self.max_rate = max_rate

    def matches(self, claim: Claim) -> bool:
        return claim.hourly_rate > self.max_rate or claim.hourly_rate < self.min_rate


def default_rules(settings: Optional[Settings] = None) -> List[Rule]:
    """The standard rule set, thresholds taken from settings."""
    s = settings or get_settings()
    return [
        SmallClaimAutoApprovalRule(max_amount=s.auto_approve_max_amount, max_hours=s.auto_approve_max_hours),
        HighAmountFlagRule(threshold=s.high_amount_threshold),
        OvertimeFlagRule(max_hours=s.overtime_hours_threshold),
        UnusualRateFlagRule(min_rate=s.min_normal_rate, max_rate=s.max_normal_rate),
    ]


# =============================================================================
# Engine
# =============================================================================


@dataclass
class WorkflowOutcome:
    """Result of one rule-engine pass over a claim."""
    claim: Claim
    flags: list[str] = field(default_factory=list)  # matched rule names, in order
    is_auto_approved: bool = False

    @property
    def status_label(self) -> str:
        return "Auto-Approved" if self.is_auto_approved else "Requires Review"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "claim_id": self.claim.id,
            "tracking_token": self.claim.tracking_token,
            "status": self.claim.status.value,
            "total_amount": self.claim.total_amount,
            "flags": self.flags,
            "is_auto_approved": self.is_auto_approved,
            "status_label": self.status_label,
        }


class RuleEngine:
    """Evaluates an ordered list of rules against claims."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None, settings: Optional[Settings] = None):
        self.rules: List[Rule] = list(rules) if rules is not None else default_rules(settings)

    def evaluate(self, claim: Claim) -> WorkflowOutcome:
        """
        Run every rule once, applying the effect of each rule that matches.

        Mutates the claim in place.
        """
        matched = []
        for rule in self.rules:
            if rule.matches(claim):
                rule.apply(claim)
                matched.append(rule.name)
                logger.debug(f"Rule '{rule.name}' matched claim {claim.id}")

        return WorkflowOutcome(
            claim=claim,
            flags=matched,
            is_auto_approved=claim.status is ClaimStatus.AUTO_APPROVED,
        )

    def matching_rules(self, claim: Claim) -> List[str]:
        """Names of the rules whose condition holds, without applying any effect."""
        return [rule.name for rule in self.rules if rule.matches(claim)]
