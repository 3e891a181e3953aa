"""
Lecturer claim approval workflow.

Runs a newly submitted claim through the approval rules:
- Small claims are auto-approved
- Large amounts, overtime and unusual rates are flagged for review

The repository calls this once per claim, inside claim creation.
"""

import logging
from typing import Optional

from ..claims.schema import Claim
from ..utils.config import Settings
from .rules import RuleEngine, WorkflowOutcome

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    """
    Single entry point to the rule engine.

    Keeps the outcome shape stable for callers regardless of how the rules
    are put together.
    """

    def __init__(self, engine: Optional[RuleEngine] = None, settings: Optional[Settings] = None):
        self.engine = engine or RuleEngine(settings=settings)

    def process_claim(self, claim: Claim) -> WorkflowOutcome:
        """
        Evaluate the claim against every rule.

        Args:
            claim: Claim to evaluate; mutated in place

        Returns:
            WorkflowOutcome with matched rule names and the auto-approval indicator
        """
        outcome = self.engine.evaluate(claim)

        if outcome.is_auto_approved:
            logger.info(f"Claim {claim.id} auto-approved (R{claim.total_amount:.2f})")
        elif outcome.flags:
            logger.info(f"Claim {claim.id} requires review: {', '.join(outcome.flags)}")
        else:
            logger.info(f"Claim {claim.id} queued for review")

        return outcome

    def matching_rules(self, claim: Claim) -> list[str]:
        """Rule names that would match the claim, without changing it."""
        return self.engine.matching_rules(claim)
