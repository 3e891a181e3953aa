"""Approval workflow for lecturer claims."""

from .approval_workflow import ApprovalWorkflow
from .rules import (
    FlagRule,
    HighAmountFlagRule,
    OvertimeFlagRule,
    Rule,
    RuleEngine,
    SmallClaimAutoApprovalRule,
    UnusualRateFlagRule,
    WorkflowOutcome,
    default_rules,
)

__all__ = [
    "ApprovalWorkflow",
    "RuleEngine",
    "WorkflowOutcome",
    "Rule",
    "FlagRule",
    "SmallClaimAutoApprovalRule",
    "HighAmountFlagRule",
    "OvertimeFlagRule",
    "UnusualRateFlagRule",
    "default_rules",
]
