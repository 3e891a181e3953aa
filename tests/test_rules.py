"""
Tests for the approval rules and rule engine.

Each rule is exercised on its own, then the engine is checked for
ordering, non-short-circuiting and the read-only matching variant.
"""

import pytest

from src.claims.schema import AUTO_APPROVAL_TAG, Claim, ClaimFlag, ClaimStatus
from src.workflow.rules import (
    HighAmountFlagRule,
    OvertimeFlagRule,
    Rule,
    RuleEngine,
    SmallClaimAutoApprovalRule,
    UnusualRateFlagRule,
    default_rules,
)


# ============================================================================
# Helper Functions
# ============================================================================


def make_claim(hours: float, rate: float, **overrides) -> Claim:
    return Claim(id=1, lecturer_name="Dr. Test", hours_worked=hours, hourly_rate=rate, **overrides)


class RecordingRule(Rule):
    """Matches everything and records the order it ran in."""

    def __init__(self, name: str, log: list):
        self.name = name
        self.log = log

    def matches(self, claim: Claim) -> bool:
        return True

    def apply(self, claim: Claim) -> None:
        self.log.append(self.name)


# ============================================================================
# Individual Rules
# ============================================================================


class TestSmallClaimAutoApproval:

    def test_matches_small_short_claim(self):
        assert SmallClaimAutoApprovalRule().matches(make_claim(8, 45))

    def test_boundaries_are_inclusive(self):
        # 10 hours x 100 = exactly 1000
        assert SmallClaimAutoApprovalRule().matches(make_claim(10, 100))

    def test_too_many_hours(self):
        assert not SmallClaimAutoApprovalRule().matches(make_claim(10.5, 40))

    def test_too_large_amount(self):
        assert not SmallClaimAutoApprovalRule().matches(make_claim(10, 100.01))

    def test_apply_auto_approves_and_tags(self):
        claim = make_claim(8, 45)
        SmallClaimAutoApprovalRule().apply(claim)
        assert claim.status is ClaimStatus.AUTO_APPROVED
        assert AUTO_APPROVAL_TAG in claim.notes

    def test_apply_leaves_decided_claim_alone(self):
        claim = make_claim(8, 45, status=ClaimStatus.REJECTED)
        SmallClaimAutoApprovalRule().apply(claim)
        assert claim.status is ClaimStatus.REJECTED
        assert AUTO_APPROVAL_TAG not in claim.notes

    def test_custom_thresholds(self):
        rule = SmallClaimAutoApprovalRule(max_amount=200, max_hours=4)
        assert rule.matches(make_claim(4, 50))
        assert not rule.matches(make_claim(5, 30))


class TestHighAmountFlag:

    def test_above_threshold(self):
        assert HighAmountFlagRule().matches(make_claim(50, 100.02))

    def test_threshold_is_excluded(self):
        assert not HighAmountFlagRule().matches(make_claim(20, 250))

    def test_apply_flags(self):
        claim = make_claim(60, 100)
        HighAmountFlagRule().apply(claim)
        assert claim.flags == [ClaimFlag.HIGH_AMOUNT]
        assert "[FLAGGED: High amount requires manager review]" in claim.notes
        assert claim.status is ClaimStatus.PENDING


class TestOvertimeFlag:

    def test_above_forty_hours(self):
        assert OvertimeFlagRule().matches(make_claim(40.5, 50))

    def test_forty_hours_is_not_overtime(self):
        assert not OvertimeFlagRule().matches(make_claim(40, 50))


class TestUnusualRateFlag:

    @pytest.mark.parametrize("rate", [29.99, 200.01, 10, 450])
    def test_unusual_rates(self, rate):
        assert UnusualRateFlagRule().matches(make_claim(5, rate))

    @pytest.mark.parametrize("rate", [30, 45, 200])
    def test_normal_rates(self, rate):
        assert not UnusualRateFlagRule().matches(make_claim(5, rate))


# ============================================================================
# Engine
# ============================================================================


def test_default_rules_order(settings):
    names = [rule.name for rule in default_rules(settings)]
    assert names == [
        "Small-claim auto-approval",
        "High-amount flag",
        "Overtime flag",
        "Unusual-rate flag",
    ]


def test_default_rules_use_settings(settings):
    settings.overtime_hours_threshold = 20
    engine = RuleEngine(settings=settings)
    assert "Overtime flag" in engine.matching_rules(make_claim(25, 50))


def test_evaluate_small_claim(settings):
    claim = make_claim(8, 45)
    outcome = RuleEngine(settings=settings).evaluate(claim)

    assert outcome.claim is claim
    assert outcome.flags == ["Small-claim auto-approval"]
    assert outcome.is_auto_approved
    assert outcome.status_label == "Auto-Approved"


def test_evaluate_applies_every_matching_rule_in_order(settings):
    # 60h x R250 = R15,000: high amount, overtime and unusual rate
    claim = make_claim(60, 250)
    outcome = RuleEngine(settings=settings).evaluate(claim)

    assert outcome.flags == ["High-amount flag", "Overtime flag", "Unusual-rate flag"]
    assert claim.flags == [ClaimFlag.HIGH_AMOUNT, ClaimFlag.OVERTIME, ClaimFlag.UNUSUAL_RATE]
    assert not outcome.is_auto_approved
    assert outcome.status_label == "Requires Review"
    assert claim.status is ClaimStatus.PENDING


def test_small_claim_with_unusual_rate_is_auto_approved_and_flagged(settings):
    claim = make_claim(5, 20)
    outcome = RuleEngine(settings=settings).evaluate(claim)

    assert outcome.flags == ["Small-claim auto-approval", "Unusual-rate flag"]
    assert outcome.is_auto_approved
    assert claim.flags == [ClaimFlag.UNUSUAL_RATE]


def test_no_rule_matches(settings):
    claim = make_claim(20, 50)
    outcome = RuleEngine(settings=settings).evaluate(claim)

    assert outcome.flags == []
    assert claim.notes == ""
    assert claim.status is ClaimStatus.PENDING


def test_rules_run_in_declaration_order():
    log = []
    engine = RuleEngine(rules=[RecordingRule("first", log), RecordingRule("second", log), RecordingRule("third", log)])

    outcome = engine.evaluate(make_claim(1, 50))

    assert log == ["first", "second", "third"]
    assert outcome.flags == ["first", "second", "third"]


def test_later_rule_sees_earlier_mutation():
    class FlagIfAutoApproved(Rule):
        name = "Audit auto-approval"

        def matches(self, claim):
            return claim.status is ClaimStatus.AUTO_APPROVED

        def apply(self, claim):
            claim.append_note("[AUDIT]")

    engine = RuleEngine(rules=[SmallClaimAutoApprovalRule(), FlagIfAutoApproved()])
    claim = make_claim(8, 45)

    outcome = engine.evaluate(claim)

    assert outcome.flags == ["Small-claim auto-approval", "Audit auto-approval"]
    assert claim.notes.endswith("[AUDIT]")


def test_matching_rules_does_not_mutate(settings):
    claim = make_claim(60, 250, notes="Semester block")
    before = claim.model_dump()

    names = RuleEngine(settings=settings).matching_rules(claim)

    assert names == ["High-amount flag", "Overtime flag", "Unusual-rate flag"]
    assert claim.model_dump() == before


def test_empty_rule_set():
    outcome = RuleEngine(rules=[]).evaluate(make_claim(8, 45))
    assert outcome.flags == []
    assert not outcome.is_auto_approved


def test_outcome_to_dict(settings):
    outcome = RuleEngine(settings=settings).evaluate(make_claim(8, 45))
    data = outcome.to_dict()

    assert data["status"] == "auto-approved"
    assert data["total_amount"] == pytest.approx(360.0)
    assert data["flags"] == ["Small-claim auto-approval"]
    assert data["is_auto_approved"] is True
