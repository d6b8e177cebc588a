"""
Rule Evaluator
Final-decision policies applied once the last step of a chain is approved.

Each policy is a pure function (chain, acting_user_id, rule) -> RuleOutcome.
`chain` is the full approval chain of the expense, already reflecting the
approval that triggered the evaluation.
"""

from typing import Callable, Dict, Optional, Sequence
import enum

from expenseflow.models.approval_rule import ApprovalRule, RuleType
from expenseflow.models.expense_approval import ApprovalStatus, ExpenseApproval


class RuleOutcome(str, enum.Enum):
    """Result of evaluating a rule at the end of a chain"""
    APPROVED = "approved"
    STALLED = "stalled"


def approval_percentage(chain: Sequence[ExpenseApproval]) -> float:
    """Share of approved records in the chain, 0-100"""
    if not chain:
        return 0.0
    approved = sum(1 for record in chain if record.status == ApprovalStatus.APPROVED)
    return approved / len(chain) * 100


def evaluate_sequential(
    chain: Sequence[ExpenseApproval],
    acting_user_id: int,
    rule: Optional[ApprovalRule]
) -> RuleOutcome:
    # Reaching the last step means every earlier step consented
    return RuleOutcome.APPROVED


def evaluate_percentage(
    chain: Sequence[ExpenseApproval],
    acting_user_id: int,
    rule: Optional[ApprovalRule]
) -> RuleOutcome:
    required = rule.percentage_required if rule else None
    if required is None:
        return RuleOutcome.APPROVED
    if approval_percentage(chain) >= required:
        return RuleOutcome.APPROVED
    return RuleOutcome.STALLED


def evaluate_specific_approver(
    chain: Sequence[ExpenseApproval],
    acting_user_id: int,
    rule: Optional[ApprovalRule]
) -> RuleOutcome:
    if rule and rule.specific_approver_id is not None and acting_user_id == rule.specific_approver_id:
        return RuleOutcome.APPROVED
    return RuleOutcome.STALLED


def evaluate_hybrid(
    chain: Sequence[ExpenseApproval],
    acting_user_id: int,
    rule: Optional[ApprovalRule]
) -> RuleOutcome:
    # A zero or missing threshold leaves the percentage arm unmet
    required = rule.percentage_required if rule else None
    percentage_met = bool(required) and approval_percentage(chain) >= required
    if percentage_met:
        return RuleOutcome.APPROVED
    return evaluate_specific_approver(chain, acting_user_id, rule)


RuleEvaluatorFn = Callable[[Sequence[ExpenseApproval], int, Optional[ApprovalRule]], RuleOutcome]

RULE_EVALUATORS: Dict[RuleType, RuleEvaluatorFn] = {
    RuleType.SEQUENTIAL: evaluate_sequential,
    RuleType.PERCENTAGE: evaluate_percentage,
    RuleType.SPECIFIC_APPROVER: evaluate_specific_approver,
    RuleType.HYBRID: evaluate_hybrid,
}


def evaluate_rule(
    chain: Sequence[ExpenseApproval],
    acting_user_id: int,
    rule: Optional[ApprovalRule]
) -> RuleOutcome:
    """
    Decide the final status of an expense whose last step was just approved.

    Args:
        chain: Full approval chain ordered by step_order
        acting_user_id: Profile ID of the approver who acted last
        rule: Company approval rule, or None when none is configured

    Returns:
        RuleOutcome: APPROVED to finalize, STALLED to leave the expense pending
    """
    rule_type = rule.effective_rule_type if rule else RuleType.SEQUENTIAL
    return RULE_EVALUATORS[rule_type](chain, acting_user_id, rule)
