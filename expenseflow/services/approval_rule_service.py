"""
Approval Rule Service
Loads and saves a company's approval workflow configuration
"""

from typing import List, Optional
from sqlalchemy.orm import Session

from expenseflow.config.database import unit_of_work
from expenseflow.models.approval_rule import ApprovalRule, ApprovalStep, RuleType
from expenseflow.models.profile import Profile, UserRole
from expenseflow.schemas.auth import RequestContext
from expenseflow.schemas.approval_rule import (
    ApprovalRuleUpdate,
    ApprovalRuleResponse,
    ApprovalStepDraft,
    ApprovalStepResponse,
    ApproverOption,
)
from expenseflow.services.validation_service import (
    validation_service,
    PERCENTAGE_RULES,
    SPECIFIC_APPROVER_RULES,
)
from expenseflow.utils.logger import setup_logger, log_audit

logger = setup_logger()


# Step-list editing. Every operation returns a new list numbered 1..N.

def normalize_steps(steps: List[ApprovalStepDraft]) -> List[ApprovalStepDraft]:
    """Renumber steps by list position (1-based)"""
    return [
        ApprovalStepDraft(approver_id=step.approver_id, step_order=i + 1)
        for i, step in enumerate(steps)
    ]


def add_step(steps: List[ApprovalStepDraft], approver_id: Optional[int] = None) -> List[ApprovalStepDraft]:
    """Append a step at the end of the sequence"""
    return normalize_steps(list(steps) + [ApprovalStepDraft(approver_id=approver_id)])


def remove_step(steps: List[ApprovalStepDraft], index: int) -> List[ApprovalStepDraft]:
    """Drop the step at index"""
    return normalize_steps([s for i, s in enumerate(steps) if i != index])


def move_step(steps: List[ApprovalStepDraft], index: int, direction: str) -> List[ApprovalStepDraft]:
    """
    Swap the step at index with its neighbour.
    Moving the first step up or the last step down is a no-op.

    Args:
        steps: Current sequence
        index: Position of the step to move
        direction: "up" or "down"
    """
    if direction not in ("up", "down"):
        raise ValueError("direction must be 'up' or 'down'")

    target = index - 1 if direction == "up" else index + 1
    if index < 0 or index >= len(steps) or target < 0 or target >= len(steps):
        return normalize_steps(steps)

    reordered = list(steps)
    reordered[index], reordered[target] = reordered[target], reordered[index]
    return normalize_steps(reordered)


class ApprovalRuleService:
    """Service for approval rule configuration"""

    def get_rule(self, db: Session, company_id: int) -> Optional[ApprovalRule]:
        return db.query(ApprovalRule).filter(ApprovalRule.company_id == company_id).first()

    def get_configuration(self, db: Session, company_id: int) -> ApprovalRuleResponse:
        """
        Load the company's rule and ordered steps

        Returns:
            ApprovalRuleResponse: Saved configuration, or a sequential default
            with no steps when the company has none yet
        """
        rule = self.get_rule(db, company_id)
        if rule is None:
            return ApprovalRuleResponse(company_id=company_id)

        steps = db.query(ApprovalStep, Profile.email).join(
            Profile, Profile.id == ApprovalStep.approver_id
        ).filter(
            ApprovalStep.approval_rule_id == rule.id
        ).order_by(ApprovalStep.step_order).all()

        return ApprovalRuleResponse(
            id=rule.id,
            company_id=rule.company_id,
            name=rule.name,
            is_manager_approver=rule.is_manager_approver,
            rule_type=rule.effective_rule_type,
            percentage_required=rule.percentage_required,
            specific_approver_id=rule.specific_approver_id,
            steps=[
                ApprovalStepResponse(
                    id=step.id,
                    approver_id=step.approver_id,
                    approver_email=email,
                    step_order=step.step_order
                )
                for step, email in steps
            ]
        )

    def save_configuration(
        self,
        db: Session,
        ctx: RequestContext,
        payload: ApprovalRuleUpdate
    ) -> ApprovalRuleResponse:
        """
        Upsert the company rule and replace its step list.

        Steps without an approver are dropped and the rest renumbered 1..N.
        Rule and steps are written in one transaction.

        Raises:
            ValidationError: If the configuration is invalid
        """
        validation_service.validate_rule_config(db, ctx.company_id, payload)

        rule_type = payload.rule_type
        steps = normalize_steps([s for s in payload.steps if s.approver_id])

        with unit_of_work(db):
            rule = self.get_rule(db, ctx.company_id)
            if rule is None:
                rule = ApprovalRule(company_id=ctx.company_id, name="Default Approval Rule")
                db.add(rule)

            rule.is_manager_approver = payload.is_manager_approver
            rule.rule_type = None if rule_type == RuleType.SEQUENTIAL else rule_type
            rule.percentage_required = payload.percentage_required if rule_type in PERCENTAGE_RULES else None
            rule.specific_approver_id = payload.specific_approver_id if rule_type in SPECIFIC_APPROVER_RULES else None
            # Replacing the collection deletes the old steps (delete-orphan)
            rule.steps = [
                ApprovalStep(approver_id=step.approver_id, step_order=step.step_order)
                for step in steps
            ]

        db.expire_all()

        logger.info(
            f"Approval rules saved for company {ctx.company_id}: "
            f"type={rule_type.value}, manager_first={payload.is_manager_approver}, steps={len(steps)}"
        )
        log_audit(ctx.user_id, "save_approval_rules", f"company={ctx.company_id} steps={len(steps)}")

        return self.get_configuration(db, ctx.company_id)

    def list_approvers(self, db: Session, company_id: int) -> List[ApproverOption]:
        """Managers and admins of the company, ordered by email"""
        profiles = db.query(Profile).filter(
            Profile.company_id == company_id,
            Profile.role.in_([UserRole.MANAGER, UserRole.ADMIN])
        ).order_by(Profile.email).all()

        return [ApproverOption(id=p.id, email=p.email, role=p.role.value) for p in profiles]


# Create singleton instance
approval_rule_service = ApprovalRuleService()
