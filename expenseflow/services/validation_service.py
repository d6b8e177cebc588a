"""
Validation Service
Validates approval configurations and manager assignments against company data
"""

from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from expenseflow.models.approval_rule import RuleType
from expenseflow.models.profile import Profile, UserRole
from expenseflow.schemas.approval_rule import ApprovalRuleUpdate
from expenseflow.utils.exceptions import ValidationError
from expenseflow.utils.logger import setup_logger

logger = setup_logger()

PERCENTAGE_RULES = (RuleType.PERCENTAGE, RuleType.HYBRID)
SPECIFIC_APPROVER_RULES = (RuleType.SPECIFIC_APPROVER, RuleType.HYBRID)


class ValidationService:
    """Service for validating configuration input"""

    def _approvers_by_id(self, db: Session, company_id: int, ids: Iterable[int]) -> dict:
        ids = set(ids)
        if not ids:
            return {}
        profiles = db.query(Profile).filter(
            Profile.id.in_(ids),
            Profile.company_id == company_id
        ).all()
        return {p.id: p for p in profiles}

    def validate_rule_config(self, db: Session, company_id: int, payload: ApprovalRuleUpdate) -> None:
        """
        Validate an approval rule configuration before it is saved

        Args:
            db: Database session
            company_id: Company owning the rule
            payload: Submitted configuration

        Raises:
            ValidationError: Describing the first violation found
        """
        rule_type = payload.rule_type

        if rule_type in PERCENTAGE_RULES:
            if payload.percentage_required is None:
                raise ValidationError(f"percentage_required is required for {rule_type.value} rules")
            if not 0 <= payload.percentage_required <= 100:
                raise ValidationError("percentage_required must be between 0 and 100")

        if rule_type in SPECIFIC_APPROVER_RULES and payload.specific_approver_id is None:
            raise ValidationError(f"specific_approver_id is required for {rule_type.value} rules")

        approver_ids: List[int] = [s.approver_id for s in payload.steps if s.approver_id]
        if rule_type in SPECIFIC_APPROVER_RULES:
            approver_ids.append(payload.specific_approver_id)

        known = self._approvers_by_id(db, company_id, approver_ids)
        for approver_id in approver_ids:
            profile = known.get(approver_id)
            if profile is None:
                raise ValidationError(f"Approver {approver_id} does not belong to this company")
            if not profile.can_be_approver:
                raise ValidationError(f"{profile.email} is not a manager or admin and cannot approve expenses")

        logger.info(
            f"Approval rule validated for company {company_id}: "
            f"type={rule_type.value}, steps={len(approver_ids)}"
        )

    def validate_manager_assignment(
        self,
        db: Session,
        company_id: int,
        manager_id: Optional[int],
        user_id: Optional[int] = None
    ) -> None:
        """
        Validate that manager_id names a manager of the same company

        Raises:
            ValidationError: If the assignment is not allowed
        """
        if manager_id is None:
            return

        if user_id is not None and manager_id == user_id:
            raise ValidationError("A user cannot be their own manager")

        manager = db.query(Profile).filter(
            Profile.id == manager_id,
            Profile.company_id == company_id
        ).first()

        if manager is None:
            raise ValidationError(f"Manager {manager_id} does not belong to this company")
        if manager.role != UserRole.MANAGER:
            raise ValidationError(f"{manager.email} is not a manager")


# Create singleton instance
validation_service = ValidationService()
