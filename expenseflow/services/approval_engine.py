"""
Approval Engine
Materializes approval chains and advances them on approve/reject
"""

from datetime import datetime
from typing import List, NamedTuple, Optional
from sqlalchemy.orm import Session

from expenseflow.config.database import unit_of_work
from expenseflow.config.settings import settings
from expenseflow.models.approval_rule import ApprovalRule
from expenseflow.models.expense import Expense, ExpenseStatus
from expenseflow.models.expense_approval import ExpenseApproval, ApprovalStatus
from expenseflow.models.profile import Profile
from expenseflow.schemas.auth import RequestContext
from expenseflow.services.rule_evaluator import RuleOutcome, evaluate_rule
from expenseflow.utils.exceptions import NotFoundError, AlreadyActionedError
from expenseflow.utils.logger import setup_logger, log_audit

logger = setup_logger()


class TransitionResult(NamedTuple):
    """What a single approve/reject changed"""
    expense: Expense
    approval: ExpenseApproval
    activated_step: Optional[ExpenseApproval] = None
    outcome: Optional[RuleOutcome] = None


class ApprovalEngine:
    """Approval-routing state machine"""

    def build_chain(self, rule: Optional[ApprovalRule], manager_id: Optional[int]) -> List[ExpenseApproval]:
        """
        Build (unsaved) approval records from the company rule template.

        The manager step sits at step_order 0 and is the only pending record
        when present; otherwise the first configured step is pending. All
        later records start waiting.

        Args:
            rule: Company approval rule, or None
            manager_id: Submitter's direct manager, or None

        Returns:
            List[ExpenseApproval]: Records ordered by step_order
        """
        if rule is None:
            return []

        records: List[ExpenseApproval] = []

        has_manager_step = bool(rule.is_manager_approver and manager_id)
        if has_manager_step:
            records.append(ExpenseApproval(
                approver_id=manager_id,
                step_order=0,
                status=ApprovalStatus.PENDING
            ))

        offset = 1 if has_manager_step else 0
        for step in sorted(rule.steps, key=lambda s: s.step_order):
            records.append(ExpenseApproval(
                approver_id=step.approver_id,
                step_order=step.step_order + offset,
                status=ApprovalStatus.PENDING if not records else ApprovalStatus.WAITING
            ))

        return records

    def materialize_chain(self, db: Session, expense: Expense, employee: Profile) -> List[ExpenseApproval]:
        """
        Attach the approval chain to a freshly created expense.
        Must run inside the caller's unit of work so expense and chain
        commit together.

        Args:
            db: Database session
            expense: New expense (added to the session)
            employee: Submitting profile

        Returns:
            List[ExpenseApproval]: The created records
        """
        rule = db.query(ApprovalRule).filter(
            ApprovalRule.company_id == expense.company_id
        ).first()

        chain = self.build_chain(rule, employee.manager_id)
        expense.approvals.extend(chain)

        if not chain:
            if settings.AUTO_APPROVE_WITHOUT_RULE:
                expense.status = ExpenseStatus.APPROVED
                expense.finalized_at = datetime.utcnow()
                logger.info(f"Expense from {employee.email} auto-approved: no approval steps configured")
            else:
                expense.is_stalled = True
                logger.warning(
                    f"Expense from {employee.email} has no approval steps "
                    f"(company {expense.company_id}); it will stay pending"
                )
        else:
            logger.info(
                f"Materialized {len(chain)} approval step(s) for expense from {employee.email}: "
                f"{[(a.step_order, a.approver_id, a.status.value) for a in chain]}"
            )

        return chain

    def _lock_expense(self, db: Session, ctx: RequestContext, expense_id: int) -> Expense:
        expense = db.query(Expense).filter(
            Expense.id == expense_id
        ).with_for_update().first()

        if not expense or expense.company_id != ctx.company_id:
            raise NotFoundError("Expense not found")

        return expense

    def _actionable_record(self, db: Session, ctx: RequestContext, expense: Expense) -> ExpenseApproval:
        records = db.query(ExpenseApproval).filter(
            ExpenseApproval.expense_id == expense.id,
            ExpenseApproval.approver_id == ctx.user_id
        ).order_by(ExpenseApproval.step_order).all()

        if not records:
            raise NotFoundError("You have no approval step on this expense")

        if expense.is_finalized:
            raise AlreadyActionedError(f"Expense has already been {expense.status.value}")

        for record in records:
            if record.status == ApprovalStatus.PENDING:
                return record

        raise AlreadyActionedError(
            f"Your approval step is {records[0].status.value}, not pending"
        )

    def approve(
        self,
        db: Session,
        ctx: RequestContext,
        expense_id: int,
        comments: Optional[str] = None
    ) -> TransitionResult:
        """
        Approve the caller's pending step and advance the chain.

        Activates the next waiting step, or, when the approved step was the
        last one, evaluates the company rule to finalize the expense.

        Raises:
            NotFoundError: No such expense, or the caller has no step on it
            AlreadyActionedError: The caller's step or the expense is closed
            ConcurrentTransitionError: Another transition won the race
        """
        with unit_of_work(db):
            expense = self._lock_expense(db, ctx, expense_id)
            record = self._actionable_record(db, ctx, expense)
            now = datetime.utcnow()

            record.status = ApprovalStatus.APPROVED
            record.comments = comments
            record.action_date = now
            db.flush()

            chain = db.query(ExpenseApproval).filter(
                ExpenseApproval.expense_id == expense.id
            ).order_by(ExpenseApproval.step_order).all()

            position = next(i for i, a in enumerate(chain) if a.id == record.id)
            next_record = chain[position + 1] if position + 1 < len(chain) else None

            activated = None
            outcome = None

            if next_record is not None:
                if next_record.status == ApprovalStatus.WAITING:
                    next_record.status = ApprovalStatus.PENDING
                    activated = next_record
            else:
                rule = db.query(ApprovalRule).filter(
                    ApprovalRule.company_id == expense.company_id
                ).first()
                outcome = evaluate_rule(chain, ctx.user_id, rule)

                if outcome == RuleOutcome.APPROVED:
                    expense.status = ExpenseStatus.APPROVED
                    expense.finalized_at = now
                    expense.is_stalled = False
                else:
                    expense.is_stalled = True

            # Always touch the expense so the version check guards the transition
            expense.updated_at = now

        if activated is not None:
            logger.info(
                f"Expense {expense_id}: step {record.step_order} approved by {ctx.email}; "
                f"step {activated.step_order} now pending"
            )
        elif outcome == RuleOutcome.APPROVED:
            logger.info(f"Expense {expense_id}: final step approved by {ctx.email}; expense approved")
        elif outcome == RuleOutcome.STALLED:
            logger.warning(
                f"Expense {expense_id}: chain exhausted but rule not satisfied; "
                f"expense stays pending"
            )

        log_audit(ctx.user_id, "approve_expense", f"expense={expense_id} step={record.step_order}")

        return TransitionResult(expense=expense, approval=record, activated_step=activated, outcome=outcome)

    def reject(
        self,
        db: Session,
        ctx: RequestContext,
        expense_id: int,
        comments: Optional[str] = None
    ) -> TransitionResult:
        """
        Reject the caller's pending step; the expense becomes rejected.
        No other approval record changes.
        """
        with unit_of_work(db):
            expense = self._lock_expense(db, ctx, expense_id)
            record = self._actionable_record(db, ctx, expense)
            now = datetime.utcnow()

            record.status = ApprovalStatus.REJECTED
            record.comments = comments
            record.action_date = now

            expense.status = ExpenseStatus.REJECTED
            expense.finalized_at = now
            expense.is_stalled = False
            expense.updated_at = now

        logger.info(f"Expense {expense_id}: rejected at step {record.step_order} by {ctx.email}")
        log_audit(ctx.user_id, "reject_expense", f"expense={expense_id} step={record.step_order}")

        return TransitionResult(expense=expense, approval=record)


# Create singleton instance
approval_engine = ApprovalEngine()
