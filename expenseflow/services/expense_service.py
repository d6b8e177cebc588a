"""
Expense Service
Business logic for expense submission and viewing
"""

from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from expenseflow.config.database import unit_of_work
from expenseflow.models.company import Company
from expenseflow.models.expense import Expense, ExpenseStatus, ExpenseCategory
from expenseflow.models.expense_approval import ExpenseApproval, ApprovalStatus
from expenseflow.models.profile import Profile, UserRole
from expenseflow.schemas.auth import RequestContext
from expenseflow.schemas.expense import ExpenseCreate, ExpenseResponse, ExpenseDetailResponse, ApprovalStepView
from expenseflow.services.approval_engine import approval_engine
from expenseflow.utils.exceptions import NotFoundError
from expenseflow.utils.helpers import format_currency
from expenseflow.utils.logger import setup_logger, log_audit

logger = setup_logger()


class ExpenseService:
    """Service for expense-related business logic"""

    def __init__(self):
        """Initialize with dependent services"""
        self.approval_engine = approval_engine

    def submit_expense(self, db: Session, ctx: RequestContext, data: ExpenseCreate) -> Expense:
        """
        Create an expense and materialize its approval chain atomically

        Args:
            db: Database session
            ctx: Acting employee
            data: Validated expense fields

        Returns:
            Expense: The saved expense (status pending unless auto-approved)
        """
        employee = db.query(Profile).filter(Profile.id == ctx.user_id).first()
        if employee is None:
            raise NotFoundError("Profile not found")

        with unit_of_work(db):
            expense = Expense(
                company_id=ctx.company_id,
                employee_id=employee.id,
                amount=data.amount,
                currency=data.currency,
                category=ExpenseCategory(data.category.value),
                description=data.description,
                expense_date=data.expense_date,
                status=ExpenseStatus.PENDING
            )
            db.add(expense)
            db.flush()

            self.approval_engine.materialize_chain(db, expense, employee)

        db.refresh(expense)

        logger.info(
            f"Expense {expense.id} submitted by {employee.email}: "
            f"{format_currency(expense.amount, expense.currency)} ({expense.category.value})"
        )
        log_audit(ctx.user_id, "submit_expense", f"expense={expense.id} amount={expense.amount} {expense.currency}")

        return expense

    def list_my_expenses(self, db: Session, ctx: RequestContext) -> List[Expense]:
        """Caller's own expenses, newest first"""
        return db.query(Expense).filter(
            Expense.employee_id == ctx.user_id
        ).order_by(Expense.created_at.desc(), Expense.id.desc()).all()

    def list_company_expenses(self, db: Session, ctx: RequestContext, status: Optional[str] = None) -> List[Expense]:
        """All expenses of the caller's company, optionally filtered by status"""
        query = db.query(Expense).filter(Expense.company_id == ctx.company_id)
        if status:
            query = query.filter(Expense.status == ExpenseStatus(status))
        return query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()

    def get_chain(self, db: Session, expense_id: int) -> List[Tuple[ExpenseApproval, str]]:
        """Approval chain ordered by step_order, each record with approver email"""
        return db.query(ExpenseApproval, Profile.email).join(
            Profile, Profile.id == ExpenseApproval.approver_id
        ).filter(
            ExpenseApproval.expense_id == expense_id
        ).order_by(ExpenseApproval.step_order).all()

    def get_expense_detail(self, db: Session, ctx: RequestContext, expense_id: int) -> ExpenseDetailResponse:
        """
        Expense with its approval chain

        Visible to the submitter, approvers on the chain and company admins.

        Raises:
            NotFoundError: If the expense is missing or not visible to the caller
        """
        expense = db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.company_id == ctx.company_id
        ).first()

        if not expense:
            raise NotFoundError("Expense not found")

        chain = self.get_chain(db, expense.id)
        approver_ids = {record.approver_id for record, _ in chain}

        visible = (
            expense.employee_id == ctx.user_id
            or ctx.role == UserRole.ADMIN
            or ctx.user_id in approver_ids
        )
        if not visible:
            raise NotFoundError("Expense not found")

        return ExpenseDetailResponse(
            **ExpenseResponse.model_validate(expense).model_dump(),
            employee_email=expense.employee.email if expense.employee else None,
            approvals=[
                ApprovalStepView(
                    id=record.id,
                    approver_id=record.approver_id,
                    approver_email=email,
                    step_order=record.step_order,
                    status=record.status.value,
                    comments=record.comments,
                    action_date=record.action_date
                )
                for record, email in chain
            ]
        )

    def pending_for_approver(self, db: Session, ctx: RequestContext) -> List[Tuple[ExpenseApproval, Expense, str]]:
        """
        Actionable records of the caller, newest first

        Returns:
            List of (approval, expense, employee email)
        """
        return db.query(ExpenseApproval, Expense, Profile.email).join(
            Expense, Expense.id == ExpenseApproval.expense_id
        ).join(
            Profile, Profile.id == Expense.employee_id
        ).filter(
            ExpenseApproval.approver_id == ctx.user_id,
            ExpenseApproval.status == ApprovalStatus.PENDING,
            Expense.status == ExpenseStatus.PENDING
        ).order_by(ExpenseApproval.created_at.desc(), ExpenseApproval.id.desc()).all()

    def company_currency(self, db: Session, company_id: int) -> str:
        company = db.query(Company).filter(Company.id == company_id).first()
        if company is None:
            raise NotFoundError("Company not found")
        return company.default_currency


# Create singleton instance
expense_service = ExpenseService()
