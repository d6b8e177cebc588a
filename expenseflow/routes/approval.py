"""
Approval Routes
Approver inbox and approve/reject actions
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expenseflow.config.database import get_db
from expenseflow.models.profile import Profile
from expenseflow.schemas.approval import ApprovalAction, ApprovalResponse, ApprovalResult, PendingApprovalItem
from expenseflow.schemas.expense import ExpenseResponse
from expenseflow.services.approval_engine import approval_engine, TransitionResult
from expenseflow.services.auth_service import auth_service
from expenseflow.services.currency_service import currency_service
from expenseflow.services.expense_service import expense_service
from expenseflow.utils.exceptions import ExternalServiceError
from expenseflow.utils.helpers import round_money
from expenseflow.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def _result(result: TransitionResult, message: str) -> ApprovalResult:
    return ApprovalResult(
        message=message,
        expense=ExpenseResponse.model_validate(result.expense),
        approval=ApprovalResponse.model_validate(result.approval),
        activated_step=ApprovalResponse.model_validate(result.activated_step) if result.activated_step else None,
        outcome=result.outcome.value if result.outcome else None
    )


@router.get("/pending")
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(auth_service.require_permission("approve_expense"))
):
    """
    Expenses waiting on the caller's decision

    Amounts in a foreign currency are converted into the company currency
    for display. A failed conversion leaves converted_amount empty.
    """
    ctx = auth_service.context_for(current_user)
    company_currency = expense_service.company_currency(db, ctx.company_id)
    rows = expense_service.pending_for_approver(db, ctx)

    items = []
    for approval, expense, employee_email in rows:
        converted = None
        if expense.currency != company_currency:
            try:
                converted = round_money(
                    await currency_service.convert(expense.amount, expense.currency, company_currency)
                )
            except ExternalServiceError as e:
                logger.warning(f"Could not convert expense {expense.id} to {company_currency}: {e.message}")

        items.append(PendingApprovalItem(
            approval=ApprovalResponse.model_validate(approval),
            expense=ExpenseResponse.model_validate(expense),
            employee_email=employee_email,
            converted_amount=converted,
            company_currency=company_currency
        ))

    return {
        "approvals": items,
        "count": len(items)
    }


@router.post("/{expense_id}/approve", response_model=ApprovalResult)
async def approve_expense(
    expense_id: int,
    approval_data: ApprovalAction,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(auth_service.require_permission("approve_expense"))
):
    """Approve the caller's pending step on an expense"""
    logger.info(f"{current_user.email} approving expense {expense_id}")
    ctx = auth_service.context_for(current_user)
    result = approval_engine.approve(db, ctx, expense_id, approval_data.comments)
    return _result(result, "Expense approved successfully")


@router.post("/{expense_id}/reject", response_model=ApprovalResult)
async def reject_expense(
    expense_id: int,
    approval_data: ApprovalAction,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(auth_service.require_permission("approve_expense"))
):
    """Reject an expense at the caller's pending step"""
    logger.info(f"{current_user.email} rejecting expense {expense_id}")
    ctx = auth_service.context_for(current_user)
    result = approval_engine.reject(db, ctx, expense_id, approval_data.comments)
    return _result(result, "Expense rejected")
