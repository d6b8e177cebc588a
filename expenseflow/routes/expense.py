"""
Expense Routes
Submission, listing, detail and receipt scanning
"""

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from expenseflow.config.database import get_db
from expenseflow.models.profile import Profile
from expenseflow.schemas.auth import RequestContext
from expenseflow.schemas.expense import ExpenseCreate, ExpenseResponse, ExpenseDetailResponse, ReceiptScanResponse
from expenseflow.services.auth_service import auth_service
from expenseflow.services.expense_service import expense_service
from expenseflow.services.ocr_service import ocr_service
from expenseflow.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.post("", response_model=ExpenseDetailResponse, status_code=status.HTTP_201_CREATED)
async def submit_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(auth_service.require_permission("submit_expense"))
):
    """
    Submit an expense claim

    The approval chain is created from the company's approval rule in the
    same transaction as the expense.
    """
    ctx = auth_service.context_for(current_user)
    expense = expense_service.submit_expense(db, ctx, payload)
    return expense_service.get_expense_detail(db, ctx, expense.id)


@router.get("/my-expenses")
async def get_my_expenses(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(auth_service.get_request_context)
):
    """Caller's expenses, newest first"""
    expenses = expense_service.list_my_expenses(db, ctx)
    return {
        "expenses": [ExpenseResponse.model_validate(e) for e in expenses],
        "count": len(expenses)
    }


@router.post("/ocr", response_model=ReceiptScanResponse)
async def scan_receipt(
    receipt: UploadFile = File(...),
    current_user: Profile = Depends(auth_service.get_current_user)
):
    """Scan a receipt and return a guess to prefill the expense form"""
    logger.info(f"Receipt scan requested by {current_user.email}: {receipt.filename}")
    return await ocr_service.scan_receipt(receipt)


@router.get("/{expense_id}", response_model=ExpenseDetailResponse)
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(auth_service.get_request_context)
):
    """Expense detail with its approval chain"""
    return expense_service.get_expense_detail(db, ctx, expense_id)
