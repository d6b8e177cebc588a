"""
Expense Schemas - Pydantic V2
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date

from expenseflow.models.expense import ExpenseCategory, ExpenseStatus


class ExpenseCreate(BaseModel):
    """Schema for submitting an expense"""
    amount: float = Field(gt=0, description="Amount must be positive")
    currency: str = Field(min_length=3, max_length=3)
    category: ExpenseCategory
    description: str = Field(min_length=1, max_length=2000)
    expense_date: date

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case"""
        if not v.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return v.upper()

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description is required")
        return v


class ApprovalStepView(BaseModel):
    """One entry of an expense's approval chain"""
    id: int
    approver_id: int
    approver_email: Optional[str] = None
    step_order: int
    status: str
    comments: Optional[str] = None
    action_date: Optional[datetime] = None


class ExpenseResponse(BaseModel):
    """Schema for expense response"""
    id: int
    company_id: int
    employee_id: int
    amount: float
    currency: str
    category: ExpenseCategory
    description: str
    expense_date: date
    status: ExpenseStatus
    is_stalled: bool
    receipt_url: Optional[str] = None
    created_at: datetime
    finalized_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseDetailResponse(ExpenseResponse):
    """Expense with its approval chain ordered by step"""
    employee_email: Optional[str] = None
    approvals: List[ApprovalStepView] = []


class ReceiptScanResponse(BaseModel):
    """Structured guess used to prefill the expense form"""
    amount: float
    currency: str
    category: ExpenseCategory
    description: str
    date: date
    merchant: str
