"""
Approval Schemas
Pydantic models for approval actions and the approver inbox
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from expenseflow.models.expense_approval import ApprovalStatus
from expenseflow.schemas.expense import ExpenseResponse


class ApprovalAction(BaseModel):
    """Schema for approving or rejecting"""
    comments: Optional[str] = None


class ApprovalResponse(BaseModel):
    """Schema for approval record response"""
    id: int
    expense_id: int
    approver_id: int
    step_order: int
    status: ApprovalStatus
    comments: Optional[str] = None
    action_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalResult(BaseModel):
    """Outcome of an approve/reject transition"""
    success: bool = True
    message: str
    expense: ExpenseResponse
    approval: ApprovalResponse
    activated_step: Optional[ApprovalResponse] = None
    outcome: Optional[str] = None


class PendingApprovalItem(BaseModel):
    """One actionable record in the approver inbox"""
    approval: ApprovalResponse
    expense: ExpenseResponse
    employee_email: Optional[str] = None
    converted_amount: Optional[float] = None
    company_currency: str
