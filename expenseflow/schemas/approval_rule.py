"""
Approval Rule Schemas
Pydantic models for the approval workflow configuration
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional, List

from expenseflow.models.approval_rule import RuleType


class ApprovalStepDraft(BaseModel):
    """A step as edited in the configuration form (approver may be unset)"""
    approver_id: Optional[int] = None
    step_order: int = Field(1, ge=1)


class StepAdd(BaseModel):
    """Append a step to the edited sequence"""
    steps: List[ApprovalStepDraft] = []
    approver_id: Optional[int] = None


class StepRemove(BaseModel):
    """Drop the step at index"""
    steps: List[ApprovalStepDraft]
    index: int = Field(..., ge=0)


class StepMove(BaseModel):
    """Swap the step at index with its neighbour"""
    steps: List[ApprovalStepDraft]
    index: int = Field(..., ge=0)
    direction: Literal["up", "down"]


class ApprovalRuleUpdate(BaseModel):
    """Full replacement of a company's approval configuration"""
    is_manager_approver: bool = False
    rule_type: RuleType = RuleType.SEQUENTIAL
    percentage_required: Optional[float] = None
    specific_approver_id: Optional[int] = None
    steps: List[ApprovalStepDraft] = []


class ApprovalStepResponse(BaseModel):
    """Saved step with approver email"""
    id: Optional[int] = None
    approver_id: int
    approver_email: Optional[str] = None
    step_order: int


class ApprovalRuleResponse(BaseModel):
    """Company approval configuration"""
    id: Optional[int] = None
    company_id: int
    name: str = "Default Approval Rule"
    is_manager_approver: bool = False
    rule_type: RuleType = RuleType.SEQUENTIAL
    percentage_required: Optional[float] = None
    specific_approver_id: Optional[int] = None
    steps: List[ApprovalStepResponse] = []


class ApproverOption(BaseModel):
    """A manager or admin eligible to sit in the chain"""
    id: int
    email: str
    role: str
