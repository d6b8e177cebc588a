"""
Admin Routes
User management and approval workflow configuration
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from expenseflow.config.database import get_db, unit_of_work
from expenseflow.models.profile import Profile, UserRole
from expenseflow.schemas.approval_rule import (
    ApprovalRuleUpdate,
    ApprovalRuleResponse,
    ApprovalStepDraft,
    ApproverOption,
    StepAdd,
    StepMove,
    StepRemove,
)
from expenseflow.schemas.expense import ExpenseResponse
from expenseflow.schemas.user import UserCreate, UserUpdate, UserResponse
from expenseflow.services.approval_rule_service import approval_rule_service, add_step, remove_step, move_step
from expenseflow.services.auth_service import auth_service
from expenseflow.services.expense_service import expense_service
from expenseflow.services.validation_service import validation_service
from expenseflow.utils.logger import setup_logger, log_audit
from expenseflow.utils.security import get_password_hash

logger = setup_logger()
router = APIRouter()

require_admin = auth_service.require_role("admin")


# ============================================
# USER MANAGEMENT
# ============================================

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Employees and managers of the company, newest first"""
    return db.query(Profile).filter(
        Profile.company_id == current_user.company_id,
        Profile.role != UserRole.ADMIN
    ).order_by(Profile.created_at.desc(), Profile.id.desc()).all()


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Create an employee or manager in the admin's company"""
    email = payload.email.lower()

    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    validation_service.validate_manager_assignment(db, current_user.company_id, payload.manager_id)

    with unit_of_work(db):
        profile = Profile(
            company_id=current_user.company_id,
            email=email,
            hashed_password=get_password_hash(payload.password),
            role=UserRole(payload.role.value),
            manager_id=payload.manager_id
        )
        db.add(profile)

    db.refresh(profile)

    logger.info(f"User {profile.email} ({profile.role.value}) created by {current_user.email}")
    log_audit(current_user.id, "create_user", f"user={profile.id} role={profile.role.value}")

    return profile


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Change a user's role and direct manager"""
    profile = db.query(Profile).filter(
        Profile.id == user_id,
        Profile.company_id == current_user.company_id
    ).first()

    if not profile or profile.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    validation_service.validate_manager_assignment(db, current_user.company_id, payload.manager_id, user_id=profile.id)

    with unit_of_work(db):
        profile.role = UserRole(payload.role.value)
        profile.manager_id = payload.manager_id

    db.refresh(profile)

    logger.info(f"User {profile.email} updated by {current_user.email}: role={profile.role.value}, manager={profile.manager_id}")
    log_audit(current_user.id, "update_user", f"user={profile.id} role={profile.role.value} manager={profile.manager_id}")

    return profile


# ============================================
# APPROVAL WORKFLOW CONFIGURATION
# ============================================

@router.get("/approvers", response_model=List[ApproverOption])
async def list_approvers(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Managers and admins who can be placed in the approval sequence"""
    return approval_rule_service.list_approvers(db, current_user.company_id)


@router.get("/approval-rules", response_model=ApprovalRuleResponse)
async def get_approval_rules(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Current approval workflow configuration"""
    return approval_rule_service.get_configuration(db, current_user.company_id)


@router.put("/approval-rules", response_model=ApprovalRuleResponse)
async def save_approval_rules(
    payload: ApprovalRuleUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Replace the approval workflow configuration"""
    ctx = auth_service.context_for(current_user)
    return approval_rule_service.save_configuration(db, ctx, payload)


# Step-list editing for the configuration form. Nothing is saved until
# PUT /approval-rules.

@router.post("/approval-rules/steps/add", response_model=List[ApprovalStepDraft])
async def add_approval_step(
    payload: StepAdd,
    current_user: Profile = Depends(require_admin)
):
    """Append a step (optionally with an approver) to the edited sequence"""
    return add_step(payload.steps, payload.approver_id)


@router.post("/approval-rules/steps/remove", response_model=List[ApprovalStepDraft])
async def remove_approval_step(
    payload: StepRemove,
    current_user: Profile = Depends(require_admin)
):
    return remove_step(payload.steps, payload.index)


@router.post("/approval-rules/steps/move", response_model=List[ApprovalStepDraft])
async def move_approval_step(
    payload: StepMove,
    current_user: Profile = Depends(require_admin)
):
    """Move a step up or down; moving past either end changes nothing"""
    return move_step(payload.steps, payload.index, payload.direction)


# ============================================
# COMPANY EXPENSES
# ============================================

@router.get("/expenses")
async def list_company_expenses(
    status_filter: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """All company expenses, optionally filtered by status"""
    if status_filter and status_filter not in ("pending", "approved", "rejected"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="status_filter must be pending, approved or rejected"
        )

    ctx = auth_service.context_for(current_user)
    expenses = expense_service.list_company_expenses(db, ctx, status_filter)
    return {
        "expenses": [ExpenseResponse.model_validate(e) for e in expenses],
        "count": len(expenses)
    }
