"""
Expense Approval Model
The per-expense approval chain, materialized from the rule template at submission
"""

from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expenseflow.config.database import Base


class ApprovalStatus(str, enum.Enum):
    """Approval record status: waiting -> pending -> approved | rejected"""
    WAITING = "waiting"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExpenseApproval(Base):
    """One step of an expense's approval chain"""
    __tablename__ = "expense_approvals"
    __table_args__ = (
        UniqueConstraint("expense_id", "step_order", name="uq_expense_approvals_expense_step"),
    )

    id = Column(Integer, primary_key=True, index=True)

    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)

    status = Column(
        Enum(ApprovalStatus, values_callable=lambda e: [m.value for m in e]),
        default=ApprovalStatus.WAITING,
        nullable=False
    )
    comments = Column(Text, nullable=True)
    action_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    expense = relationship("Expense", back_populates="approvals")
    approver = relationship("Profile", back_populates="approvals", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<ExpenseApproval expense={self.expense_id} step={self.step_order} {self.status.value}>"
