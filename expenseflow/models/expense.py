"""
Expense Model
Represents expense claims submitted by employees
"""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expenseflow.config.database import Base


class ExpenseCategory(str, enum.Enum):
    """Expense categories"""
    TRAVEL = "travel"
    FOOD = "food"
    SUPPLIES = "supplies"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


class ExpenseStatus(str, enum.Enum):
    """Expense status: pending -> approved | rejected"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Expense(Base):
    """Expense model"""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    # Expense details
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    category = Column(
        Enum(ExpenseCategory, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    description = Column(Text, nullable=False)
    expense_date = Column(Date, nullable=False)
    receipt_url = Column(String, nullable=True)

    # Workflow
    status = Column(
        Enum(ExpenseStatus, values_callable=lambda e: [m.value for m in e]),
        default=ExpenseStatus.PENDING,
        nullable=False
    )
    # Chain exhausted (or empty) without a final decision
    is_stalled = Column(Boolean, default=False, nullable=False)

    # Optimistic concurrency: every transition bumps this
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    finalized_at = Column(DateTime, nullable=True)

    # Relationships
    company = relationship("Company", back_populates="expenses")
    employee = relationship("Profile", back_populates="expenses", foreign_keys=[employee_id])
    approvals = relationship(
        "ExpenseApproval",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseApproval.step_order"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Expense {self.id} - {self.category.value} - {self.status.value}>"

    @property
    def is_finalized(self) -> bool:
        return self.status in [ExpenseStatus.APPROVED, ExpenseStatus.REJECTED]
