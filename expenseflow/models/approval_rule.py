"""
Approval Rule Models
The per-company template: ordered approvers plus the final aggregation rule
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expenseflow.config.database import Base


class RuleType(str, enum.Enum):
    """
    Aggregation policy applied once the last step is approved.
    SEQUENTIAL is stored as NULL in approval_rules.rule_type.
    """
    SEQUENTIAL = "sequential"
    PERCENTAGE = "percentage"
    SPECIFIC_APPROVER = "specific_approver"
    HYBRID = "hybrid"


class ApprovalRule(Base):
    """Approval rule model (at most one per company)"""
    __tablename__ = "approval_rules"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, unique=True, index=True)
    name = Column(String, nullable=False, default="Default Approval Rule")

    is_manager_approver = Column(Boolean, default=False, nullable=False)
    rule_type = Column(
        Enum(RuleType, values_callable=lambda e: [m.value for m in e]),
        nullable=True
    )
    percentage_required = Column(Float, nullable=True)
    specific_approver_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="approval_rule")
    specific_approver = relationship("Profile", foreign_keys=[specific_approver_id])
    steps = relationship(
        "ApprovalStep",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.step_order"
    )

    def __repr__(self):
        return f"<ApprovalRule company={self.company_id} type={self.effective_rule_type.value}>"

    @property
    def effective_rule_type(self) -> RuleType:
        """Rule type with NULL read as sequential"""
        return self.rule_type or RuleType.SEQUENTIAL


class ApprovalStep(Base):
    """One approver position in the rule template"""
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True, index=True)
    approval_rule_id = Column(Integer, ForeignKey("approval_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    step_order = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    rule = relationship("ApprovalRule", back_populates="steps")
    approver = relationship("Profile", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<ApprovalStep {self.step_order} -> Profile {self.approver_id}>"
