"""
Profile Model
One profile per authenticated identity, with a fixed role inside its company
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from expenseflow.config.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Profile(Base):
    """Profile (user) model"""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    role = Column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.EMPLOYEE,
        nullable=False
    )

    # Direct manager (employee -> manager)
    manager_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    company = relationship("Company", back_populates="profiles")
    manager = relationship("Profile", remote_side=[id], foreign_keys=[manager_id])
    expenses = relationship("Expense", back_populates="employee", foreign_keys="Expense.employee_id")
    approvals = relationship("ExpenseApproval", back_populates="approver")

    def __repr__(self):
        return f"<Profile {self.email} ({self.role.value})>"

    def has_permission(self, permission: str) -> bool:
        """Check if profile has specific permission"""
        permission_map = {
            "submit_expense": self.role in [UserRole.EMPLOYEE, UserRole.MANAGER],
            "approve_expense": self.role in [UserRole.MANAGER, UserRole.ADMIN],
            "manage_users": self.role == UserRole.ADMIN,
            "configure_approval_rules": self.role == UserRole.ADMIN,
        }
        return permission_map.get(permission, False)

    @property
    def can_be_approver(self) -> bool:
        """Managers and admins may sit in an approval chain"""
        return self.role in [UserRole.MANAGER, UserRole.ADMIN]
