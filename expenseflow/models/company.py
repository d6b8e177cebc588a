"""
Company Model
A tenant: every profile, expense and approval rule belongs to one company
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from expenseflow.config.database import Base


class Company(Base):
    """Company model"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    country = Column(String, nullable=False)
    default_currency = Column(String(3), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    profiles = relationship("Profile", back_populates="company")
    expenses = relationship("Expense", back_populates="company")
    approval_rule = relationship("ApprovalRule", back_populates="company", uselist=False)

    def __repr__(self):
        return f"<Company {self.name} ({self.default_currency})>"
