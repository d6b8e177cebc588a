"""
Database models
Importing this package registers every table on Base.metadata
"""

from expenseflow.models.company import Company
from expenseflow.models.profile import Profile, UserRole
from expenseflow.models.approval_rule import ApprovalRule, ApprovalStep, RuleType
from expenseflow.models.expense import Expense, ExpenseStatus, ExpenseCategory
from expenseflow.models.expense_approval import ExpenseApproval, ApprovalStatus

__all__ = [
    "Company",
    "Profile",
    "UserRole",
    "ApprovalRule",
    "ApprovalStep",
    "RuleType",
    "Expense",
    "ExpenseStatus",
    "ExpenseCategory",
    "ExpenseApproval",
    "ApprovalStatus",
]
