"""
Profile Schemas
Pydantic models for user (profile) requests and responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from expenseflow.models.profile import UserRole


class ManagedRoleEnum(str, Enum):
    """Roles an admin may assign"""
    MANAGER = "manager"
    EMPLOYEE = "employee"


class UserCreate(BaseModel):
    """Schema for an admin creating a user"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    role: ManagedRoleEnum = ManagedRoleEnum.EMPLOYEE
    manager_id: Optional[int] = None


class UserUpdate(BaseModel):
    """Schema for an admin editing a user's role and manager"""
    role: ManagedRoleEnum
    manager_id: Optional[int] = None


class UserResponse(BaseModel):
    """Schema for profile response"""
    id: int
    company_id: int
    email: str
    role: UserRole
    manager_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CompanyResponse(BaseModel):
    """Schema for company response"""
    id: int
    name: str
    country: str
    default_currency: str
    created_at: datetime

    class Config:
        from_attributes = True


class MeResponse(BaseModel):
    """Current profile together with its company"""
    profile: UserResponse
    company: CompanyResponse
