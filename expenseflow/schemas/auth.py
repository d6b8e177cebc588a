"""
Authentication Schemas
Pydantic models for authentication requests and responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from expenseflow.models.profile import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class SignupRequest(BaseModel):
    """Company sign-up: creates the company and its first admin"""
    company_name: str = Field(..., min_length=1, max_length=200)
    country: str = Field(..., min_length=1)
    default_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)


class RequestContext(BaseModel):
    """Who is acting, for which company, with which role"""
    user_id: int
    company_id: int
    role: UserRole
    email: str
