"""
Authentication Routes
Company sign-up, login, logout and current profile
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from expenseflow.config.database import get_db, unit_of_work
from expenseflow.models.company import Company
from expenseflow.models.profile import Profile, UserRole
from expenseflow.schemas.auth import Token, SignupRequest
from expenseflow.schemas.user import MeResponse, UserResponse, CompanyResponse
from expenseflow.services.auth_service import auth_service
from expenseflow.services.currency_service import currency_service
from expenseflow.utils.security import get_password_hash
from expenseflow.utils.logger import setup_logger, log_audit

logger = setup_logger()
router = APIRouter()


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    """
    Create a company and its first admin profile

    When no default currency is given it is looked up from the country.
    """
    email = payload.email.lower()

    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    currency = payload.default_currency
    if not currency:
        currency = await currency_service.currency_for_country(payload.country)

    with unit_of_work(db):
        company = Company(
            name=payload.company_name.strip(),
            country=payload.country.strip(),
            default_currency=currency.upper()
        )
        db.add(company)
        db.flush()

        admin = Profile(
            company_id=company.id,
            email=email,
            hashed_password=get_password_hash(payload.password),
            role=UserRole.ADMIN
        )
        db.add(admin)

    db.refresh(admin)

    logger.info(f"Company '{company.name}' ({company.default_currency}) created by {admin.email}")
    log_audit(admin.id, "signup", f"company={company.id}")

    return auth_service.create_tokens(admin)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Sign in with email (as username) and password"""
    profile = auth_service.authenticate_user(db, form_data.username, form_data.password)

    if not profile:
        logger.warning(f"Failed login attempt for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    log_audit(profile.id, "login", profile.email)
    return auth_service.create_tokens(profile)


@router.post("/logout")
async def logout(current_user: Profile = Depends(auth_service.get_current_user)):
    """
    Sign out

    Tokens are stateless; the client discards them. The event is audited.
    """
    log_audit(current_user.id, "logout", current_user.email)
    return {"success": True, "message": "Signed out"}


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: Profile = Depends(auth_service.get_current_user)):
    """Current profile and its company"""
    return MeResponse(
        profile=UserResponse.model_validate(current_user),
        company=CompanyResponse.model_validate(current_user.company)
    )
