"""
Currency Routes
Country list for sign-up and amount conversion for review
"""

from fastapi import APIRouter, Depends, Query

from expenseflow.models.profile import Profile
from expenseflow.services.auth_service import auth_service
from expenseflow.services.currency_service import currency_service
from expenseflow.utils.helpers import round_money

router = APIRouter()


@router.get("/countries")
async def get_countries():
    """Countries with their default currency (public: used on the sign-up form)"""
    countries = await currency_service.fetch_countries()
    return {
        "countries": [
            {"name": c["name"], "default_currency": c["default_currency"]}
            for c in countries
        ],
        "count": len(countries)
    }


@router.get("/convert")
async def convert_amount(
    amount: float = Query(..., ge=0),
    from_currency: str = Query(..., min_length=3, max_length=3),
    to_currency: str = Query(..., min_length=3, max_length=3),
    current_user: Profile = Depends(auth_service.get_current_user)
):
    """Convert an amount for display; nothing is stored"""
    converted = await currency_service.convert(amount, from_currency, to_currency)
    return {
        "amount": amount,
        "from_currency": from_currency.upper(),
        "to_currency": to_currency.upper(),
        "converted_amount": round_money(converted)
    }
