"""
Helper Utilities
Common helper functions
"""

from typing import Optional


CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format amount as currency

    Args:
        amount: Amount to format
        currency: ISO currency code

    Returns:
        str: Formatted currency string, e.g. "$1,250.00" or "CAD 80.00"
    """
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{currency.upper()} {amount:,.2f}"


def round_money(amount: Optional[float]) -> Optional[float]:
    """Round a display amount to cents"""
    if amount is None:
        return None
    return round(amount, 2)


def get_client_ip(request) -> str:
    """
    Get client IP address from request

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
