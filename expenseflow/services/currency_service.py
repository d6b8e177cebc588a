"""
Currency Service
Exchange-rate and country/currency lookups against third-party APIs
"""

from typing import Any, Dict, List, Optional
import httpx

from expenseflow.config.settings import settings
from expenseflow.utils.exceptions import ExternalServiceError, ValidationError
from expenseflow.utils.logger import setup_logger

logger = setup_logger()


class CurrencyService:
    """Client for the exchange-rate and countries collaborators"""

    def __init__(
        self,
        rates_url: Optional[str] = None,
        countries_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            rates_url: Base URL of the latest-rates endpoint (base code is appended)
            countries_url: URL returning countries with their currencies
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.rates_url = (rates_url or settings.EXCHANGE_RATE_API_URL).rstrip("/")
        self.countries_url = countries_url or settings.COUNTRIES_API_URL
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def _get_json(self, url: str) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.error(f"External request failed: GET {url} - {e}")
            raise ExternalServiceError(f"External service request failed: {url}") from e
        except ValueError as e:
            logger.error(f"External request returned invalid JSON: GET {url}")
            raise ExternalServiceError(f"External service returned invalid data: {url}") from e

    async def fetch_exchange_rates(self, base_currency: str) -> Dict[str, float]:
        """
        Latest rates keyed by currency code for one unit of base_currency

        Raises:
            ExternalServiceError: If the API call fails
        """
        data = await self._get_json(f"{self.rates_url}/{base_currency.upper()}")
        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            raise ExternalServiceError(f"No exchange rates returned for {base_currency}")
        return rates

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        """
        Convert amount between currencies for display; nothing is persisted

        Raises:
            ExternalServiceError: If rates cannot be fetched or the target rate is missing
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount

        rates = await self.fetch_exchange_rates(from_currency)
        rate = rates.get(to_currency)
        if not rate:
            raise ExternalServiceError(f"Exchange rate not found for {to_currency}")

        return amount * rate

    async def fetch_countries(self) -> List[Dict[str, Any]]:
        """
        Countries sorted by common name, each with its default currency

        Countries without any currency are dropped. The default currency is
        the first code listed for the country.

        Returns:
            List of {"name", "currencies", "default_currency"}
        """
        data = await self._get_json(self.countries_url)
        if not isinstance(data, list):
            raise ExternalServiceError("Countries service returned an unexpected payload")

        countries = []
        for entry in data:
            currencies = entry.get("currencies") or {}
            name = (entry.get("name") or {}).get("common")
            if not name or not currencies:
                continue
            countries.append({
                "name": name,
                "currencies": currencies,
                "default_currency": next(iter(currencies))
            })

        countries.sort(key=lambda c: c["name"])
        return countries

    async def currency_for_country(self, country: str) -> str:
        """
        Default currency code for a country (by common name, case-insensitive)

        Raises:
            ExternalServiceError: If the lookup fails
            ValidationError: If the country is unknown
        """
        for entry in await self.fetch_countries():
            if entry["name"].lower() == country.strip().lower():
                return entry["default_currency"]
        raise ValidationError(f"No currency known for country '{country}'")


# Create singleton instance
currency_service = CurrencyService()
