"""
Currency conversion for platform fee display.

The platform fee is always charged in USD. Merchants price in their own
currency, so checkout shows the fee converted through a USD-based rate table.
Conversion never blocks checkout: a missing rate returns the original amount
and a warning instead of raising.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Mapping, NamedTuple, Optional

import requests
from django.conf import settings
from django.core.cache import cache

from .money import Numeric, quantize, to_decimal

logger = logging.getLogger(__name__)

ExchangeRates = Mapping[str, Decimal]

# Approximate exchange rates (USD as base currency = 1.00).
# Used whenever live rates are not configured or cannot be fetched.
FALLBACK_EXCHANGE_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1.00"),
    "CAD": Decimal("1.35"),
    "MXN": Decimal("17.00"),
    "BRL": Decimal("5.00"),
    "ARS": Decimal("350.00"),
    "CLP": Decimal("900.00"),
    "COP": Decimal("4000.00"),
    "PEN": Decimal("3.75"),
    "VES": Decimal("36.00"),
    "UYU": Decimal("39.00"),
    "PYG": Decimal("7200.00"),
    "BOB": Decimal("6.90"),
    "GYD": Decimal("209.00"),
    "SRD": Decimal("35.00"),
    "GTQ": Decimal("7.80"),
    "HNL": Decimal("24.70"),
    "NIO": Decimal("36.70"),
    "CRC": Decimal("520.00"),
    "PAB": Decimal("1.00"),
    "DOP": Decimal("56.50"),
    "CUP": Decimal("24.00"),
    "HTG": Decimal("132.00"),
    "JMD": Decimal("155.00"),
    "TTD": Decimal("6.80"),
    "BZD": Decimal("2.00"),
    "BBD": Decimal("2.00"),
    "XCD": Decimal("2.70"),
}


class ConversionResult(NamedTuple):
    amount: Decimal
    converted: bool
    warning: Optional[str] = None


def _rate_for(rates: ExchangeRates, currency: str) -> Optional[Decimal]:
    rate = rates.get(currency)
    if rate is None:
        return None
    try:
        rate = to_decimal(rate)
    except (InvalidOperation, TypeError, ValueError):
        return None
    return rate if rate > 0 else None


def try_convert_currency(
    amount: Numeric,
    from_currency: str,
    to_currency: str = "USD",
    rates: Optional[ExchangeRates] = None,
) -> ConversionResult:
    """
    Convert an amount between currencies through a USD pivot.

    Returns a ConversionResult so callers can surface the warning next to the
    numbers they display. Identity conversions return the amount untouched.
    """
    amount = to_decimal(amount)
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()

    if from_currency == to_currency:
        return ConversionResult(amount, True)

    rates = FALLBACK_EXCHANGE_RATES if rates is None else rates
    from_rate = _rate_for(rates, from_currency)
    to_rate = _rate_for(rates, to_currency)

    if from_rate is None or to_rate is None:
        warning = (
            f"Exchange rate not found for {from_currency} or {to_currency}, "
            f"returning original amount"
        )
        logger.warning(warning)
        return ConversionResult(amount, False, warning)

    usd_amount = amount / from_rate
    return ConversionResult(quantize(to_currency, usd_amount * to_rate), True)


def convert_currency(
    amount: Numeric,
    from_currency: str,
    to_currency: str = "USD",
    rates: Optional[ExchangeRates] = None,
) -> Decimal:
    """
    Convert an amount from one currency to another.

    Args:
        amount: Amount in source currency
        from_currency: Source currency code
        to_currency: Target currency code (default: USD)
        rates: USD-based rate table (defaults to FALLBACK_EXCHANGE_RATES)

    Returns:
        Converted amount rounded to the target currency's minor unit, or the
        original amount when either rate is missing.
    """
    return try_convert_currency(amount, from_currency, to_currency, rates).amount


class CurrencyConverter:
    """
    Rate table holder injected into the fee assembler.

    Each tenant or test builds its own converter, so nothing about exchange
    rates lives in process-wide state.
    """

    def __init__(self, rates: Optional[ExchangeRates] = None):
        self.rates = dict(FALLBACK_EXCHANGE_RATES if rates is None else rates)

    @classmethod
    def live(cls) -> "CurrencyConverter":
        """Build a converter from live rates (or the fallback table)."""
        return cls(ExchangeRateService.get_rates())

    def convert(self, amount: Numeric, from_currency: str, to_currency: str = "USD") -> ConversionResult:
        return try_convert_currency(amount, from_currency, to_currency, self.rates)

    def platform_fee_to_local(self, platform_fee_usd: Numeric, currency: str) -> ConversionResult:
        """Convert the USD platform fee to the merchant's display currency."""
        return self.convert(platform_fee_usd, "USD", currency)


class ExchangeRateService:
    """
    Optional live exchange-rate source.

    Expects a JSON payload shaped like {"base": "USD", "rates": {"BRL": 5.01}}
    (exchangerate-api.com / openexchangerates.org style). Any failure returns
    the static fallback table.
    """

    CACHE_KEY = "exchange_rates_usd"

    @staticmethod
    def parse_rates(payload) -> Dict[str, Decimal]:
        """Parse a provider payload into a USD-based Decimal rate table."""
        if not isinstance(payload, dict):
            raise ValueError("Exchange rate payload must be a JSON object")

        base = str(payload.get("base", payload.get("base_code", "USD"))).upper()
        if base != "USD":
            raise ValueError(f"Exchange rate payload has base {base}, expected USD")

        raw_rates = payload.get("rates")
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise ValueError("Exchange rate payload has no rates")

        rates = {}
        for code, value in raw_rates.items():
            try:
                rate = to_decimal(value)
            except (InvalidOperation, TypeError, ValueError):
                logger.debug(f"Skipping unparseable rate for {code}: {value!r}")
                continue
            if rate > 0:
                rates[str(code).upper()] = rate
        rates["USD"] = Decimal("1")
        return rates

    @staticmethod
    def fetch_live_rates() -> Optional[Dict[str, Decimal]]:
        """
        Fetch live rates from EXCHANGE_RATE_API_URL.

        The request is bounded by EXCHANGE_RATE_TIMEOUT. Returns None on any
        network or payload error so the caller can fall back.
        """
        url = settings.EXCHANGE_RATE_API_URL
        try:
            logger.info(f"Fetching live exchange rates from {url}")
            response = requests.get(url, timeout=settings.EXCHANGE_RATE_TIMEOUT)
            response.raise_for_status()
            rates = ExchangeRateService.parse_rates(response.json())
            logger.info(f"Loaded {len(rates)} live exchange rates")
            return rates
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch live exchange rates, using fallback: {e}")
        except ValueError as e:
            logger.warning(f"Invalid exchange rate payload, using fallback: {e}")
        return None

    @staticmethod
    def get_rates(force_refresh: bool = False) -> Dict[str, Decimal]:
        """
        Rate table to price with.

        Live rates are cached for EXCHANGE_RATE_CACHE_TTL seconds. Without a
        configured source, or when the fetch fails, the static fallback table
        is returned (and nothing is cached, so the next call retries).
        """
        if not getattr(settings, "EXCHANGE_RATE_API_URL", ""):
            return dict(FALLBACK_EXCHANGE_RATES)

        if not force_refresh:
            cached_rates = cache.get(ExchangeRateService.CACHE_KEY)
            if cached_rates:
                return cached_rates

        rates = ExchangeRateService.fetch_live_rates()
        if rates is None:
            return dict(FALLBACK_EXCHANGE_RATES)

        cache.set(ExchangeRateService.CACHE_KEY, rates, settings.EXCHANGE_RATE_CACHE_TTL)
        return rates
