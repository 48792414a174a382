"""
Monetary precision helpers for the pricing engine.

CRITICAL: every amount that reaches a customer, a stored order snapshot or the
payment provider goes through this module, so cart previews, checkout and
analytics round identically.

Key Principles:
1. NEVER use float for money
2. Coerce inputs through str() before building a Decimal
3. Use ROUND_HALF_UP: exact half-cents round away from zero
4. Round to the currency's minor unit, once, at the edge of each calculation
5. Convert to integer minor units only for the payment provider

Author: Ajeen Backend Team
"""

from decimal import Decimal, ROUND_HALF_UP, getcontext
from typing import Union

# Set high precision for intermediate calculations
getcontext().prec = 28

Numeric = Union[Decimal, str, int, float]

ZERO = Decimal("0")

# Currency minor unit exponents (how many decimal places)
CURRENCY_EXPONENT = {
    # 2-decimal currencies (most common)
    "USD": 2,  # United States Dollar (cents)
    "CAD": 2,  # Canadian Dollar (cents)
    "MXN": 2,  # Mexican Peso (centavos)
    "BRL": 2,  # Brazilian Real (centavos)
    "ARS": 2,  # Argentine Peso (centavos)
    "COP": 2,  # Colombian Peso (centavos)
    "PEN": 2,  # Peruvian Sol (céntimos)
    "EUR": 2,  # Euro (cents)
    "GBP": 2,  # British Pound (pence)

    # Zero-decimal currencies
    "CLP": 0,  # Chilean Peso (no subunit)
    "PYG": 0,  # Paraguayan Guaraní (no subunit)
    "JPY": 0,  # Japanese Yen (no subunit)

    # 3-decimal currencies
    "KWD": 3,  # Kuwaiti Dinar (fils)
    "BHD": 3,  # Bahraini Dinar (fils)
}

# Display symbols for the currencies merchants can configure
CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "C$",
    "MXN": "$",
    "GTQ": "Q",
    "HNL": "L",
    "NIO": "C$",
    "CRC": "₡",
    "PAB": "B/.",
    "DOP": "RD$",
    "CUP": "$",
    "HTG": "G",
    "JMD": "J$",
    "TTD": "TT$",
    "BZD": "BZ$",
    "BBD": "Bds$",
    "XCD": "EC$",
    "BRL": "R$",
    "ARS": "$",
    "CLP": "$",
    "COP": "$",
    "PEN": "S/",
    "VES": "Bs.",
    "UYU": "$U",
    "PYG": "₲",
    "BOB": "Bs.",
    "GYD": "G$",
    "SRD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def currency_exponent(currency: str) -> int:
    """
    Get the number of decimal places for a currency.

    Args:
        currency: ISO 4217 currency code (e.g., "USD", "BRL", "CLP")

    Returns:
        Number of decimal places (0, 2, or 3). Unknown currencies use 2.

    Examples:
        >>> currency_exponent("USD")
        2
        >>> currency_exponent("CLP")
        0
    """
    return CURRENCY_EXPONENT.get((currency or "USD").upper(), 2)


def quantize_decimal(currency: str) -> Decimal:
    """
    Get the quantization decimal for a currency.

    Examples:
        >>> quantize_decimal("USD")
        Decimal('0.01')
        >>> quantize_decimal("CLP")
        Decimal('1')
    """
    return Decimal(10) ** -currency_exponent(currency)


def to_decimal(amount: Numeric) -> Decimal:
    """
    Coerce any numeric input to Decimal without float artefacts.

    Floats go through str() first so 0.1 becomes Decimal('0.1'),
    not Decimal('0.1000000000000000055511151231257827...').
    """
    if isinstance(amount, Decimal):
        return amount
    if amount is None:
        return ZERO
    if isinstance(amount, float):
        amount = str(amount)
    return Decimal(amount)


def quantize(currency: str, amount: Numeric) -> Decimal:
    """
    Round to currency decimals, exact halves away from zero (ROUND_HALF_UP).

    Examples:
        >>> quantize("USD", "10.127")
        Decimal('10.13')
        >>> quantize("USD", "10.125")
        Decimal('10.13')
        >>> quantize("CLP", "1234.56")
        Decimal('1235')
    """
    return to_decimal(amount).quantize(quantize_decimal(currency), rounding=ROUND_HALF_UP)


def round2(amount: Numeric) -> Decimal:
    """Round to two decimal places (half-up), independent of currency."""
    return to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor(currency: str, amount: Numeric) -> int:
    """
    Convert to minor units (e.g., cents) after quantization.

    CRITICAL: Always quantize BEFORE converting to integer.

    Examples:
        >>> to_minor("USD", "10.127")
        1013
        >>> to_minor("CLP", "1234.56")
        1235
    """
    quantized = quantize(currency, amount)
    exponent = currency_exponent(currency)
    return int((quantized * (10 ** exponent)).to_integral_value())


def from_minor(currency: str, minor: int) -> Decimal:
    """
    Convert from minor units to Decimal (for display).

    Examples:
        >>> from_minor("USD", 1013)
        Decimal('10.13')
    """
    exponent = currency_exponent(currency)
    return quantize(currency, Decimal(minor) / (10 ** exponent))


def currency_symbol(currency: str) -> str:
    """Display symbol for a currency code, falling back to the code itself."""
    code = (currency or "USD").upper()
    return CURRENCY_SYMBOLS.get(code, code + " ")


def format_currency(amount: Numeric, currency: str, symbol: str = None) -> str:
    """
    Format an amount as a human-readable currency string.

    Args:
        amount: Amount in major units
        currency: ISO 4217 currency code
        symbol: Merchant-configured symbol (overrides the built-in table)

    Examples:
        >>> format_currency("10.5", "USD")
        '$10.50'
        >>> format_currency("9.75", "BRL")
        'R$9.75'
        >>> format_currency("1235", "CLP")
        '$1,235'
    """
    value = quantize(currency, amount)
    exponent = currency_exponent(currency)
    prefix = symbol if symbol is not None else currency_symbol(currency)
    return f"{prefix}{value:,.{exponent}f}"
