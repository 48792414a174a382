"""
Custom exceptions for the pricing engine.
"""


class PricingError(Exception):
    """Base exception for pricing-related errors."""
    pass


class MalformedRuleError(PricingError):
    """Raised when modifier rule data cannot be interpreted."""

    def __init__(self, rule, message=None):
        self.rule = rule
        if message is None:
            message = f"Malformed modifier rule: {rule!r}"
        super().__init__(message)


class InvalidPricingInput(PricingError, ValueError):
    """Raised when a caller passes a negative or otherwise invalid amount."""

    def __init__(self, field, value, message=None):
        self.field = field
        self.value = value
        if message is None:
            message = f"'{field}' must be a non-negative amount, got {value}"
        super().__init__(message)
