"""
Orders services package - the pricing pipeline after item pricing.

- TaxCalculationService: Multi-line tax breakdown
- OrderCalculationService: Fee, tip and platform-fee assembly into the order total
- DeliveryFeeService: Distance-tiered delivery fee quotes
"""

# Tax operations
from .tax_service import TaxCalculationService, TaxLine, TaxResult, compute_taxes

# Delivery fee operations
from .delivery_fee_service import DeliveryFeeQuote, DeliveryFeeService, calculate_local_delivery_fee

# Calculation operations
from .calculation_service import (
    CalculatedItem,
    OrderCalculation,
    OrderCalculationService,
    OrderType,
    calculate_tip,
    compute_order_total,
)

__all__ = [
    # Taxes
    'TaxCalculationService',
    'TaxLine',
    'TaxResult',
    'compute_taxes',
    # Calculations
    'CalculatedItem',
    'OrderCalculation',
    'OrderCalculationService',
    'OrderType',
    'calculate_tip',
    'compute_order_total',
    # Delivery fees
    'DeliveryFeeQuote',
    'DeliveryFeeService',
    'calculate_local_delivery_fee',
]
