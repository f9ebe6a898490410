# src/domain/financials.py

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_REGION = "DEFAULT"


def to_money(value) -> Decimal:
    """
    Rounds to 2 decimal places, half away from zero.
    Every monetary result in the engine goes through here.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value) -> str:
    return f"{to_money(value):.2f}"


def line_tax(subtotal, tax_rate) -> Decimal:
    return to_money(Decimal(str(subtotal)) * Decimal(str(tax_rate)))


@dataclass(frozen=True)
class ServiceRequest:
    vendor_id: int
    service_item_id: int
    quantity: int = 1


@dataclass
class ServiceCostLine:
    service_item_id: int
    service_name: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal


@dataclass
class VendorCostBreakdown:
    vendor_id: int
    vendor_name: str
    total_amount: Decimal = ZERO
    services: list[ServiceCostLine] = field(default_factory=list)


@dataclass(frozen=True)
class TaxResult:
    tax_rate: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass
class FinancialBreakdown:
    hall_cost: Decimal
    vendor_services_cost: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    tax_rate: Decimal
    total_amount: Decimal
    currency: str = "SAR"
    vendor_breakdown: list[VendorCostBreakdown] = field(default_factory=list)


class TaxCalculator:
    """
    Applies the regional tax table and the discount hook to a subtotal.

    The table is injected so tests and tenants can substitute their own;
    regions missing from it fall back to the DEFAULT entry.
    """

    def __init__(self, tax_rates: Mapping[str, Decimal]):
        if DEFAULT_REGION not in tax_rates:
            raise ValueError("Tax rate table requires a DEFAULT entry")
        self.tax_rates = {region: Decimal(str(rate)) for region, rate in tax_rates.items()}

    def rate_for(self, region: Optional[str]) -> Decimal:
        if region and region in self.tax_rates:
            return self.tax_rates[region]
        return self.tax_rates[DEFAULT_REGION]

    def discount_for(self, subtotal: Decimal, discount_code: Optional[str]) -> Decimal:
        # No coupon engine yet: codes are accepted and recorded, never applied.
        if discount_code:
            logger.info("Discount code %s received; no discount applied", discount_code)
        return ZERO

    def calculate(
        self,
        subtotal,
        region: Optional[str] = None,
        discount_code: Optional[str] = None,
        line_amounts: Optional[Iterable] = None,
    ) -> TaxResult:
        """
        TaxableAmount = Subtotal - Discount, Tax = Taxable x rate,
        Total = Taxable + Tax.

        When the individual cost lines are given (and no discount applies),
        tax is rounded per line before summing so that invoice line items
        reconcile to the header total exactly.
        """
        subtotal = to_money(subtotal)
        tax_rate = self.rate_for(region)
        discount_amount = to_money(self.discount_for(subtotal, discount_code))
        taxable_amount = to_money(subtotal - discount_amount)

        lines = [to_money(amount) for amount in line_amounts] if line_amounts is not None else []
        if lines and discount_amount == ZERO and sum(lines, ZERO) == subtotal:
            tax_amount = sum((line_tax(amount, tax_rate) for amount in lines), ZERO)
        else:
            tax_amount = line_tax(taxable_amount, tax_rate)

        return TaxResult(
            tax_rate=tax_rate,
            discount_amount=discount_amount,
            taxable_amount=taxable_amount,
            tax_amount=tax_amount,
            total_amount=to_money(taxable_amount + tax_amount),
        )
