import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from src.domain.exceptions import NotFoundError
from src.domain.financials import (
    ZERO,
    FinancialBreakdown,
    ServiceCostLine,
    ServiceRequest,
    TaxCalculator,
    VendorCostBreakdown,
    to_money,
)
from src.infrastructure.repositories.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)

# Regional weekend: Friday and Saturday.
WEEKEND_DAYS = {4, 5}


class CostAggregator:
    """Derives hall and vendor service costs and folds them into a breakdown."""

    def __init__(self, db: Session, tax_calculator: TaxCalculator, currency: str = "SAR"):
        self.catalog = CatalogRepository(db)
        self.tax_calculator = tax_calculator
        self.currency = currency

    def compute_hall_cost(
        self,
        hall_id: int,
        event_start: datetime,
        event_end: datetime,
    ) -> Decimal:
        # Halls are priced per event, so the duration never enters the price.
        hall = self.catalog.get_hall(hall_id)
        if hall is None:
            raise NotFoundError("Hall", hall_id)

        is_weekend = event_start.weekday() in WEEKEND_DAYS
        rate = hall.weekend_rate if is_weekend else hall.weekday_rate
        logger.debug("Hall %s pricing: weekend=%s rate=%s", hall_id, is_weekend, rate)
        return to_money(rate)

    def compute_vendor_services_cost(
        self,
        services: Optional[Iterable[ServiceRequest]],
    ) -> tuple[Decimal, list[VendorCostBreakdown]]:
        if not services:
            return ZERO, []

        breakdown: dict[int, VendorCostBreakdown] = {}
        for request in services:
            vendor_cost = breakdown.get(request.vendor_id)
            if vendor_cost is None:
                vendor_cost = VendorCostBreakdown(
                    vendor_id=request.vendor_id,
                    vendor_name=self._vendor_name(request.vendor_id),
                )
                breakdown[request.vendor_id] = vendor_cost

            item = self.catalog.get_service_item(request.service_item_id)
            if item is None:
                logger.warning(
                    "Service item %s for vendor %s not found; pricing it at 0",
                    request.service_item_id,
                    request.vendor_id,
                )
                unit_price = ZERO
                service_name = f"Service {request.service_item_id}"
            else:
                unit_price = to_money(item.price)
                service_name = item.name

            line_total = to_money(unit_price * request.quantity)
            vendor_cost.services.append(
                ServiceCostLine(
                    service_item_id=request.service_item_id,
                    service_name=service_name,
                    unit_price=unit_price,
                    quantity=request.quantity,
                    total_price=line_total,
                )
            )
            vendor_cost.total_amount = to_money(vendor_cost.total_amount + line_total)

        vendors = list(breakdown.values())
        total = sum((v.total_amount for v in vendors), ZERO)
        return to_money(total), vendors

    def calculate(
        self,
        hall_id: int,
        event_start: datetime,
        event_end: datetime,
        services: Optional[Iterable[ServiceRequest]] = None,
        discount_code: Optional[str] = None,
        region: Optional[str] = None,
    ) -> FinancialBreakdown:
        logger.info("Starting financial calculation for hall %s", hall_id)

        hall_cost = self.compute_hall_cost(hall_id, event_start, event_end)
        vendor_services_cost, vendor_breakdown = self.compute_vendor_services_cost(services)
        subtotal = to_money(hall_cost + vendor_services_cost)

        line_amounts = [hall_cost] + [
            line.total_price for vendor in vendor_breakdown for line in vendor.services
        ]
        tax = self.tax_calculator.calculate(
            subtotal,
            region=region,
            discount_code=discount_code,
            line_amounts=line_amounts,
        )

        logger.info("Financial calculation completed. Total: %s %s", tax.total_amount, self.currency)
        return FinancialBreakdown(
            hall_cost=hall_cost,
            vendor_services_cost=vendor_services_cost,
            subtotal=subtotal,
            discount_amount=tax.discount_amount,
            taxable_amount=tax.taxable_amount,
            tax_amount=tax.tax_amount,
            tax_rate=tax.tax_rate,
            total_amount=tax.total_amount,
            currency=self.currency,
            vendor_breakdown=vendor_breakdown,
        )

    def _vendor_name(self, vendor_id: int) -> str:
        vendor = self.catalog.get_vendor(vendor_id)
        if vendor is None:
            logger.warning("Vendor %s not found; using placeholder name", vendor_id)
            return f"Vendor {vendor_id}"
        return vendor.name
