import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config import Settings
from src.domain.exceptions import ConflictError, NotFoundError
from src.domain.financials import ZERO, line_tax, to_money
from src.domain.state_machine import ApprovalStatus
from src.domain.zatca import build_invoice_hash, build_qr_payload
from src.infrastructure.db.models import Booking, Hall, Invoice, InvoiceLineItem
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.catalog_repository import CatalogRepository
from src.infrastructure.repositories.invoice_repository import InvoiceRepository

logger = logging.getLogger(__name__)

RECONCILIATION_TOLERANCE = Decimal("0.01")
DEFAULT_TERMS = "Payment due upon confirmation. Cancellation policy applies as per terms and conditions."


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year:04d}-{sequence:06d}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InvoiceStatistics:
    total_invoices: int
    pending_invoices: int
    paid_invoices: int
    cancelled_invoices: int
    total_revenue: Decimal
    total_tax_collected: Decimal
    average_invoice_amount: Decimal


class InvoiceGenerator:
    """
    Issues exactly one invoice per confirmed booking.

    Generation is idempotent: an existing invoice for the booking is
    returned unchanged. Security fields (QR payload, hash, UUID) are
    computed once from the frozen financial values and never again.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.invoices = InvoiceRepository(db)
        self.bookings = BookingRepository(db)
        self.catalog = CatalogRepository(db)

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.invoices.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def get_by_booking(self, booking_id: int) -> Invoice:
        invoice = self.invoices.get_by_booking_id(booking_id)
        if invoice is None:
            raise NotFoundError("Invoice for booking", booking_id)
        return invoice

    def get_by_number(self, invoice_number: str) -> Invoice:
        invoice = self.invoices.get_by_number(invoice_number)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_number)
        return invoice

    # -----------------------------
    # Generation
    # -----------------------------
    def generate_for_booking(self, booking_id: int, created_by: str = "system") -> Invoice:
        logger.info("Generating invoice for booking %s", booking_id)

        existing = self.invoices.get_by_booking_id(booking_id)
        if existing is not None:
            logger.warning(
                "Invoice already exists for booking %s: %s",
                booking_id,
                existing.invoice_number,
            )
            return existing

        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)

        customer = self.catalog.get_customer(booking.customer_id)
        if customer is None:
            raise NotFoundError("Customer", booking.customer_id)

        hall = self.catalog.get_hall(booking.hall_id)
        invoice_date = self.clock()
        invoice = self._build_header(booking, customer, hall, invoice_date, created_by)
        invoice.line_items = self.build_line_items(booking, hall)
        self._check_reconciliation(invoice)

        return self._persist_with_number(invoice, invoice_date.year)

    def generate_invoice_number(self, year: Optional[int] = None) -> str:
        year = year or self.clock().year
        sequence = self.invoices.count_for_year(year) + 1
        number = format_invoice_number(year, sequence)
        # A number can already be taken if a concurrent writer got there first.
        while self.invoices.number_exists(number):
            sequence += 1
            number = format_invoice_number(year, sequence)
        return number

    def _persist_with_number(self, invoice: Invoice, year: int) -> Invoice:
        attempts = self.settings.invoice_number_max_retries
        for attempt in range(1, attempts + 1):
            invoice.invoice_number = self.generate_invoice_number(year)
            self._seal(invoice)

            try:
                with self.db.begin_nested():
                    self.invoices.add(invoice)
            except IntegrityError:
                existing = self.invoices.get_by_booking_id(invoice.booking_id)
                if existing is not None:
                    logger.info(
                        "Invoice for booking %s was generated concurrently: %s",
                        invoice.booking_id,
                        existing.invoice_number,
                    )
                    return existing
                logger.warning(
                    "Invoice number %s collided (attempt %s/%s). Retrying with next sequence.",
                    invoice.invoice_number,
                    attempt,
                    attempts,
                )
                continue

            logger.info(
                "Invoice %s generated successfully for booking %s",
                invoice.invoice_number,
                invoice.booking_id,
            )
            return invoice

        raise ConflictError(
            f"Could not allocate a unique invoice number after {attempts} attempts"
        )

    def _seal(self, invoice: Invoice) -> None:
        invoice.qr_code = build_qr_payload(
            seller_name=invoice.seller_name,
            vat_number=invoice.seller_vat_number,
            invoice_date=invoice.invoice_date,
            total_with_tax=invoice.total_amount_with_tax,
            tax_amount=invoice.tax_amount,
        )
        invoice.invoice_hash = build_invoice_hash(
            invoice_number=invoice.invoice_number,
            vat_number=invoice.seller_vat_number,
            invoice_date=invoice.invoice_date,
            total_with_tax=invoice.total_amount_with_tax,
            tax_amount=invoice.tax_amount,
        )
        if not invoice.zatca_uuid:
            invoice.zatca_uuid = str(uuid4())

    def _build_header(self, booking: Booking, customer, hall: Optional[Hall], invoice_date, created_by) -> Invoice:
        platform = self.settings.platform
        address = customer.addresses[0] if customer.addresses else None

        return Invoice(
            invoice_type="Standard",
            invoice_date=invoice_date,
            supply_date=booking.event_date,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            hall_id=hall.id if hall else None,
            seller_name=hall.name if hall else platform.name,
            seller_vat_number=(hall.vat_number if hall and hall.vat_number else platform.vat_number),
            seller_cr_number=platform.cr_number,
            seller_address=(hall.address if hall and hall.address else platform.address),
            seller_city=(hall.city if hall and hall.city else platform.city),
            seller_postal_code=platform.postal_code,
            seller_country_code=platform.country_code,
            buyer_name=customer.full_name or "Customer",
            buyer_vat_number="",
            buyer_address=address.street if address else "",
            buyer_city=address.city if address else "",
            buyer_postal_code=address.zip_code if address else "",
            buyer_country_code="SA",
            subtotal_before_tax=to_money(booking.subtotal),
            discount_amount=to_money(booking.discount_amount),
            taxable_amount=to_money(booking.subtotal - booking.discount_amount),
            tax_rate=booking.tax_rate,
            tax_amount=to_money(booking.tax_amount),
            total_amount_with_tax=to_money(booking.total_amount),
            currency=booking.currency or self.settings.currency,
            payment_method=booking.payment_method or "Online",
            payment_status=booking.payment_status or "Pending",
            payment_date=booking.paid_at,
            notes=(
                f"Booking Reference: {booking.id}. "
                f"Event Date: {booking.event_date:%Y-%m-%d}. "
                f"Guest Count: {booking.guest_count}."
            ),
            terms=DEFAULT_TERMS,
            created_by=created_by,
        )

    def build_line_items(self, booking: Booking, hall: Optional[Hall]) -> list[InvoiceLineItem]:
        tax_rate = booking.tax_rate
        lines: list[InvoiceLineItem] = []

        def add_line(description, item_code, quantity, unit_price, subtotal):
            subtotal = to_money(subtotal)
            tax = line_tax(subtotal, tax_rate)
            lines.append(
                InvoiceLineItem(
                    line_number=len(lines) + 1,
                    description=description,
                    item_code=item_code,
                    quantity=quantity,
                    unit="Service",
                    unit_price=to_money(unit_price),
                    discount_amount=ZERO,
                    subtotal_before_tax=subtotal,
                    tax_rate=tax_rate,
                    tax_amount=tax,
                    total_amount=to_money(subtotal + tax),
                    tax_category="Standard",
                )
            )

        if booking.hall_cost and booking.hall_cost > 0:
            add_line(
                f"Hall Rental - {hall.name if hall else 'Event Hall'}",
                f"HALL-{booking.hall_id}",
                1,
                booking.hall_cost,
                booking.hall_cost,
            )

        for vendor_booking in booking.vendor_bookings:
            if vendor_booking.status is ApprovalStatus.REJECTED:
                continue
            vendor = self.catalog.get_vendor(vendor_booking.vendor_id)
            vendor_name = vendor.name if vendor else "Vendor"

            if vendor_booking.services:
                for service in vendor_booking.services:
                    add_line(
                        f"{vendor_name} - {service.service_name or 'Service'}",
                        f"SVC-{service.service_item_id}",
                        service.quantity,
                        service.unit_price,
                        service.total_price,
                    )
            else:
                add_line(
                    f"{vendor_name} Services",
                    f"VENDOR-{vendor_booking.vendor_id}",
                    1,
                    vendor_booking.total_amount,
                    vendor_booking.total_amount,
                )

        if not lines:
            subtotal = to_money(booking.subtotal)
            discount = to_money(booking.discount_amount)
            lines.append(
                InvoiceLineItem(
                    line_number=1,
                    description="Event Booking Services",
                    item_code=f"BOOKING-{booking.id}",
                    quantity=1,
                    unit="Service",
                    unit_price=subtotal,
                    discount_amount=discount,
                    subtotal_before_tax=to_money(subtotal - discount),
                    tax_rate=tax_rate,
                    tax_amount=to_money(booking.tax_amount),
                    total_amount=to_money(booking.total_amount),
                    tax_category="Standard",
                )
            )

        return lines

    def _check_reconciliation(self, invoice: Invoice) -> None:
        line_sum = sum((line.total_amount for line in invoice.line_items), ZERO)
        drift = abs(line_sum - invoice.total_amount_with_tax)
        if drift > RECONCILIATION_TOLERANCE:
            logger.warning(
                "Invoice lines for booking %s sum to %s but header total is %s",
                invoice.booking_id,
                line_sum,
                invoice.total_amount_with_tax,
            )

    # -----------------------------
    # Lifecycle updates
    # -----------------------------
    def update_payment_status(
        self,
        invoice_id: int,
        payment_status: str,
        payment_reference: str = "",
    ) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        self._ensure_not_cancelled(invoice)
        invoice.payment_status = payment_status
        invoice.payment_reference = payment_reference
        if payment_status == "Paid":
            invoice.payment_date = self.clock()

        logger.info(
            "Invoice %s payment status updated to %s",
            invoice.invoice_number,
            payment_status,
        )
        return invoice

    def cancel_invoice(self, invoice_id: int, reason: str) -> Invoice:
        # Voiding keeps number, QR and hash intact as audit artifacts.
        invoice = self.get_invoice(invoice_id)
        self._ensure_not_cancelled(invoice)
        invoice.is_cancelled = True
        invoice.cancelled_at = self.clock()
        invoice.cancellation_reason = reason
        invoice.payment_status = "Cancelled"

        logger.info("Invoice %s cancelled. Reason: %s", invoice.invoice_number, reason)
        return invoice

    @staticmethod
    def _ensure_not_cancelled(invoice: Invoice) -> None:
        if invoice.is_cancelled:
            raise ConflictError(f"Invoice {invoice.invoice_number} is cancelled")

    def bookings_missing_invoice(self) -> list[Booking]:
        """Confirmed bookings whose invoicing failed and still need one."""
        return self.bookings.list_confirmed_without_invoice()

    def statistics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> InvoiceStatistics:
        invoices = self.invoices.list_between(start, end)
        paid = [i for i in invoices if i.payment_status == "Paid"]
        total = sum((i.total_amount_with_tax for i in invoices), ZERO)

        return InvoiceStatistics(
            total_invoices=len(invoices),
            pending_invoices=sum(1 for i in invoices if i.payment_status == "Pending"),
            paid_invoices=len(paid),
            cancelled_invoices=sum(1 for i in invoices if i.is_cancelled),
            total_revenue=to_money(sum((i.total_amount_with_tax for i in paid), ZERO)),
            total_tax_collected=to_money(sum((i.tax_amount for i in paid), ZERO)),
            average_invoice_amount=to_money(total / len(invoices)) if invoices else ZERO,
        )
