from datetime import datetime
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.routes.routes import (
    get_app_settings,
    get_booking_service,
    get_db,
    to_http_error,
    unexpected_error,
)
from src.api.schemas.schemas import (
    InvoiceCancelRequest,
    InvoicePaymentStatusRequest,
    InvoiceResponse,
    InvoiceStatisticsResponse,
    MissingInvoiceResponse,
)
from src.application.booking_service import BookingService
from src.application.invoice_generator import InvoiceGenerator
from src.config import Settings
from src.domain.exceptions import BookingPlatformError, NotFoundError


router = APIRouter(prefix="/api/invoices", tags=["invoices"])
logger = logging.getLogger(__name__)


def get_invoice_generator(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> InvoiceGenerator:
    return InvoiceGenerator(db, settings)


# Static paths are declared before "/{invoice_id}" so they are matched first.
@router.get("/statistics", response_model=InvoiceStatisticsResponse)
def invoice_statistics(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    return InvoiceStatisticsResponse.model_validate(generator.statistics(start_date, end_date))


@router.get("/reconciliation/missing", response_model=list[MissingInvoiceResponse])
def bookings_missing_invoice(
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    return [
        MissingInvoiceResponse(
            booking_id=booking.id,
            status=booking.status.value,
            total_amount=booking.total_amount,
            currency=booking.currency,
        )
        for booking in generator.bookings_missing_invoice()
    ]


@router.get("/by-number/{invoice_number}", response_model=InvoiceResponse)
def get_invoice_by_number(
    invoice_number: str,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    try:
        invoice = generator.get_by_number(invoice_number)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc
    return InvoiceResponse.model_validate(invoice)


@router.get("/by-booking/{booking_id}", response_model=InvoiceResponse)
def get_invoice_by_booking(
    booking_id: int,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    try:
        invoice = generator.get_by_booking(booking_id)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc
    return InvoiceResponse.model_validate(invoice)


@router.post("/generate/{booking_id}", response_model=InvoiceResponse)
def generate_invoice(
    booking_id: int,
    created_by: str = "admin",
    service: BookingService = Depends(get_booking_service),
):
    try:
        invoice = service.generate_invoice(booking_id, created_by=created_by)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Error generating invoice for booking %s", booking_id)
        raise unexpected_error("invoice generation") from exc
    return InvoiceResponse.model_validate(invoice)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    try:
        invoice = generator.get_invoice(invoice_id)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc
    return InvoiceResponse.model_validate(invoice)


@router.patch("/{invoice_id}/payment-status", response_model=InvoiceResponse)
def update_invoice_payment_status(
    invoice_id: int,
    request: InvoicePaymentStatusRequest,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    try:
        invoice = generator.update_payment_status(
            invoice_id,
            request.payment_status,
            payment_reference=request.payment_reference,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
def cancel_invoice(
    invoice_id: int,
    request: InvoiceCancelRequest,
    generator: InvoiceGenerator = Depends(get_invoice_generator),
):
    try:
        invoice = generator.cancel_invoice(invoice_id, request.reason)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    return InvoiceResponse.model_validate(invoice)
