from datetime import date, time
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.infrastructure.db.session import SessionLocal
from src.application.booking_service import BookingService
from src.api.schemas.schemas import (
    ApprovalRequest,
    ApprovalResponse,
    AvailabilityResponse,
    BookingCreateRequest,
    BookingResponse,
    CancelRequest,
    ConfirmationResponse,
    ConfirmRequest,
    FinancialBreakdownResponse,
    HallReplacementRequest,
    OutboxEventResponse,
    PaymentOrderResponse,
    PricingRequest,
    RazorpayVerifyRequest,
    StatusUpdateRequest,
    TimeSlotResponse,
    VendorApprovalStatusResponse,
    VendorReplacementRequest,
    VendorServicesRequest,
)
from src.config import Settings, get_settings
from src.domain.exceptions import (
    BookingPlatformError,
    ConflictError,
    NotFoundError,
    PaymentVerificationError,
    ValidationError,
)
from src.domain.financials import ServiceRequest
from src.infrastructure.db.models import OutboxEvent
from src.infrastructure.payments.razorpay_gateway import (
    PaymentGatewayNotConfiguredError,
    RazorpayGateway,
)
from src.infrastructure.repositories.outbox_repository import OutboxRepository


router = APIRouter()
logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_payment_gateway(settings: Settings = Depends(get_app_settings)) -> RazorpayGateway:
    return RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)


def get_booking_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
) -> BookingService:
    return BookingService(db, settings=settings, payment_gateway=gateway)


def to_http_error(exc: BookingPlatformError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PaymentVerificationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payment signature")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def unexpected_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error processing {action}",
    )


def _service_requests(selections) -> list[ServiceRequest]:
    return [
        ServiceRequest(
            vendor_id=item.vendor_id,
            service_item_id=item.service_item_id,
            quantity=item.quantity,
        )
        for item in selections
    ]


def _approval_response(result) -> ApprovalResponse:
    return ApprovalResponse(
        success=True,
        message=result.message,
        new_status=result.new_status.value,
        can_proceed_to_payment=result.can_proceed_to_payment,
    )


def _outbox_response(item: OutboxEvent) -> OutboxEventResponse:
    return OutboxEventResponse(
        id=item.id,
        aggregate_type=item.aggregate_type,
        aggregate_id=item.aggregate_id,
        event_type=item.event_type,
        status=item.status,
        attempts=item.attempts,
        created_at=item.created_at.isoformat(),
    )


@router.get("/health")
def health():
    return {"message": "Hall Booking Settlement Engine is running"}


# -----------------------------
# Outbox
# -----------------------------
@router.get("/outbox/events", response_model=list[OutboxEventResponse])
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    db: Session = Depends(get_db),
):
    safe_limit = max(1, min(limit, 200))
    events = OutboxRepository(db).list_events(status=status_filter, limit=safe_limit)
    return [_outbox_response(item) for item in events]


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventResponse)
def mark_outbox_event_published(
    event_id: str,
    db: Session = Depends(get_db),
):
    repo = OutboxRepository(db)
    item = repo.get_by_id(event_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Outbox event not found",
        )

    repo.mark_published(item)
    return _outbox_response(item)


# -----------------------------
# Bookings
# -----------------------------
@router.post("/api/bookings/pricing", response_model=FinancialBreakdownResponse)
def price_booking(
    request: PricingRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        breakdown = service.quote(
            hall_id=request.hall_id,
            event_date=request.event_date,
            start_time=request.start_time,
            end_time=request.end_time,
            services=_service_requests(request.services),
            discount_code=request.discount_code,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return FinancialBreakdownResponse.model_validate(breakdown)


@router.post("/api/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.create_booking(
            customer_id=request.customer_id,
            hall_id=request.hall_id,
            event_date=request.event_date,
            start_time=request.start_time,
            end_time=request.end_time,
            services=_service_requests(request.services),
            event_type=request.event_type,
            guest_count=request.guest_count,
            discount_code=request.discount_code,
            visit_date=request.visit_date,
            comments=request.comments,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


@router.get("/api/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.get_booking(booking_id)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


@router.post("/api/bookings/{booking_id}/vendor-bookings", response_model=BookingResponse)
def add_vendor_services(
    booking_id: int,
    request: VendorServicesRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.add_vendor_services(booking_id, _service_requests(request.services))
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


@router.post("/api/bookings/{booking_id}/recalculate", response_model=BookingResponse)
def recalculate_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.recalculate_financials(booking_id)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


# -----------------------------
# Approvals
# -----------------------------
@router.post("/api/bookings/{booking_id}/hall-approval", response_model=ApprovalResponse)
def hall_approval(
    booking_id: int,
    request: ApprovalRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        result = service.hall_approval(
            booking_id=booking_id,
            approved=request.approved,
            rejection_reason=request.rejection_reason,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Error processing hall approval for booking %s", booking_id)
        raise unexpected_error("hall approval") from exc

    return _approval_response(result)


@router.post(
    "/api/bookings/{booking_id}/vendor-bookings/{vendor_booking_id}/approval",
    response_model=ApprovalResponse,
)
def vendor_approval(
    booking_id: int,
    vendor_booking_id: int,
    request: ApprovalRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        result = service.vendor_approval(
            booking_id=booking_id,
            vendor_booking_id=vendor_booking_id,
            approved=request.approved,
            rejection_reason=request.rejection_reason,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception(
            "Error processing vendor approval %s for booking %s",
            vendor_booking_id,
            booking_id,
        )
        raise unexpected_error("vendor approval") from exc

    return _approval_response(result)


@router.get(
    "/api/bookings/{booking_id}/vendor-approval-status",
    response_model=VendorApprovalStatusResponse,
)
def vendor_approval_status(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    try:
        summary = service.vendor_approval_status(booking_id)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc

    return VendorApprovalStatusResponse(
        total_vendors=summary.total_vendors,
        approved_count=summary.approved_count,
        rejected_count=summary.rejected_count,
        pending_count=summary.pending_count,
        all_approved=summary.all_approved,
        can_proceed_to_payment=summary.can_proceed_to_payment,
    )


@router.post("/api/bookings/{booking_id}/replace-hall", response_model=BookingResponse)
def replace_hall(
    booking_id: int,
    request: HallReplacementRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.replace_hall(booking_id, request.hall_id)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


@router.post(
    "/api/bookings/{booking_id}/vendor-bookings/{vendor_booking_id}/replace",
    response_model=BookingResponse,
)
def replace_vendor(
    booking_id: int,
    vendor_booking_id: int,
    request: VendorReplacementRequest,
    service: BookingService = Depends(get_booking_service),
):
    services = [
        ServiceRequest(
            vendor_id=request.vendor_id,
            service_item_id=item.service_item_id,
            quantity=item.quantity,
        )
        for item in request.services
    ]
    try:
        booking = service.replace_vendor(booking_id, vendor_booking_id, request.vendor_id, services)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


# -----------------------------
# Payment, confirmation and status
# -----------------------------
@router.post("/api/bookings/{booking_id}/payment/order", response_model=PaymentOrderResponse)
def create_payment_order(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    try:
        order = service.create_payment_order(booking_id)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except PaymentGatewayNotConfiguredError as exc:
        logger.error("Payment gateway not configured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway is not configured",
        ) from exc

    return PaymentOrderResponse(
        booking_id=booking_id,
        order_id=order.order_id,
        amount=order.amount_minor,
        currency=order.currency,
        key_id=order.key_id,
    )


@router.post("/api/bookings/{booking_id}/payment/verify", response_model=BookingResponse)
def verify_payment(
    booking_id: int,
    request: RazorpayVerifyRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.record_payment(
            booking_id=booking_id,
            order_id=request.razorpay_order_id,
            payment_id=request.razorpay_payment_id,
            signature=request.razorpay_signature,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except PaymentGatewayNotConfiguredError as exc:
        logger.error("Payment gateway not configured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway is not configured",
        ) from exc

    return BookingResponse.model_validate(booking)


@router.post("/api/bookings/{booking_id}/confirm", response_model=ConfirmationResponse)
def confirm_booking(
    booking_id: int,
    request: ConfirmRequest | None = None,
    service: BookingService = Depends(get_booking_service),
):
    confirmed_by = request.confirmed_by if request else "system"
    try:
        outcome = service.confirm_booking(booking_id, confirmed_by=confirmed_by)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return _confirmation_response(outcome)


@router.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    request: CancelRequest | None = None,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.cancel_booking(booking_id, reason=request.reason if request else None)
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc

    return BookingResponse.model_validate(booking)


@router.put("/api/bookings/{booking_id}/status", response_model=ConfirmationResponse)
def update_booking_status(
    booking_id: int,
    request: StatusUpdateRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        outcome = service.update_status(
            booking_id,
            request.status,
            reason=request.reason,
            changed_by=request.changed_by,
        )
    except BookingPlatformError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Error updating status of booking %s", booking_id)
        raise unexpected_error("booking status update") from exc

    return _confirmation_response(outcome)


def _confirmation_response(outcome) -> ConfirmationResponse:
    invoice = outcome.invoice
    return ConfirmationResponse(
        booking_id=outcome.booking.id,
        status=outcome.booking.status.value,
        invoice_id=invoice.id if invoice else None,
        invoice_number=invoice.invoice_number if invoice else None,
        # Internal error text stays in the logs.
        invoice_error="Invoice generation failed; reconciliation pending" if outcome.invoice_error else None,
    )


# -----------------------------
# Hall availability
# -----------------------------
@router.get("/api/halls/{hall_id}/availability", response_model=AvailabilityResponse)
def hall_availability(
    hall_id: int,
    event_date: date,
    start_time: time,
    end_time: time,
    service: BookingService = Depends(get_booking_service),
):
    conflicts = service.find_conflicting_bookings(hall_id, event_date, start_time, end_time)
    return AvailabilityResponse(
        hall_id=hall_id,
        event_date=event_date,
        start_time=start_time,
        end_time=end_time,
        available=not conflicts,
        conflicting_booking_ids=[b.id for b in conflicts],
    )


@router.get("/api/halls/{hall_id}/time-slots", response_model=list[TimeSlotResponse])
def hall_time_slots(
    hall_id: int,
    event_date: date,
    service: BookingService = Depends(get_booking_service),
):
    try:
        slots = service.available_time_slots(hall_id, event_date)
    except NotFoundError as exc:
        raise to_http_error(exc) from exc

    return [
        TimeSlotResponse(
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_available=slot.is_available,
        )
        for slot in slots
    ]
