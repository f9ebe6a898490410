import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.application.cost_aggregator import CostAggregator
from src.application.invoice_generator import InvoiceGenerator
from src.application.notification_dispatcher import NotificationDispatcher
from src.config import Settings, get_settings
from src.domain.availability import (
    TimeSlot,
    compute_time_slots,
    find_conflicts,
    validate_booking_window,
)
from src.domain.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from src.domain.financials import (
    FinancialBreakdown,
    ServiceRequest,
    TaxCalculator,
    VendorCostBreakdown,
)
from src.domain.state_machine import (
    ApprovalStatus,
    BookingStateMachine,
    BookingStatus,
    VendorApprovalSummary,
    aggregate_vendor_approvals,
    status_after_hall_approval,
    summarize_vendor_approvals,
)
from src.infrastructure.db.models import (
    Booking,
    Invoice,
    PaymentWebhookEvent,
    VendorBooking,
    VendorBookingService,
)
from src.infrastructure.payments.razorpay_gateway import PaymentOrder, RazorpayGateway
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ApprovalResult:
    booking: Booking
    message: str

    @property
    def new_status(self) -> BookingStatus:
        return self.booking.status

    @property
    def can_proceed_to_payment(self) -> bool:
        return self.booking.status is BookingStatus.READY_FOR_PAYMENT


@dataclass
class ConfirmationOutcome:
    """
    Result of a confirmation. The confirmation itself always stands;
    invoice_error carries an invoicing failure for the caller to alert on.
    """

    booking: Booking
    invoice: Optional[Invoice] = None
    invoice_error: Optional[str] = None

    @property
    def invoiced(self) -> bool:
        return self.invoice is not None


class BookingService:
    """Application service coordinating the booking approval and settlement workflow."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        payment_gateway: Optional[RazorpayGateway] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.booking_repository = BookingRepository(db)
        self.catalog = CatalogRepository(db)
        self.tax_calculator = TaxCalculator(self.settings.tax_rates)
        self.cost_aggregator = CostAggregator(db, self.tax_calculator, self.settings.currency)
        self.invoice_generator = InvoiceGenerator(db, self.settings, clock=clock)
        self.notifications = NotificationDispatcher(db)
        self.payment_gateway = payment_gateway or RazorpayGateway(
            self.settings.razorpay_key_id,
            self.settings.razorpay_key_secret,
        )

    # -----------------------------
    # Queries
    # -----------------------------
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def find_conflicting_bookings(
        self,
        hall_id: int,
        event_date: date,
        start_time: time,
        end_time: time,
    ) -> list[Booking]:
        same_day = self.booking_repository.list_for_hall_on_date(hall_id, event_date)
        return find_conflicts(same_day, event_date, start_time, end_time)

    def is_hall_available(
        self,
        hall_id: int,
        event_date: date,
        start_time: time,
        end_time: time,
    ) -> bool:
        return not self.find_conflicting_bookings(hall_id, event_date, start_time, end_time)

    def available_time_slots(self, hall_id: int, event_date: date) -> list[TimeSlot]:
        if self.catalog.get_hall(hall_id) is None:
            raise NotFoundError("Hall", hall_id)
        return compute_time_slots(self.booking_repository.list_for_hall_on_date(hall_id, event_date))

    def vendor_approval_status(self, booking_id: int) -> VendorApprovalSummary:
        booking = self.get_booking(booking_id)
        return summarize_vendor_approvals(vb.status for vb in booking.vendor_bookings)

    # -----------------------------
    # Pricing and creation
    # -----------------------------
    def quote(
        self,
        hall_id: int,
        event_date: date,
        start_time: time,
        end_time: time,
        services: Optional[Iterable[ServiceRequest]] = None,
        discount_code: Optional[str] = None,
    ) -> FinancialBreakdown:
        hall = self.catalog.get_hall(hall_id)
        if hall is None:
            raise NotFoundError("Hall", hall_id)

        return self.cost_aggregator.calculate(
            hall_id,
            datetime.combine(event_date, start_time),
            datetime.combine(event_date, end_time),
            services=list(services or []),
            discount_code=discount_code,
            region=hall.city,
        )

    def create_booking(
        self,
        customer_id: int,
        hall_id: int,
        event_date: date,
        start_time: time,
        end_time: time,
        services: Optional[Iterable[ServiceRequest]] = None,
        event_type: str = "",
        guest_count: int = 0,
        discount_code: Optional[str] = None,
        visit_date: Optional[date] = None,
        comments: str = "",
    ) -> Booking:
        services = list(services or [])
        self._validate_services(services)
        validate_booking_window(event_date, start_time, end_time, today=self.clock().date())

        if self.catalog.get_customer(customer_id) is None:
            raise NotFoundError("Customer", customer_id)
        hall = self._bookable_hall(hall_id)

        if self.find_conflicting_bookings(hall_id, event_date, start_time, end_time):
            raise ConflictError("Hall is not available for the selected date and time")

        breakdown = self.quote(hall_id, event_date, start_time, end_time, services, discount_code)

        booking = Booking(
            hall_id=hall_id,
            customer_id=customer_id,
            status=BookingStatus.PENDING,
            event_type=event_type,
            guest_count=guest_count,
            visit_date=visit_date,
            event_date=event_date,
            start_time=start_time,
            end_time=end_time,
            comments=comments,
            coupon_code=discount_code,
            region=hall.city,
            payment_status="Pending",
        )
        self._apply_breakdown(booking, breakdown)
        booking.vendor_bookings.extend(_vendor_booking(vendor) for vendor in breakdown.vendor_breakdown)

        self.booking_repository.add(booking)
        self.db.flush()
        self.notifications.booking_status_changed(booking, None)
        logger.info(
            "Booking %s created for hall %s on %s (total %s %s)",
            booking.id,
            hall_id,
            event_date,
            booking.total_amount,
            booking.currency,
        )
        return booking

    def recalculate_financials(self, booking_id: int) -> Booking:
        """Re-prices a booking from the current catalog until it is paid for."""

        def action():
            booking = self._lock(booking_id)
            if (
                booking.financials_frozen_at is not None
                or BookingStateMachine.is_terminal(booking.status)
                or booking.status is BookingStatus.PAID
            ):
                raise ConflictError(f"Booking {booking_id} financials are frozen")
            self._reprice(booking)
            return booking

        booking = self._run_transition(action)
        logger.info("Booking %s re-priced (total %s %s)", booking_id, booking.total_amount, booking.currency)
        return booking

    def add_vendor_services(self, booking_id: int, services: Iterable[ServiceRequest]) -> Booking:
        """Adds vendor services to a booking the hall has not yet approved."""
        services = list(services)
        if not services:
            raise ValidationError("At least one service is required")
        self._validate_services(services)

        def action():
            booking = self._lock(booking_id)
            if booking.status not in (BookingStatus.DRAFT, BookingStatus.PENDING):
                raise ConflictError(
                    f"Booking {booking_id} is {booking.status.value}; "
                    f"vendor services can only be added before hall approval"
                )

            _, vendors = self.cost_aggregator.compute_vendor_services_cost(services)
            current = {vb.vendor_id: vb for vb in booking.vendor_bookings}
            for vendor in vendors:
                if vendor.vendor_id in current:
                    current[vendor.vendor_id].services.extend(_service_lines(vendor))
                else:
                    booking.vendor_bookings.append(_vendor_booking(vendor))
            self._reprice(booking)
            return booking

        booking = self._run_transition(action)
        logger.info("Added %s service(s) to booking %s", len(services), booking_id)
        return booking

    def _reprice(self, booking: Booking) -> None:
        # Rejected vendor bookings stay on record but are no longer charged for.
        active = [vb for vb in booking.vendor_bookings if vb.status is not ApprovalStatus.REJECTED]
        services = [
            ServiceRequest(vb.vendor_id, line.service_item_id, line.quantity)
            for vb in active
            for line in vb.services
        ]
        breakdown = self.quote(
            booking.hall_id,
            booking.event_date,
            booking.start_time,
            booking.end_time,
            services,
            booking.coupon_code,
        )
        self._apply_breakdown(booking, breakdown)

        priced = {v.vendor_id: v for v in breakdown.vendor_breakdown}
        for vendor_booking in active:
            vendor = priced.get(vendor_booking.vendor_id)
            if vendor is None:
                continue
            vendor_booking.total_amount = vendor.total_amount
            for stored, line in zip(vendor_booking.services, vendor.services):
                stored.service_name = line.service_name
                stored.unit_price = line.unit_price
                stored.total_price = line.total_price

    def _apply_breakdown(self, booking: Booking, breakdown: FinancialBreakdown) -> None:
        booking.hall_cost = breakdown.hall_cost
        booking.vendor_services_cost = breakdown.vendor_services_cost
        booking.subtotal = breakdown.subtotal
        booking.discount_amount = breakdown.discount_amount
        booking.tax_rate = breakdown.tax_rate
        booking.tax_amount = breakdown.tax_amount
        booking.total_amount = breakdown.total_amount
        booking.currency = breakdown.currency

    # -----------------------------
    # Approvals
    # -----------------------------
    def hall_approval(
        self,
        booking_id: int,
        approved: bool,
        rejection_reason: Optional[str] = None,
    ) -> ApprovalResult:

        def action():
            booking = self._lock(booking_id)
            previous = booking.status
            target = BookingStatus.HALL_APPROVED if approved else BookingStatus.HALL_REJECTED
            # A rejected vendor re-opens the flow through replace_vendor, not the hall.
            if previous not in (BookingStatus.DRAFT, BookingStatus.PENDING):
                raise InvalidStateTransitionError(previous.value, target.value)

            if not approved:
                self._transition(booking, BookingStatus.HALL_REJECTED)
                booking.comments = f"Hall Rejection: {rejection_reason or 'No reason provided'}"
                return ApprovalResult(booking, "Booking rejected"), previous

            self._transition(booking, BookingStatus.HALL_APPROVED)
            self._enter_vendor_approval(booking)
            return ApprovalResult(booking, "Booking approved successfully"), previous

        result, previous = self._run_transition(action)
        self.notifications.booking_status_changed(result.booking, previous, reason=rejection_reason)
        logger.info(
            "Hall %s booking %s: %s -> %s",
            "approved" if approved else "rejected",
            booking_id,
            previous.value,
            result.new_status.value,
        )
        return result

    def vendor_approval(
        self,
        booking_id: int,
        vendor_booking_id: int,
        approved: bool,
        rejection_reason: Optional[str] = None,
    ) -> ApprovalResult:

        def action():
            # Lock and re-read the whole vendor set so the "am I last?"
            # decision is made against a consistent snapshot.
            booking = self._lock(booking_id)
            previous = booking.status

            vendor_booking = next(
                (vb for vb in booking.vendor_bookings if vb.id == vendor_booking_id),
                None,
            )
            if vendor_booking is None:
                raise NotFoundError("Vendor booking", vendor_booking_id)
            if booking.status is not BookingStatus.VENDORS_APPROVING:
                raise ConflictError(
                    f"Booking {booking_id} is {booking.status.value}; "
                    f"vendor responses are only accepted while vendors are approving"
                )

            now = self.clock()
            if approved:
                vendor_booking.status = ApprovalStatus.APPROVED
                vendor_booking.approved_at = now
                vendor_booking.rejected_at = None
                vendor_booking.rejection_reason = None
            else:
                vendor_booking.status = ApprovalStatus.REJECTED
                vendor_booking.rejected_at = now
                vendor_booking.approved_at = None
                vendor_booking.rejection_reason = rejection_reason or "No reason provided"

            # Touch the booking row so concurrent responders collide on its version.
            booking.updated_at = now

            next_status = aggregate_vendor_approvals(vb.status for vb in booking.vendor_bookings)
            if next_status is not None:
                self._transition(booking, next_status)
            if next_status is BookingStatus.READY_FOR_PAYMENT and not approved:
                # Every vendor declined: only the hall is left to pay for.
                self._reprice(booking)

            message = "Vendor service approved" if approved else "Vendor service rejected"
            return ApprovalResult(booking, message), previous

        result, previous = self._run_transition(action)
        if result.new_status is not previous:
            self.notifications.booking_status_changed(result.booking, previous)
        logger.info(
            "Vendor booking %s on booking %s %s; booking status %s",
            vendor_booking_id,
            booking_id,
            "approved" if approved else "rejected",
            result.new_status.value,
        )
        return result

    # -----------------------------
    # Replacements after a rejection
    # -----------------------------
    def replace_hall(self, booking_id: int, new_hall_id: int) -> Booking:
        """Moves a hall-rejected booking to another hall and back to Pending, re-priced."""
        hall = self._bookable_hall(new_hall_id)

        def action():
            booking = self._lock(booking_id)
            previous = booking.status
            if previous is not BookingStatus.HALL_REJECTED:
                raise ConflictError(
                    f"Booking {booking_id} is {previous.value}; the hall can only be replaced after a rejection"
                )

            conflicts = [
                other
                for other in self.find_conflicting_bookings(
                    new_hall_id,
                    booking.event_date,
                    booking.start_time,
                    booking.end_time,
                )
                if other.id != booking.id
            ]
            if conflicts:
                raise ConflictError("Hall is not available for the selected date and time")

            booking.hall_id = new_hall_id
            booking.region = hall.city
            self._transition(booking, BookingStatus.PENDING)
            self._reprice(booking)
            return booking, previous

        booking, previous = self._run_transition(action)
        self.notifications.booking_status_changed(booking, previous, reason="Hall replaced")
        logger.info("Booking %s moved to hall %s; awaiting hall approval", booking_id, new_hall_id)
        return booking

    def replace_vendor(
        self,
        booking_id: int,
        vendor_booking_id: int,
        new_vendor_id: int,
        services: Iterable[ServiceRequest],
    ) -> Booking:
        """
        Swaps a rejected vendor booking for a new vendor and restarts vendor
        approval. The hall approval stands, so the booking re-enters at
        HallApproved and every vendor is asked again.
        """
        services = list(services)
        if not services:
            raise ValidationError("A replacement vendor needs at least one service")
        if any(s.vendor_id != new_vendor_id for s in services):
            raise ValidationError(f"All replacement services must belong to vendor {new_vendor_id}")
        self._validate_services(services)

        def action():
            booking = self._lock(booking_id)
            previous = booking.status

            rejected = next(
                (vb for vb in booking.vendor_bookings if vb.id == vendor_booking_id),
                None,
            )
            if rejected is None:
                raise NotFoundError("Vendor booking", vendor_booking_id)
            if previous is not BookingStatus.VENDOR_REJECTED or rejected.status is not ApprovalStatus.REJECTED:
                raise ConflictError("Only a rejected vendor can be replaced")
            if any(vb.vendor_id == new_vendor_id for vb in booking.vendor_bookings if vb is not rejected):
                raise ValidationError(f"Vendor {new_vendor_id} is already part of booking {booking_id}")

            _, vendors = self.cost_aggregator.compute_vendor_services_cost(services)
            booking.vendor_bookings.remove(rejected)
            booking.vendor_bookings.extend(_vendor_booking(vendor) for vendor in vendors)

            self._transition(booking, BookingStatus.HALL_APPROVED)
            self._enter_vendor_approval(booking)
            self._reprice(booking)
            return booking, previous

        booking, previous = self._run_transition(action)
        self.notifications.booking_status_changed(booking, previous, reason="Vendor replaced")
        logger.info(
            "Vendor booking %s on booking %s replaced by vendor %s; vendor approval restarted",
            vendor_booking_id,
            booking_id,
            new_vendor_id,
        )
        return booking

    # -----------------------------
    # Payment
    # -----------------------------
    def create_payment_order(self, booking_id: int) -> PaymentOrder:
        booking = self._lock(booking_id)
        if booking.status is not BookingStatus.READY_FOR_PAYMENT:
            raise ConflictError(f"Booking {booking_id} is not ready for payment")

        order = self.payment_gateway.create_order(
            amount=booking.total_amount,
            currency=booking.currency,
            receipt=f"booking-{booking.id}",
        )
        booking.payment_order_id = order.order_id
        self.db.flush()
        logger.info("Payment order %s created for booking %s", order.order_id, booking_id)
        return order

    def record_payment(
        self,
        booking_id: int,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> Booking:
        booking = self._lock(booking_id)

        if not booking.payment_order_id:
            raise ValidationError("Order not created for this booking")
        if order_id != booking.payment_order_id:
            raise ConflictError("Order id does not match this booking.")
        if booking.status is BookingStatus.PAID and booking.payment_id == payment_id:
            return booking

        existing_event = self.db.execute(
            select(PaymentWebhookEvent)
            .where(PaymentWebhookEvent.provider == self.payment_gateway.provider)
            .where(PaymentWebhookEvent.payment_id == payment_id)
        ).scalar_one_or_none()
        if existing_event and existing_event.booking_id != booking.id:
            raise ConflictError("Payment id already linked with another booking.")

        self.payment_gateway.verify_signature(order_id, payment_id, signature)

        previous = booking.status
        self._transition(booking, BookingStatus.PAID)
        booking.paid_at = self.clock()
        booking.payment_id = payment_id
        booking.payment_status = "Paid"
        booking.payment_method = "Online"

        if existing_event is None:
            self.db.add(
                PaymentWebhookEvent(
                    provider=self.payment_gateway.provider,
                    payment_id=payment_id,
                    booking_id=booking.id,
                    payload_hash=_hash_payment_payload(order_id, payment_id, signature),
                    status="PROCESSED",
                )
            )

        self.db.flush()
        self.notifications.booking_status_changed(booking, previous)
        logger.info("Payment %s recorded for booking %s", payment_id, booking_id)
        return booking

    def mark_paid(
        self,
        booking_id: int,
        payment_reference: Optional[str] = None,
        recorded_by: str = "system",
    ) -> Booking:
        """Records a payment settled outside the gateway, such as a bank transfer."""

        def action():
            booking = self._lock(booking_id)
            previous = booking.status
            self._transition(booking, BookingStatus.PAID)
            booking.paid_at = self.clock()
            booking.payment_status = "Paid"
            booking.payment_method = "Manual"
            if payment_reference:
                booking.payment_id = payment_reference
            return booking, previous

        booking, previous = self._run_transition(action)
        self.notifications.booking_status_changed(booking, previous, reason=payment_reference)
        logger.info("Booking %s marked paid by %s", booking_id, recorded_by)
        return booking

    # -----------------------------
    # Confirmation, cancellation, admin status changes
    # -----------------------------
    def confirm_booking(self, booking_id: int, confirmed_by: str = "system") -> ConfirmationOutcome:

        def action():
            booking = self._lock(booking_id)
            previous = booking.status
            self._transition(booking, BookingStatus.CONFIRMED)
            booking.financials_frozen_at = self.clock()
            return booking, previous

        booking, previous = self._run_transition(action)
        self.notifications.booking_status_changed(booking, previous)
        # The confirmation is authoritative; it is committed before invoicing starts.
        self.db.commit()
        logger.info("Booking %s confirmed by %s", booking_id, confirmed_by)

        try:
            invoice = self.invoice_generator.generate_for_booking(booking_id, created_by=confirmed_by)
            self.notifications.invoice_issued(booking, invoice.invoice_number)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.exception(
                "Invoice generation failed for confirmed booking %s; reconciliation required",
                booking_id,
            )
            return ConfirmationOutcome(
                booking=self.get_booking(booking_id),
                invoice=None,
                invoice_error=f"{type(exc).__name__}: {exc}",
            )

        return ConfirmationOutcome(booking=booking, invoice=invoice)

    def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> Booking:

        def action():
            booking = self._lock(booking_id)
            previous = booking.status
            self._transition(booking, BookingStatus.CANCELLED)
            if reason:
                booking.comments = f"Cancelled: {reason}"
            return booking, previous

        booking, previous = self._run_transition(action)
        self.notifications.booking_status_changed(booking, previous, reason=reason)
        logger.info("Booking %s cancelled", booking_id)
        return booking

    def update_status(
        self,
        booking_id: int,
        status: BookingStatus,
        reason: Optional[str] = None,
        changed_by: str = "system",
    ) -> ConfirmationOutcome:
        """
        Administrative status change. Each target runs through the same
        operation the workflow uses, so its side effects always apply.
        Statuses the workflow derives on its own cannot be set directly.
        """
        logger.info("Status change of booking %s to %s requested by %s", booking_id, status.value, changed_by)

        if status is BookingStatus.CONFIRMED:
            return self.confirm_booking(booking_id, confirmed_by=changed_by)
        if status is BookingStatus.CANCELLED:
            booking = self.cancel_booking(booking_id, reason)
        elif status in (BookingStatus.HALL_APPROVED, BookingStatus.HALL_REJECTED):
            approved = status is BookingStatus.HALL_APPROVED
            booking = self.hall_approval(booking_id, approved, rejection_reason=reason).booking
        elif status is BookingStatus.PAID:
            booking = self.mark_paid(booking_id, payment_reference=reason, recorded_by=changed_by)
        else:
            raise ValidationError(
                f"Status {status.value} is derived by the approval workflow and cannot be set directly"
            )
        return ConfirmationOutcome(booking=booking)

    def generate_invoice(self, booking_id: int, created_by: str = "system") -> Invoice:
        """Out-of-band invoicing for confirmed bookings the confirmation path missed."""
        booking = self.get_booking(booking_id)
        if booking.status is not BookingStatus.CONFIRMED:
            raise ConflictError(f"Booking {booking_id} is {booking.status.value}; only confirmed bookings are invoiced")

        invoice = self.invoice_generator.generate_for_booking(booking_id, created_by=created_by)
        self.notifications.invoice_issued(booking, invoice.invoice_number)
        return invoice

    # -----------------------------
    # Internals
    # -----------------------------
    def _lock(self, booking_id: int) -> Booking:
        booking = self.booking_repository.lock_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)

    def _enter_vendor_approval(self, booking: Booking) -> None:
        # Called in HallApproved; entering VendorsApproving always starts from a clean slate.
        next_status = status_after_hall_approval(len(booking.vendor_bookings))
        self._transition(booking, next_status)

        if next_status is BookingStatus.VENDORS_APPROVING:
            for vendor_booking in booking.vendor_bookings:
                vendor_booking.status = ApprovalStatus.PENDING
                vendor_booking.approved_at = None
                vendor_booking.rejected_at = None
                vendor_booking.rejection_reason = None

    def _bookable_hall(self, hall_id: int):
        hall = self.catalog.get_hall(hall_id)
        if hall is None:
            raise NotFoundError("Hall", hall_id)
        if not hall.is_active:
            raise ValidationError(f"Hall {hall_id} is not accepting bookings")
        return hall

    def _validate_services(self, services: list[ServiceRequest]) -> None:
        if any(s.quantity <= 0 for s in services):
            raise ValidationError("Service quantity must be positive")
        for vendor_id in {s.vendor_id for s in services}:
            if self.catalog.get_vendor(vendor_id) is None:
                raise NotFoundError("Vendor", vendor_id)

    def _run_transition(self, action):
        """
        Runs a read-modify-write against the booking and flushes it.
        A stale row version means another writer got in first: roll back,
        re-read and re-apply, up to the configured number of attempts.
        """
        attempts = self.settings.status_transition_max_retries
        for attempt in range(1, attempts + 1):
            try:
                result = action()
                self.db.flush()
                return result
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    "Concurrent update detected on booking (attempt %s/%s). Retrying.",
                    attempt,
                    attempts,
                )
        raise ConflictError("Booking was modified concurrently; please retry")


def _service_lines(vendor: VendorCostBreakdown) -> list[VendorBookingService]:
    return [
        VendorBookingService(
            service_item_id=line.service_item_id,
            service_name=line.service_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
        )
        for line in vendor.services
    ]


def _vendor_booking(vendor: VendorCostBreakdown) -> VendorBooking:
    return VendorBooking(
        vendor_id=vendor.vendor_id,
        status=ApprovalStatus.PENDING,
        total_amount=vendor.total_amount,
        services=_service_lines(vendor),
    )


def _hash_payment_payload(order_id: str, payment_id: str, signature: str) -> str:
    payload = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature,
    }
    encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
