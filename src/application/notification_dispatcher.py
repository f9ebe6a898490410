import logging

from sqlalchemy.orm import Session

from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.outbox_repository import OutboxRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Records booking status changes in the outbox for delivery elsewhere.

    Fire-and-forget: a failure to record a notification is logged and
    never propagates into the workflow that triggered it.
    """

    def __init__(self, db: Session):
        self.db = db
        self.outbox = OutboxRepository(db)

    def booking_status_changed(self, booking: Booking, previous_status, reason: str | None = None) -> None:
        payload = {
            "booking_id": booking.id,
            "hall_id": booking.hall_id,
            "customer_id": booking.customer_id,
            "previous_status": previous_status.value if previous_status else None,
            "new_status": booking.status.value,
        }
        if reason:
            payload["reason"] = reason

        self._dispatch(
            aggregate_id=str(booking.id),
            event_type="BOOKING_STATUS_CHANGED",
            payload=payload,
            dedupe_key=f"booking:{booking.id}:status:{booking.version}:{booking.status.value}",
        )

    def invoice_issued(self, booking: Booking, invoice_number: str) -> None:
        self._dispatch(
            aggregate_id=str(booking.id),
            event_type="BOOKING_INVOICE_ISSUED",
            payload={
                "booking_id": booking.id,
                "customer_id": booking.customer_id,
                "invoice_number": invoice_number,
            },
            dedupe_key=f"booking:{booking.id}:invoice:{invoice_number}",
        )

    def _dispatch(self, aggregate_id: str, event_type: str, payload: dict, dedupe_key: str) -> None:
        try:
            with self.db.begin_nested():
                self.outbox.add_event(
                    aggregate_type="booking",
                    aggregate_id=aggregate_id,
                    event_type=event_type,
                    payload=payload,
                    dedupe_key=dedupe_key,
                )
        except Exception:
            logger.exception(
                "Failed to record %s notification for booking %s",
                event_type,
                aggregate_id,
            )
