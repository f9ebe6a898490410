# src/infrastructure/repositories/booking_repository.py

from datetime import date

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Booking, Invoice, VendorBooking
from src.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.vendor_bookings).selectinload(VendorBooking.services)
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_booking(self, booking_id: int) -> Booking | None:
        """
        SELECT ... FOR UPDATE on the booking row.
        The booking (with its vendor bookings) is the unit of mutual
        exclusion for workflow transitions, so everything is re-read
        from the database rather than trusted from the identity map.
        """

        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = self.db.execute(stmt).scalar_one_or_none()
        if booking is None:
            return None

        vendor_stmt = (
            select(VendorBooking)
            .where(VendorBooking.booking_id == booking_id)
            .order_by(VendorBooking.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        self.db.execute(vendor_stmt).scalars().all()
        return booking

    def list_for_hall_on_date(
        self,
        hall_id: int,
        event_date: date,
    ) -> list[Booking]:

        stmt = (
            select(Booking)
            .where(Booking.hall_id == hall_id)
            .where(Booking.event_date == event_date)
            .where(Booking.status != BookingStatus.CANCELLED)
            .order_by(Booking.start_time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_confirmed_without_invoice(self) -> list[Booking]:
        stmt = (
            select(Booking)
            .outerjoin(Invoice, Invoice.booking_id == Booking.id)
            .where(Booking.status == BookingStatus.CONFIRMED)
            .where(Invoice.id.is_(None))
            .order_by(Booking.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status
