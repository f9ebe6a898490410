from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from src.domain.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from src.domain.state_machine import ApprovalStatus, BookingStatus
from src.domain.financials import ServiceRequest
from src.infrastructure.db.models import Hall, OutboxEvent, ServiceItem, Vendor

TWO_VENDORS = [("caterer", "buffet", 2), ("florist", "flowers", 1)]


def _vendor_ids(service, booking_id):
    return [vb.id for vb in service.get_booking(booking_id).vendor_bookings]


# ---------------------
# CREATION
# ---------------------

def test_create_booking_stores_financials_and_vendor_bookings(make_booking):
    booking = make_booking(services=TWO_VENDORS)

    assert booking.status is BookingStatus.PENDING
    assert booking.hall_cost == Decimal("1000.00")
    assert booking.vendor_services_cost == Decimal("550.00")
    assert booking.tax_amount == Decimal("232.50")
    assert booking.total_amount == Decimal("1782.50")
    assert booking.region == "Riyadh"
    assert [vb.status for vb in booking.vendor_bookings] == [ApprovalStatus.PENDING] * 2
    assert [vb.total_amount for vb in booking.vendor_bookings] == [Decimal("400.00"), Decimal("150.00")]


def test_overlapping_booking_is_rejected(make_booking):
    make_booking(start=time(18), end=time(22))

    with pytest.raises(ConflictError):
        make_booking(start=time(20), end=time(23))


def test_back_to_back_booking_is_allowed(make_booking):
    make_booking(start=time(10), end=time(14))
    second = make_booking(start=time(14), end=time(18))

    assert second.status is BookingStatus.PENDING


def test_cancelled_booking_frees_the_slot(service, make_booking):
    first = make_booking()
    service.cancel_booking(first.id, reason="Change of plans")

    assert service.is_hall_available(first.hall_id, first.event_date, time(18), time(22))
    assert make_booking().id != first.id


def test_window_validation_runs_before_anything_is_stored(make_booking):
    with pytest.raises(ValidationError):
        make_booking(event_date=date(2026, 2, 1))
    with pytest.raises(ValidationError):
        make_booking(start=time(18), end=time(19))


def test_unknown_customer_or_hall(service, catalog):
    with pytest.raises(NotFoundError):
        service.create_booking(9999, catalog["hall"].id, date(2026, 3, 10), time(18), time(22))
    with pytest.raises(NotFoundError):
        service.create_booking(catalog["customer"].id, 9999, date(2026, 3, 10), time(18), time(22))


# ---------------------
# HALL APPROVAL
# ---------------------

def test_hall_approval_moves_to_vendors_approving(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)

    result = service.hall_approval(booking.id, approved=True)

    assert result.message == "Booking approved successfully"
    assert result.new_status is BookingStatus.VENDORS_APPROVING
    assert not result.can_proceed_to_payment


def test_hall_approval_without_vendors_is_payable(service, make_booking):
    booking = make_booking()

    result = service.hall_approval(booking.id, approved=True)

    assert result.new_status is BookingStatus.READY_FOR_PAYMENT
    assert result.can_proceed_to_payment


def test_hall_rejection_records_reason(service, make_booking):
    booking = make_booking()

    result = service.hall_approval(booking.id, approved=False, rejection_reason="Double booked")

    assert result.message == "Booking rejected"
    assert result.new_status is BookingStatus.HALL_REJECTED
    assert result.booking.comments == "Hall Rejection: Double booked"


def test_hall_rejection_without_reason(service, make_booking):
    booking = make_booking()

    result = service.hall_approval(booking.id, approved=False)

    assert result.booking.comments == "Hall Rejection: No reason provided"


def test_hall_cannot_approve_twice(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)

    with pytest.raises(InvalidStateTransitionError):
        service.hall_approval(booking.id, approved=True)


def test_hall_approval_for_missing_booking(service, catalog):
    with pytest.raises(NotFoundError):
        service.hall_approval(9999, approved=True)


# ---------------------
# VENDOR APPROVAL
# ---------------------

def test_all_vendors_approve(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, second = _vendor_ids(service, booking.id)

    partial = service.vendor_approval(booking.id, first, approved=True)
    assert partial.new_status is BookingStatus.VENDORS_APPROVING
    assert partial.message == "Vendor service approved"

    final = service.vendor_approval(booking.id, second, approved=True)
    assert final.new_status is BookingStatus.READY_FOR_PAYMENT
    assert final.can_proceed_to_payment

    summary = service.vendor_approval_status(booking.id)
    assert summary.all_approved
    assert summary.approved_count == 2


def test_all_vendors_reject_is_still_payable(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, second = _vendor_ids(service, booking.id)

    service.vendor_approval(booking.id, first, approved=False, rejection_reason="Fully booked")
    result = service.vendor_approval(booking.id, second, approved=False)

    assert result.new_status is BookingStatus.READY_FOR_PAYMENT
    vendor_bookings = service.get_booking(booking.id).vendor_bookings
    assert vendor_bookings[0].rejection_reason == "Fully booked"
    assert vendor_bookings[1].rejection_reason == "No reason provided"
    assert all(vb.rejected_at is not None for vb in vendor_bookings)


def test_mixed_vendor_outcome(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, second = _vendor_ids(service, booking.id)

    service.vendor_approval(booking.id, first, approved=True)
    result = service.vendor_approval(booking.id, second, approved=False)

    assert result.new_status is BookingStatus.VENDOR_REJECTED
    assert not result.can_proceed_to_payment

    summary = service.vendor_approval_status(booking.id)
    assert (summary.approved_count, summary.rejected_count, summary.pending_count) == (1, 1, 0)
    assert not summary.can_proceed_to_payment


def test_vendor_cannot_respond_before_hall_approval(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    first, _ = _vendor_ids(service, booking.id)

    with pytest.raises(ConflictError):
        service.vendor_approval(booking.id, first, approved=True)


def test_vendor_bookings_are_frozen_once_terminal(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, _ = _vendor_ids(service, booking.id)
    service.cancel_booking(booking.id)

    with pytest.raises(ConflictError):
        service.vendor_approval(booking.id, first, approved=True)


def test_unknown_vendor_booking(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)

    with pytest.raises(NotFoundError):
        service.vendor_approval(booking.id, 9999, approved=True)


def test_vendor_booking_of_another_booking(service, make_booking):
    mine = make_booking(services=TWO_VENDORS)
    other = make_booking(event_date=date(2026, 3, 11), services=TWO_VENDORS)
    service.hall_approval(mine.id, approved=True)
    foreign, _ = _vendor_ids(service, other.id)

    with pytest.raises(NotFoundError):
        service.vendor_approval(mine.id, foreign, approved=True)


# ---------------------
# CONCURRENCY AND NOTIFICATIONS
# ---------------------

def test_stale_row_version_is_retried(service, make_booking):
    booking = make_booking()
    attempts = []

    def action():
        attempts.append(1)
        if len(attempts) == 1:
            raise StaleDataError("row version changed")
        return service.get_booking(booking.id)

    service._run_transition(action)

    assert len(attempts) == 2


def test_retries_are_bounded(service):
    def action():
        raise StaleDataError("row version changed")

    with pytest.raises(ConflictError):
        service._run_transition(action)


def test_status_changes_are_recorded_in_outbox(service, make_booking, db_session):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    db_session.commit()

    events = db_session.execute(
        select(OutboxEvent)
        .where(OutboxEvent.aggregate_id == str(booking.id))
        .order_by(OutboxEvent.created_at)
    ).scalars().all()

    assert {e.event_type for e in events} == {"BOOKING_STATUS_CHANGED"}
    assert len(events) == 2
    assert any('"new_status": "VendorsApproving"' in e.payload for e in events)


def test_notification_failure_does_not_break_workflow(service, make_booking, monkeypatch):
    booking = make_booking()

    def broken(*args, **kwargs):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(service.notifications.outbox, "add_event", broken)

    result = service.hall_approval(booking.id, approved=True)

    assert result.new_status is BookingStatus.READY_FOR_PAYMENT


def test_admin_status_update_validates_transition(service, make_booking):
    booking = make_booking()

    with pytest.raises(InvalidStateTransitionError):
        service.update_status(booking.id, BookingStatus.PAID)


def test_admin_hall_approval_starts_vendor_approval(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)

    outcome = service.update_status(booking.id, BookingStatus.HALL_APPROVED, changed_by="admin")

    assert outcome.booking.status is BookingStatus.VENDORS_APPROVING
    assert outcome.invoice is None
    first, second = _vendor_ids(service, booking.id)
    service.vendor_approval(booking.id, first, approved=True)
    assert service.vendor_approval(booking.id, second, approved=True).can_proceed_to_payment


def test_admin_hall_rejection_records_reason(service, make_booking):
    booking = make_booking()

    outcome = service.update_status(booking.id, BookingStatus.HALL_REJECTED, reason="Closed for renovation")

    assert outcome.booking.status is BookingStatus.HALL_REJECTED
    assert outcome.booking.comments == "Hall Rejection: Closed for renovation"


def test_admin_payment_records_settlement(service, make_booking):
    booking = make_booking()
    service.hall_approval(booking.id, approved=True)

    outcome = service.update_status(booking.id, BookingStatus.PAID, reason="bank-transfer-7")

    assert outcome.booking.status is BookingStatus.PAID
    assert outcome.booking.paid_at is not None
    assert outcome.booking.payment_status == "Paid"
    assert outcome.booking.payment_method == "Manual"
    assert outcome.booking.payment_id == "bank-transfer-7"


@pytest.mark.parametrize(
    "status",
    [
        BookingStatus.DRAFT,
        BookingStatus.PENDING,
        BookingStatus.VENDORS_APPROVING,
        BookingStatus.READY_FOR_PAYMENT,
        BookingStatus.VENDOR_REJECTED,
    ],
)
def test_admin_cannot_force_derived_status(service, make_booking, status):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)

    with pytest.raises(ValidationError):
        service.update_status(booking.id, status)

    assert service.get_booking(booking.id).status is BookingStatus.VENDORS_APPROVING


def test_hall_approval_does_not_reopen_vendor_rejection(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, second = _vendor_ids(service, booking.id)
    service.vendor_approval(booking.id, first, approved=True)
    service.vendor_approval(booking.id, second, approved=False)

    with pytest.raises(InvalidStateTransitionError):
        service.hall_approval(booking.id, approved=True)


# ---------------------
# REPRICING AND REPLACEMENTS
# ---------------------

def test_uniform_vendor_rejection_charges_hall_only(service, make_booking):
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    first, second = _vendor_ids(service, booking.id)

    service.vendor_approval(booking.id, first, approved=False)
    result = service.vendor_approval(booking.id, second, approved=False)

    assert result.new_status is BookingStatus.READY_FOR_PAYMENT
    assert result.booking.hall_cost == Decimal("1000.00")
    assert result.booking.vendor_services_cost == Decimal("0.00")
    assert result.booking.tax_amount == Decimal("150.00")
    assert result.booking.total_amount == Decimal("1150.00")


def test_recalculate_picks_up_catalog_prices(service, make_booking, catalog, db_session):
    booking = make_booking(services=TWO_VENDORS)
    catalog["buffet"].price = Decimal("250.00")
    db_session.commit()

    repriced = service.recalculate_financials(booking.id)

    assert repriced.vendor_services_cost == Decimal("650.00")
    assert repriced.total_amount == Decimal("1897.50")
    caterer_booking = repriced.vendor_bookings[0]
    assert caterer_booking.total_amount == Decimal("500.00")
    assert caterer_booking.services[0].unit_price == Decimal("250.00")


def test_paid_booking_is_not_repriced(service, make_booking):
    booking = make_booking()
    service.hall_approval(booking.id, approved=True)
    service.mark_paid(booking.id)

    with pytest.raises(ConflictError):
        service.recalculate_financials(booking.id)


def test_vendor_services_added_before_hall_approval(service, make_booking, catalog):
    booking = make_booking()

    service.add_vendor_services(booking.id, [ServiceRequest(catalog["caterer"].id, catalog["buffet"].id, 1)])
    updated = service.add_vendor_services(
        booking.id,
        [ServiceRequest(catalog["caterer"].id, catalog["coffee"].id, 3)],
    )

    assert len(updated.vendor_bookings) == 1
    assert [s.service_name for s in updated.vendor_bookings[0].services] == ["Dinner Buffet", "Coffee Station"]
    assert updated.vendor_bookings[0].total_amount == Decimal("299.99")
    assert updated.total_amount == Decimal("1494.99")

    result = service.hall_approval(booking.id, approved=True)
    assert result.new_status is BookingStatus.VENDORS_APPROVING


def test_vendor_services_cannot_be_added_after_hall_approval(service, make_booking, catalog):
    booking = make_booking()
    service.hall_approval(booking.id, approved=True)

    with pytest.raises(ConflictError):
        service.add_vendor_services(booking.id, [ServiceRequest(catalog["florist"].id, catalog["flowers"].id, 1)])


def test_replace_hall_after_rejection(service, make_booking, db_session):
    second_hall = Hall(name="Al Waha Hall", city="Jeddah", weekday_rate=Decimal("800.00"), weekend_rate=Decimal("900.00"))
    db_session.add(second_hall)
    db_session.commit()
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=False, rejection_reason="Maintenance")

    replaced = service.replace_hall(booking.id, second_hall.id)

    assert replaced.status is BookingStatus.PENDING
    assert replaced.hall_id == second_hall.id
    assert replaced.region == "Jeddah"
    assert replaced.hall_cost == Decimal("800.00")
    assert replaced.total_amount == Decimal("1552.50")
    assert service.hall_approval(booking.id, approved=True).new_status is BookingStatus.VENDORS_APPROVING


def test_replace_hall_requires_rejection(service, make_booking):
    booking = make_booking()

    with pytest.raises(ConflictError):
        service.replace_hall(booking.id, booking.hall_id)


def test_replace_hall_checks_availability(service, make_booking, db_session):
    second_hall = Hall(name="Al Waha Hall", city="Jeddah", weekday_rate=Decimal("800.00"), weekend_rate=Decimal("900.00"))
    db_session.add(second_hall)
    db_session.commit()
    booking = make_booking()
    service.hall_approval(booking.id, approved=False)
    service.create_booking(booking.customer_id, second_hall.id, booking.event_date, time(19), time(23))

    with pytest.raises(ConflictError):
        service.replace_hall(booking.id, second_hall.id)


def test_rejected_hall_can_be_offered_again(service, make_booking):
    booking = make_booking()
    service.hall_approval(booking.id, approved=False)

    replaced = service.replace_hall(booking.id, booking.hall_id)

    assert replaced.status is BookingStatus.PENDING


def _add_lighting_vendor(db_session):
    vendor = Vendor(name="Desert Lights")
    db_session.add(vendor)
    db_session.flush()
    item = ServiceItem(vendor_id=vendor.id, name="Stage Lighting", price=Decimal("300.00"))
    db_session.add(item)
    db_session.commit()
    return vendor, item


def test_replace_rejected_vendor_restarts_vendor_approval(service, make_booking, db_session, catalog):
    lights, lighting = _add_lighting_vendor(db_session)
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    caterer_vb, florist_vb = _vendor_ids(service, booking.id)
    service.vendor_approval(booking.id, caterer_vb, approved=True)
    service.vendor_approval(booking.id, florist_vb, approved=False, rejection_reason="Out of season")

    replaced = service.replace_vendor(
        booking.id,
        florist_vb,
        lights.id,
        [ServiceRequest(lights.id, lighting.id, 1)],
    )

    assert replaced.status is BookingStatus.VENDORS_APPROVING
    assert [vb.vendor_id for vb in replaced.vendor_bookings] == [catalog["caterer"].id, lights.id]
    assert [vb.status for vb in replaced.vendor_bookings] == [ApprovalStatus.PENDING] * 2
    assert replaced.vendor_services_cost == Decimal("700.00")
    assert replaced.total_amount == Decimal("1955.00")

    for vendor_booking_id in _vendor_ids(service, booking.id):
        result = service.vendor_approval(booking.id, vendor_booking_id, approved=True)
    assert result.new_status is BookingStatus.READY_FOR_PAYMENT


def test_replace_vendor_rules(service, make_booking, db_session, catalog):
    lights, lighting = _add_lighting_vendor(db_session)
    booking = make_booking(services=TWO_VENDORS)
    service.hall_approval(booking.id, approved=True)
    caterer_vb, florist_vb = _vendor_ids(service, booking.id)

    with pytest.raises(ConflictError):
        service.replace_vendor(booking.id, florist_vb, lights.id, [ServiceRequest(lights.id, lighting.id, 1)])

    service.vendor_approval(booking.id, caterer_vb, approved=True)
    service.vendor_approval(booking.id, florist_vb, approved=False)

    with pytest.raises(ConflictError):
        service.replace_vendor(booking.id, caterer_vb, lights.id, [ServiceRequest(lights.id, lighting.id, 1)])
    with pytest.raises(ValidationError):
        service.replace_vendor(
            booking.id,
            florist_vb,
            catalog["caterer"].id,
            [ServiceRequest(catalog["caterer"].id, catalog["coffee"].id, 1)],
        )
    with pytest.raises(ValidationError):
        service.replace_vendor(booking.id, florist_vb, lights.id, [ServiceRequest(catalog["florist"].id, lighting.id, 1)])
    with pytest.raises(NotFoundError):
        service.replace_vendor(booking.id, 9999, lights.id, [ServiceRequest(lights.id, lighting.id, 1)])
