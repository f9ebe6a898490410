import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from src.api.routes.routes import get_app_settings, get_booking_service, get_db, get_payment_gateway
from src.application.booking_service import BookingService
from src.config import Settings
from src.domain.exceptions import PaymentVerificationError
from src.domain.financials import ServiceRequest
from src.infrastructure.db.models import (
    Base,
    Customer,
    CustomerAddress,
    Hall,
    ServiceItem,
    Vendor,
)
from src.infrastructure.db.session import SessionLocal, engine
from src.infrastructure.payments.razorpay_gateway import PaymentOrder
from src.main import app

# Monday 2 March 2026, 09:00 UTC.
FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
WEEKDAY_EVENT = date(2026, 3, 10)  # Tuesday
WEEKEND_EVENT = date(2026, 3, 13)  # Friday


def fixed_clock() -> datetime:
    return FIXED_NOW


class FakeGateway:
    provider = "razorpay"

    def __init__(self):
        self.orders = []

    def create_order(self, amount, currency, receipt):
        self.orders.append((amount, currency, receipt))
        return PaymentOrder(
            order_id=f"order_{len(self.orders)}",
            amount_minor=int(amount * 100),
            currency=currency,
            key_id="rzp_test_key",
        )

    def verify_signature(self, order_id, payment_id, signature):
        if signature != "valid-signature":
            raise PaymentVerificationError("Payment signature verification failed")


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret="rzp_test_secret")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def service(db_session, settings, gateway):
    return BookingService(db_session, settings=settings, payment_gateway=gateway, clock=fixed_clock)


@pytest.fixture
def catalog(db_session):
    hall = Hall(
        name="Al Noor Grand Hall",
        city="Riyadh",
        address="King Fahd Road",
        vat_number="310123456700003",
        weekday_rate=Decimal("1000.00"),
        weekend_rate=Decimal("1500.00"),
        is_active=True,
    )
    customer = Customer(first_name="Sara", last_name="Al-Qahtani", email="sara@example.com")
    customer.addresses.append(CustomerAddress(street="Prince Sultan St", city="Riyadh", zip_code="12211"))
    caterer = Vendor(name="Royal Catering")
    florist = Vendor(name="Bloom Floral")
    db_session.add_all([hall, customer, caterer, florist])
    db_session.flush()

    buffet = ServiceItem(vendor_id=caterer.id, name="Dinner Buffet", price=Decimal("200.00"))
    coffee = ServiceItem(vendor_id=caterer.id, name="Coffee Station", price=Decimal("33.33"))
    flowers = ServiceItem(vendor_id=florist.id, name="Stage Flowers", price=Decimal("150.00"))
    db_session.add_all([buffet, coffee, flowers])
    db_session.commit()

    return {
        "hall": hall,
        "customer": customer,
        "caterer": caterer,
        "florist": florist,
        "buffet": buffet,
        "coffee": coffee,
        "flowers": flowers,
    }


@pytest.fixture
def make_booking(service, catalog):
    """Creates a pending booking; pass vendor services as (vendor key, item key, qty) tuples."""

    def _make(event_date=WEEKDAY_EVENT, start=time(18, 0), end=time(22, 0), services=()):
        requests = [
            ServiceRequest(catalog[vendor].id, catalog[item].id, quantity)
            for vendor, item, quantity in services
        ]
        booking = service.create_booking(
            customer_id=catalog["customer"].id,
            hall_id=catalog["hall"].id,
            event_date=event_date,
            start_time=start,
            end_time=end,
            services=requests,
            event_type="Wedding",
            guest_count=150,
        )
        service.db.commit()
        return booking

    return _make


@pytest.fixture
def client(db_session, settings, gateway):

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    def override_booking_service(db=Depends(get_db)):
        return BookingService(db, settings=settings, payment_gateway=gateway, clock=fixed_clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_booking_service] = override_booking_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
