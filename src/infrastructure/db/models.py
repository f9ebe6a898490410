# src/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    Date,
    DateTime,
    Time,
    Enum,
    Numeric,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime, time
from decimal import Decimal
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.state_machine import ApprovalStatus, BookingStatus


def _money_column(**kwargs):
    return mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"), **kwargs)


class Hall(Base):
    __tablename__ = "halls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    city: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vat_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    weekday_rate: Mapped[Decimal] = _money_column()
    weekend_rate: Mapped[Decimal] = _money_column()
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("weekday_rate >= 0", name="ck_hall_weekday_rate_nonnegative"),
        CheckConstraint("weekend_rate >= 0", name="ck_hall_weekend_rate_nonnegative"),
    )


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    addresses: Mapped[list["CustomerAddress"]] = relationship(
        back_populates="customer",
        order_by="CustomerAddress.id",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CustomerAddress(Base):
    __tablename__ = "customer_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    customer: Mapped[Customer] = relationship(back_populates="addresses")


class Vendor(Base):
    __tablename__ = "vendors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)


class ServiceItem(Base):
    __tablename__ = "service_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[Decimal] = _money_column()

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_service_item_price_nonnegative"),
    )


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hall_id: Mapped[int] = mapped_column(ForeignKey("halls.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", validate_strings=True),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visit_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    coupon_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    region: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hall_cost: Mapped[Decimal] = _money_column()
    vendor_services_cost: Mapped[Decimal] = _money_column()
    subtotal: Mapped[Decimal] = _money_column()
    discount_amount: Mapped[Decimal] = _money_column()
    tax_amount: Mapped[Decimal] = _money_column()
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = _money_column()
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="SAR")
    financials_frozen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Pending")
    payment_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    hall: Mapped[Hall] = relationship()
    customer: Mapped[Customer] = relationship()
    vendor_bookings: Mapped[list["VendorBooking"]] = relationship(
        back_populates="booking",
        order_by="VendorBooking.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("guest_count >= 0", name="ck_booking_guest_count_nonnegative"),
        CheckConstraint("start_time < end_time", name="ck_booking_time_window"),
    )


class VendorBooking(Base):
    __tablename__ = "vendor_bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approval_status", validate_strings=True),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    total_amount: Mapped[Decimal] = _money_column()
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    booking: Mapped[Booking] = relationship(back_populates="vendor_bookings")
    vendor: Mapped[Vendor] = relationship()
    services: Mapped[list["VendorBookingService"]] = relationship(
        back_populates="vendor_booking",
        order_by="VendorBookingService.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class VendorBookingService(Base):
    __tablename__ = "vendor_booking_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_booking_id: Mapped[int] = mapped_column(ForeignKey("vendor_bookings.id"), nullable=False)
    service_item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    service_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = _money_column()
    total_price: Mapped[Decimal] = _money_column()

    vendor_booking: Mapped[VendorBooking] = relationship(back_populates="services")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_vendor_service_quantity_positive"),
    )


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False)
    invoice_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Standard")
    invoice_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    supply_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    hall_id: Mapped[int | None] = mapped_column(ForeignKey("halls.id"), nullable=True)

    seller_name: Mapped[str] = mapped_column(String(128), nullable=False)
    seller_vat_number: Mapped[str] = mapped_column(String(32), nullable=False)
    seller_cr_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    seller_address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    seller_city: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    seller_postal_code: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    seller_country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="SA")

    buyer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    buyer_vat_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    buyer_address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    buyer_city: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    buyer_postal_code: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    buyer_country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="SA")

    subtotal_before_tax: Mapped[Decimal] = _money_column()
    discount_amount: Mapped[Decimal] = _money_column()
    taxable_amount: Mapped[Decimal] = _money_column()
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    tax_amount: Mapped[Decimal] = _money_column()
    total_amount_with_tax: Mapped[Decimal] = _money_column()
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="SAR")

    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="Online")
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Pending")
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    terms: Mapped[str] = mapped_column(Text, nullable=False, default="")

    qr_code: Mapped[str] = mapped_column(Text, nullable=False)
    invoice_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    zatca_uuid: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        default=lambda: str(uuid4()),
    )

    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(64), nullable=False, default="system")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceLineItem.line_number",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_invoice_booking_id"),
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
    )


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    item_code: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="Service")
    unit_price: Mapped[Decimal] = _money_column()
    discount_amount: Mapped[Decimal] = _money_column()
    subtotal_before_tax: Mapped[Decimal] = _money_column()
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    tax_amount: Mapped[Decimal] = _money_column()
    total_amount: Mapped[Decimal] = _money_column()
    tax_category: Mapped[str] = mapped_column(String(32), nullable=False, default="Standard")

    invoice: Mapped[Invoice] = relationship(back_populates="line_items")

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_line_number"),
    )


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PROCESSED")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("provider", "payment_id", name="uq_webhook_provider_payment_id"),
    )


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_outbox_dedupe_key"),
    )
