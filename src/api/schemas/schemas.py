from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from src.domain.state_machine import ApprovalStatus, BookingStatus


# -----------------------------
# Approvals
# -----------------------------
class ApprovalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approved: bool
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    new_status: str = Field(alias="newStatus")
    can_proceed_to_payment: bool = Field(alias="canProceedToPayment")


class VendorApprovalStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_vendors: int = Field(alias="totalVendors")
    approved_count: int = Field(alias="approvedCount")
    rejected_count: int = Field(alias="rejectedCount")
    pending_count: int = Field(alias="pendingCount")
    all_approved: bool = Field(alias="allApproved")
    can_proceed_to_payment: bool = Field(alias="canProceedToPayment")


# -----------------------------
# Bookings and pricing
# -----------------------------
class ServiceSelection(BaseModel):
    vendor_id: int
    service_item_id: int
    quantity: int = Field(default=1, gt=0)


class PricingRequest(BaseModel):
    hall_id: int
    event_date: date
    start_time: time
    end_time: time
    services: list[ServiceSelection] = Field(default_factory=list)
    discount_code: str | None = None


class BookingCreateRequest(PricingRequest):
    customer_id: int
    event_type: str = ""
    guest_count: int = Field(default=0, ge=0)
    visit_date: date | None = None
    comments: str = ""


class ServiceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_item_id: int
    service_name: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal


class VendorCostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vendor_id: int
    vendor_name: str
    total_amount: Decimal
    services: list[ServiceLineResponse]


class FinancialBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hall_cost: Decimal
    vendor_services_cost: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    vendor_breakdown: list[VendorCostResponse]


class VendorBookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: int
    status: ApprovalStatus
    total_amount: Decimal
    rejection_reason: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hall_id: int
    customer_id: int
    status: BookingStatus
    event_type: str
    guest_count: int
    event_date: date
    start_time: time
    end_time: time
    comments: str
    hall_cost: Decimal
    vendor_services_cost: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    payment_status: str
    paid_at: datetime | None = None
    financials_frozen_at: datetime | None = None
    vendor_bookings: list[VendorBookingResponse] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    reason: str | None = None
    changed_by: str = "admin"


class VendorServicesRequest(BaseModel):
    services: list[ServiceSelection] = Field(min_length=1)


class HallReplacementRequest(BaseModel):
    hall_id: int


class VendorServiceItem(BaseModel):
    service_item_id: int
    quantity: int = Field(default=1, gt=0)


class VendorReplacementRequest(BaseModel):
    vendor_id: int
    services: list[VendorServiceItem] = Field(min_length=1)


class CancelRequest(BaseModel):
    reason: str | None = None


class ConfirmRequest(BaseModel):
    confirmed_by: str = "system"


class ConfirmationResponse(BaseModel):
    booking_id: int
    status: str
    invoice_id: int | None = None
    invoice_number: str | None = None
    invoice_error: str | None = None


# -----------------------------
# Hall availability
# -----------------------------
class AvailabilityResponse(BaseModel):
    hall_id: int
    event_date: date
    start_time: time
    end_time: time
    available: bool
    conflicting_booking_ids: list[int]


class TimeSlotResponse(BaseModel):
    start_time: time
    end_time: time
    is_available: bool


# -----------------------------
# Payments
# -----------------------------
class PaymentOrderResponse(BaseModel):
    booking_id: int
    order_id: str
    amount: int
    currency: str
    key_id: str | None = None


class RazorpayVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


# -----------------------------
# Invoices
# -----------------------------
class InvoiceLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    description: str
    item_code: str
    quantity: int
    unit: str
    unit_price: Decimal
    discount_amount: Decimal
    subtotal_before_tax: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tax_category: str


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    invoice_type: str
    invoice_date: datetime
    supply_date: date | None = None
    booking_id: int
    customer_id: int
    hall_id: int | None = None

    seller_name: str
    seller_vat_number: str
    seller_cr_number: str
    seller_address: str
    seller_city: str
    seller_postal_code: str
    seller_country_code: str

    buyer_name: str
    buyer_address: str
    buyer_city: str
    buyer_postal_code: str
    buyer_country_code: str

    subtotal_before_tax: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount_with_tax: Decimal
    currency: str

    payment_method: str
    payment_status: str
    payment_date: datetime | None = None
    payment_reference: str

    notes: str
    terms: str
    qr_code: str
    invoice_hash: str
    zatca_uuid: str

    is_cancelled: bool
    cancelled_at: datetime | None = None
    cancellation_reason: str

    line_items: list[InvoiceLineItemResponse]


class InvoicePaymentStatusRequest(BaseModel):
    payment_status: Literal["Pending", "Paid", "Refunded", "Failed"]
    payment_reference: str = ""


class InvoiceCancelRequest(BaseModel):
    reason: str = Field(min_length=1)


class InvoiceStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_invoices: int
    pending_invoices: int
    paid_invoices: int
    cancelled_invoices: int
    total_revenue: Decimal
    total_tax_collected: Decimal
    average_invoice_amount: Decimal


class MissingInvoiceResponse(BaseModel):
    booking_id: int
    status: str
    total_amount: Decimal
    currency: str


# -----------------------------
# Outbox
# -----------------------------
class OutboxEventResponse(BaseModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    status: str
    attempts: int
    created_at: str
