# src/domain/state_machine.py

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from src.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    HALL_APPROVED = "HallApproved"
    VENDORS_APPROVING = "VendorsApproving"
    READY_FOR_PAYMENT = "ReadyForPayment"
    PAID = "Paid"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    HALL_REJECTED = "HallRejected"
    VENDOR_REJECTED = "VendorRejected"


class ApprovalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


_CLOSING = {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.DRAFT: {
            BookingStatus.PENDING,
            BookingStatus.HALL_APPROVED,
            BookingStatus.HALL_REJECTED,
            *_CLOSING,
        },
        BookingStatus.PENDING: {
            BookingStatus.HALL_APPROVED,
            BookingStatus.HALL_REJECTED,
            *_CLOSING,
        },
        BookingStatus.HALL_APPROVED: {
            BookingStatus.VENDORS_APPROVING,
            BookingStatus.READY_FOR_PAYMENT,
            *_CLOSING,
        },
        BookingStatus.VENDORS_APPROVING: {
            BookingStatus.READY_FOR_PAYMENT,
            BookingStatus.VENDOR_REJECTED,
            *_CLOSING,
        },
        BookingStatus.READY_FOR_PAYMENT: {
            BookingStatus.PAID,
            *_CLOSING,
        },
        BookingStatus.PAID: set(_CLOSING),
        # Replacing the rejected hall or vendor re-enters the approval flow.
        BookingStatus.HALL_REJECTED: {
            BookingStatus.PENDING,
            *_CLOSING,
        },
        BookingStatus.VENDOR_REJECTED: {
            BookingStatus.HALL_APPROVED,
            *_CLOSING,
        },
        BookingStatus.CONFIRMED: set(),
        BookingStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        """
        Returns allowed next states from current state.
        """
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def parse(value: str) -> BookingStatus:
        """
        Converts a wire/storage value into a BookingStatus.
        Unrecognized strings are rejected instead of propagated.
        """
        try:
            return BookingStatus(value)
        except ValueError:
            raise ValueError(f"Unknown booking status: {value!r}") from None

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        """
        Guards against invalid status types.
        """
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )


@dataclass(frozen=True)
class VendorApprovalSummary:
    total_vendors: int
    approved_count: int
    rejected_count: int
    pending_count: int

    @property
    def all_responded(self) -> bool:
        return self.pending_count == 0

    @property
    def all_approved(self) -> bool:
        return self.total_vendors > 0 and self.approved_count == self.total_vendors

    @property
    def all_rejected(self) -> bool:
        return self.total_vendors > 0 and self.rejected_count == self.total_vendors

    @property
    def can_proceed_to_payment(self) -> bool:
        return self.total_vendors == 0 or self.all_approved or self.all_rejected


def summarize_vendor_approvals(statuses: Iterable[ApprovalStatus]) -> VendorApprovalSummary:
    statuses = list(statuses)
    for status in statuses:
        if not isinstance(status, ApprovalStatus):
            raise TypeError(f"Expected ApprovalStatus, got {type(status)}")

    return VendorApprovalSummary(
        total_vendors=len(statuses),
        approved_count=sum(1 for s in statuses if s is ApprovalStatus.APPROVED),
        rejected_count=sum(1 for s in statuses if s is ApprovalStatus.REJECTED),
        pending_count=sum(1 for s in statuses if s is ApprovalStatus.PENDING),
    )


def aggregate_vendor_approvals(
    statuses: Iterable[ApprovalStatus],
) -> Optional[BookingStatus]:
    """
    Folds every vendor's response into the next booking status.

    Returns None while any vendor is still pending. Once all have
    responded, a uniform outcome (everyone approved or everyone rejected)
    makes the booking payable; a mixed outcome surfaces as VendorRejected
    so a human has to reconcile it.
    """
    summary = summarize_vendor_approvals(statuses)

    if not summary.all_responded:
        return None
    if summary.all_approved or summary.all_rejected:
        return BookingStatus.READY_FOR_PAYMENT
    return BookingStatus.VENDOR_REJECTED


def status_after_hall_approval(vendor_booking_count: int) -> BookingStatus:
    """HallApproved is re-evaluated immediately against the vendor set."""
    if vendor_booking_count > 0:
        return BookingStatus.VENDORS_APPROVING
    return BookingStatus.READY_FOR_PAYMENT
