

class BookingPlatformError(Exception):
    """
    Base exception for all domain-level errors
    inside the booking settlement engine.
    """


class NotFoundError(BookingPlatformError):
    """
    Raised when a referenced booking, customer, hall,
    vendor booking or invoice does not exist.
    """

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ValidationError(BookingPlatformError):
    """Raised when a request is rejected before any state mutation."""


class ConflictError(BookingPlatformError):
    """Raised when a concurrent writer won a race we could not resolve."""


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class PaymentVerificationError(BookingPlatformError):
    """Raised when a payment gateway signature does not verify."""
