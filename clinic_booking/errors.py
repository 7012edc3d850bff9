"""
Booking error taxonomy

Services raise these; main.py renders them as JSON with a stable code.
"""


class BookingError(Exception):
    """Base class for every failure surfaced to a booking caller"""

    code = "BOOKING_ERROR"
    status_code = 400

    def __init__(self, detail: str, status_code: int = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "detail": self.detail}


class NotFoundError(BookingError):
    """Patient, doctor, appointment or payment absent"""

    code = "NOT_FOUND"
    status_code = 404


class InvalidInputError(BookingError):
    code = "INVALID_INPUT"
    status_code = 422


class PolicyViolationError(BookingError):
    """Booking window or lifecycle policy broken"""

    code = "POLICY_VIOLATION"
    status_code = 403


class CapacityExceededError(BookingError):
    """Patient or doctor daily cap reached"""

    code = "CAPACITY_EXCEEDED"
    status_code = 403


class SlotConflictError(BookingError):
    """Slot taken, or outside service hours, holiday or absence"""

    code = "SLOT_CONFLICT"
    status_code = 409


class PaymentStateConflictError(BookingError):
    """Payment already resolved, method or amount mismatch, unexpected appointment state"""

    code = "PAYMENT_STATE_CONFLICT"
    status_code = 409


class GatewayError(BookingError):
    """Payment gateway could not be reached or answered unexpectedly"""

    code = "GATEWAY_ERROR"
    status_code = 502
