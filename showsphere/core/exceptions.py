import traceback


class BookingError(Exception):
    def __init__(self, message: str, status_code: int = 400, stack_trace: bool = False):
        self.message = message
        self.status_code = status_code
        self.stack_trace = traceback.format_exc() if stack_trace else None
        super().__init__(self.message)


class InvalidInputError(BookingError):
    def __init__(self, message: str = "Invalid booking request"):
        super().__init__(message, status_code=400)


class UnauthenticatedError(BookingError):
    def __init__(self, message: str = "Authentication required. Please login to proceed."):
        super().__init__(message, status_code=401)


class ForbiddenError(BookingError):
    def __init__(self, message: str = "not authorized"):
        super().__init__(message, status_code=403)


class SeatsUnavailableError(BookingError):
    def __init__(self, message: str = "Selected Seats are not available."):
        super().__init__(message, status_code=409)


class NotFoundError(BookingError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class ShowNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Show not found")


class MovieNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Movie not found for this show")


class BookingNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Booking not found")


class ConfigError(BookingError):
    def __init__(self, message: str = "Payment gateway configuration error. Please contact support."):
        super().__init__(message, status_code=500)


class InvalidStateError(BookingError):
    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class UpstreamError(BookingError):
    def __init__(self, message: str = "Payment gateway error. Please try again."):
        super().__init__(message, status_code=502)


class InternalError(BookingError):
    def __init__(self, message: str = "An error occurred while creating your booking. Please try again."):
        super().__init__(message, status_code=500, stack_trace=True)


class WebhookSignatureError(Exception):
    """Raised when an inbound payment event fails signature verification."""


class NotificationError(Exception):
    """A delivery strategy could not hand a notification over."""
