class BookingError(Exception):
    """Base class for every error the booking core raises."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    status_code = 404


class SeatUnavailable(BookingError):
    status_code = 409


class ScheduleInUse(BookingError):
    status_code = 409


class SeatInUse(ScheduleInUse):
    pass


class MovieInUse(BookingError):
    status_code = 409

    def __init__(self, message: str, booking_count: int):
        super().__init__(message)
        self.booking_count = booking_count


class ValidationError(BookingError):
    status_code = 422


class PersistenceError(BookingError):
    status_code = 500
