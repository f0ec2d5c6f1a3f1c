class ServiceError(Exception):
    """Domain error carrying the HTTP status routes should answer with."""
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class NoAvailabilityError(ConflictError):
    def __init__(self, message: str = "No boats available for the selected dates"):
        super().__init__(message)


class TokenNotFound(NotFoundError):
    def __init__(self, message: str = "Payment link not found"):
        super().__init__(message)


class TokenExpired(ServiceError):
    status_code = 410

    def __init__(self, message: str = "Payment link has expired"):
        super().__init__(message)


class TokenAlreadyUsed(ConflictError):
    def __init__(self, message: str = "Payment link has already been used"):
        super().__init__(message)


class BookingAlreadySettled(ConflictError):
    def __init__(self, message: str = "Booking is already fully paid"):
        super().__init__(message)
