class StudioError(Exception):
    """Base error for studio operations. Carries an HTTP-equivalent status."""

    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra


class ValidationError(StudioError):
    status_code = 400


class NotFoundError(StudioError):
    status_code = 404


class ConflictError(StudioError):
    status_code = 409


class GenerationError(StudioError):
    """Completion service failed or returned nothing usable."""

    status_code = 500
