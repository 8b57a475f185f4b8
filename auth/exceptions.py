"""Auth exceptions."""


class AuthException(Exception):
    """Base auth exception with HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UnauthorizedError(AuthException):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, status_code=401)


class BadRequestError(AuthException):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class ConflictError(AuthException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class RateLimitError(AuthException):
    def __init__(self, message: str = "Too many requests"):
        super().__init__(message, status_code=429)


class ForbiddenError(AuthException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)
