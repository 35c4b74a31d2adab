"""
Custom exceptions for CreditTrack.

Each exception carries an ``error_code`` from the failure taxonomy shared by
the services and the API handler: NOT_AUTHENTICATED, FORBIDDEN, NOT_FOUND and
VALIDATION.
"""

NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
VALIDATION = "VALIDATION"


class CreditTrackException(Exception):
    """Base exception for all CreditTrack errors"""
    def __init__(self, message: str, error_code: str = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class NotAuthenticatedException(CreditTrackException):
    """Raised when no authenticated principal is present"""
    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, NOT_AUTHENTICATED)


class ForbiddenException(CreditTrackException):
    """Raised when the principal lacks permission for the operation"""
    def __init__(self, message: str = "Not authorized for this action"):
        super().__init__(message, FORBIDDEN)


class NotFoundException(CreditTrackException):
    """Raised when a referenced user or credit record does not exist"""
    def __init__(self, message: str):
        super().__init__(message, NOT_FOUND)


class ValidationException(CreditTrackException):
    """Raised when input validation fails"""
    def __init__(self, message: str):
        super().__init__(message, VALIDATION)
