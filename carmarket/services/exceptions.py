class MarketplaceError(Exception):
    """Base class for all marketplace domain errors. The message is safe to show to clients."""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

class NotFoundError(MarketplaceError):
    """Raised when a user, dealer, car, image or favorite does not exist (or is inactive)."""

class DuplicateEmailError(MarketplaceError):
    """Raised when registering an e-mail that already belongs to a user."""

class DuplicateFavoriteError(MarketplaceError):
    """Raised when a car is already in the user's favorites."""

class BusinessRuleError(MarketplaceError):
    """Raised when a request is well-formed but violates a business rule."""

class AuthenticationError(MarketplaceError):
    """Raised for bad credentials and invalid, expired or wrong-type tokens."""

class PermissionDeniedError(MarketplaceError):
    """Raised when the caller's role or ownership does not allow the operation."""

class ImageValidationError(MarketplaceError):
    """Raised when an uploaded image is rejected (type, size, dimensions, unreadable)."""
