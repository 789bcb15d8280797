"""Custom exceptions for the field orders application."""

class FieldSalesError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(FieldSalesError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(FieldSalesError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidSchemeChoiceError(BusinessLogicError):
    """Raised when a scheme choice is not one of the known alternatives."""
    def __init__(self, value):
        super().__init__(
            f'Invalid scheme choice "{value}". Expected freeQuantity, offerProduct or both.',
            payload={'choice': value}
        )
        self.value = value

class OrderPersistenceError(FieldSalesError):
    """Raised when an order could not be stored."""
    def __init__(self, message="Failed to place order. Please try again."):
        super().__init__(message, 500)

class UnauthorizedError(FieldSalesError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)
