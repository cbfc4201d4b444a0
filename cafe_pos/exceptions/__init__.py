"""Custom exceptions for the POS application."""
from decimal import Decimal


def _fmt_qty(value) -> str:
    value = Decimal(str(value))
    return f"{value:.2f}"


class PosError(Exception):
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


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class OutOfStockError(BusinessLogicError):
    """Raised when a product with no available stock is added to the cart."""
    def __init__(self, product_name):
        self.product_name = product_name
        message = f"{product_name} is out of stock and cannot be added to the order."
        super().__init__(message, status_code=409, payload={'error': 'out_of_stock'})


class InsufficientStockError(BusinessLogicError):
    """Raised when a line quantity would exceed the available stock."""
    def __init__(self, product_name, available, unit='piece'):
        self.product_name = product_name
        self.available = Decimal(str(available))
        self.unit = unit
        message = f"Only {_fmt_qty(available)} {unit} available in stock."
        super().__init__(message, status_code=409, payload={
            'error': 'insufficient_stock',
            'available': str(self.available),
            'unit': unit,
        })


class SizeRequiredError(BusinessLogicError):
    """Raised when a sized product is confirmed without choosing a size."""
    def __init__(self, message="Please select a size"):
        super().__init__(message, payload={'error': 'size_required'})


class DraftResolutionError(PosError):
    """Raised when none of a draft's lines can be resolved to a live product."""
    def __init__(self, message="Could not load items: products not found.", payload=None):
        super().__init__(message, 422, payload)


class PersistenceError(PosError):
    """Raised when saving an order fails; the cart is left untouched."""
    def __init__(self, message="Failed to save order", payload=None):
        super().__init__(message, 500, payload)


class UnauthorizedError(PosError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
