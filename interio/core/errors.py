"""
Error types raised by the pricing, lifecycle and payment code.
"""

from typing import List, Optional


class InterioError(ValueError):
    """Base class for all rejected business operations."""


class ValidationError(InterioError):
    """An illegal transition or a quotation that failed validation.

    ``errors`` holds the structured error list so callers can show every
    problem at once instead of only the first.
    """

    def __init__(self, message: str, errors: Optional[List] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class InvalidAmountError(InterioError):
    """Negative or zero amounts, negative quantities, out-of-range percentages."""


class OverpaymentError(InterioError):
    """A payment larger than the amount still due on the order."""

    def __init__(self, amount, amount_due):
        super().__init__(f"Payment of {amount} exceeds amount due {amount_due}")
        self.amount = amount
        self.amount_due = amount_due


class ConcurrencyError(InterioError):
    """Another writer changed the record first; reload and retry."""


class ConcurrentConversionError(ConcurrencyError):
    """The quotation has already been converted."""


class ConcurrentUpdateError(ConcurrencyError):
    """The sales order changed underneath a payment."""


class AuthorizationError(InterioError):
    """The acting user's role does not allow the operation."""


class NotFoundError(InterioError):
    """Requested record does not exist."""
