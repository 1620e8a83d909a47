from __future__ import annotations

from enum import Enum


class CheckoutError(Exception):
    """Base class for checkout errors. `str(e)` is safe to show to the user."""


class ValidationRule(str, Enum):
    ADDRESS_REQUIRED = "address_required"
    CART_EMPTY = "cart_empty"
    SUBTOTAL_NOT_POSITIVE = "subtotal_not_positive"
    TOTAL_OUT_OF_RANGE = "total_out_of_range"
    INVALID_ITEMS = "invalid_items"


_RULE_MESSAGES = {
    ValidationRule.ADDRESS_REQUIRED: "Please select a delivery address",
    ValidationRule.CART_EMPTY: "Your cart is empty",
    ValidationRule.SUBTOTAL_NOT_POSITIVE: "Invalid cart amount",
    ValidationRule.TOTAL_OUT_OF_RANGE: "Invalid order amount",
    ValidationRule.INVALID_ITEMS: "Some items in your cart are invalid",
}


class CheckoutValidationError(CheckoutError):
    """Pre-flight check failed. No request was sent."""

    def __init__(self, rule: ValidationRule) -> None:
        super().__init__(_RULE_MESSAGES[rule])
        self.rule = rule


class BuildError(CheckoutError):
    def __init__(self, message: str = "No valid items to order") -> None:
        super().__init__(message)


class NegotiationError(CheckoutError):
    """The draft request failed or returned malformed data."""


class ConfirmationError(CheckoutError):
    """Finalizing a draft failed. The draft is not retried automatically."""


class CartSyncError(Exception):
    def __init__(self, message: str = "Failed to clear cart. Please try again.") -> None:
        super().__init__(message)


class TrackingFetchError(Exception):
    def __init__(self, message: str, *, not_found: bool) -> None:
        super().__init__(message)
        self.not_found = not_found


class TipRangeError(ValueError):
    def __init__(self, minimum: int, maximum: int) -> None:
        super().__init__(f"Tip must be between ₹{minimum} and ₹{maximum}")
        self.minimum = minimum
        self.maximum = maximum


class TipNotAllowedError(Exception):
    def __init__(self) -> None:
        super().__init__("Tips can only be added once, while the order is on its way")


class RatingInputError(ValueError):
    pass


class SideFlowError(Exception):
    """A tip or rating request was rejected by the backend."""
