"""Fulfillment error taxonomy"""

from typing import Optional


class FulfillmentError(Exception):
    """Base error for control-plane operations"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FulfillmentError):
    """Malformed event, missing order or invalid state transition"""


class NotFoundError(FulfillmentError):
    """Unknown order, promo code or courier"""


class NoAvailableCourier(FulfillmentError):
    """Courier assignment found no candidates"""

    def __init__(self, candidates_evaluated: int = 0, message: Optional[str] = None):
        super().__init__(message or "No available drivers")
        self.candidates_evaluated = candidates_evaluated


class AlreadyProcessed(FulfillmentError):
    """Idempotency short-circuit; not a failure"""


class DownstreamUnavailable(FulfillmentError):
    """Store or external API unreachable"""
