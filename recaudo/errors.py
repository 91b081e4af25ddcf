"""
Domain Errors Module

Failure taxonomy shared by the engine and the API layer. Every error carries a
stable ``code`` so callers can render a localized message.
"""


class RecaudoError(Exception):
    """Base exception for the credit engine"""

    code = "recaudo_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RecaudoError):
    """Malformed input: non-positive amounts, bad schedules, missing fields"""

    code = "validation_error"


class InvalidAmountError(ValidationError):
    """Amount is zero, negative, or below what the operation requires"""

    code = "invalid_amount"


class IneligibleError(RecaudoError):
    """A business-rule gate failed (renewal threshold, closed credit, ...)"""

    code = "ineligible"


class NotApplicableError(IneligibleError):
    """Action does not apply to this credit's provider configuration"""

    code = "not_applicable"


class ConfigurationError(RecaudoError):
    """Provider settings cannot serve the request (e.g. no commission tier)"""

    code = "configuration_error"


class ConcurrencyError(RecaudoError):
    """Optimistic version check failed or the credit lock timed out"""

    code = "concurrency_conflict"


class NotFoundError(RecaudoError):
    """Unknown credit, client or provider"""

    code = "not_found"
