# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Error taxonomy shared by the instant payment modules.

class InstantPaymentError(Exception):
    """Base class. `kind` lets callers tell configuration problems from network ones."""
    kind = "error"

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(InstantPaymentError):
    """Caller-supplied data is missing or malformed (user-correctable)."""
    kind = "validation"


class MissingIdentityError(ValidationError):
    """Transaction id, tenant id or terminal id missing for a confirmation wait."""
    kind = "missing_identity"


class ConfigurationError(InstantPaymentError):
    """Certificate material missing or unusable (operator-correctable)."""
    kind = "configuration"


class CertificateParseError(InstantPaymentError):
    kind = "certificate_parse"


class TransactionIdError(InstantPaymentError):
    """The NOP API did not hand out a transaction id. Never retried."""
    kind = "transaction_id"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
