"""
Error taxonomy for the authentication workflows.

Every failure a signup or password-reset flow can hit maps onto one of the
classes below. Orchestrators record them on the flow instead of letting them
escape; controllers turn the recorded error into an HTTP response with
``http_status``.
"""
from enum import Enum


class AuthFlowError(Exception):
    """Base class. ``message`` is safe to show to the end user."""

    kind: str = "error"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class ValidationError(AuthFlowError):
    """Local, pre-submission failure. Never reaches a network call."""

    kind = "validation"


class ProviderErrorKind(str, Enum):
    EMAIL_IN_USE = "email-already-in-use"
    INVALID_EMAIL = "invalid-email"
    WEAK_PASSWORD = "weak-password"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    INVALID_CREDENTIAL = "invalid-credential"
    ACCOUNT_DISABLED = "user-disabled"
    OAUTH_FAILED = "oauth-failed"
    UNSUPPORTED_PROVIDER = "unsupported-provider"
    INVALID_ACTION_CODE = "invalid-action-code"


_PROVIDER_STATUS = {
    ProviderErrorKind.EMAIL_IN_USE: 409,
    ProviderErrorKind.USER_NOT_FOUND: 404,
    ProviderErrorKind.WRONG_PASSWORD: 401,
    ProviderErrorKind.INVALID_CREDENTIAL: 401,
    ProviderErrorKind.ACCOUNT_DISABLED: 403,
    ProviderErrorKind.OAUTH_FAILED: 401,
}


class ProviderError(AuthFlowError):
    """The identity provider rejected the call. The message is shown verbatim."""

    kind = "provider"

    def __init__(self, code: ProviderErrorKind, message: str):
        super().__init__(message)
        self.code = code
        self.status_code = _PROVIDER_STATUS.get(code, 400)

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "code": self.code.value}


class OtpErrorKind(str, Enum):
    EXPIRED = "expired"
    INVALID = "invalid"
    MISMATCH = "mismatch"
    MISSING = "missing"
    LOCKED = "locked"


_OTP_MESSAGES = {
    OtpErrorKind.EXPIRED: "Verification code has expired. Please request a new one.",
    OtpErrorKind.INVALID: "Invalid code. Please check your email and try again.",
    OtpErrorKind.MISMATCH: "Email mismatch. Please try again.",
    OtpErrorKind.MISSING: "No verification code was requested. Please request a new one.",
    OtpErrorKind.LOCKED: "Too many attempts. Please request a new code.",
}


class OtpError(AuthFlowError):
    """Local code comparison failed. No network involved."""

    kind = "otp"

    def __init__(self, code: OtpErrorKind, message: str | None = None):
        super().__init__(message or _OTP_MESSAGES[code])
        self.code = code
        self.status_code = 429 if code == OtpErrorKind.LOCKED else 400
        self.session = None  # failed-attempt snapshot for INVALID

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "code": self.code.value}


class NetworkError(AuthFlowError):
    """Email send or document write failed. Not retried automatically."""

    kind = "network"
    status_code = 502


class FlowStateError(AuthFlowError):
    """The requested step is not allowed from the flow's current state."""

    kind = "state"
    status_code = 409
