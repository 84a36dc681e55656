"""
Account creation gated by email verification.

    FORM_ENTRY -> SENDING_OTP -> OTP_PENDING -> CREATING_ACCOUNT -> DONE
                                                                 -> ABANDONED

The identity-provider account is only created once the emailed code has been
verified. Every step records its failure on ``flow.error`` and returns the
resulting state; nothing a collaborator raises escapes the flow.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from app.core.credentials import check_password, is_valid_email, normalize_email
from app.core.email_service import EmailDeliveryError
from app.core.errors import (
    AuthFlowError,
    FlowStateError,
    NetworkError,
    OtpError,
    ProviderError,
    ValidationError,
)
from app.core.otp import OTP_LENGTH, OtpSession, new_session, utcnow, verify_otp
from app.models.student import OTHER_COURSE
from app.services.otp_input import OtpInput

logger = logging.getLogger(__name__)


@dataclass
class SignupForm:
    first_name: str
    last_name: str
    email: str
    password: str
    confirm_password: str
    course: str = ""
    other_course: str | None = None
    is_enrolled: bool = True
    year_level: str = ""
    accepted_terms: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def profile(self) -> dict:
        data = asdict(self)
        for secret in ("password", "confirm_password", "accepted_terms", "email"):
            data.pop(secret)
        if self.course != OTHER_COURSE:
            data["other_course"] = None
        return data


def validate_signup_form(form: SignupForm) -> None:
    if not form.accepted_terms:
        raise ValidationError("You must agree to the terms and policies to continue.")
    if not form.first_name.strip() or not form.last_name.strip():
        raise ValidationError("Please enter your first and last name.")
    if not is_valid_email(form.email.strip()):
        raise ValidationError("Please enter a valid email address.")
    if not check_password(form.password).is_valid:
        raise ValidationError("Password does not meet all requirements")
    if form.password != form.confirm_password:
        raise ValidationError("Passwords do not match")
    if form.course == OTHER_COURSE and not (form.other_course or "").strip():
        raise ValidationError("Please specify your course.")


class SignupState(str, Enum):
    FORM_ENTRY = "form_entry"
    SENDING_OTP = "sending_otp"
    OTP_PENDING = "otp_pending"
    CREATING_ACCOUNT = "creating_account"
    DONE = "done"
    ABANDONED = "abandoned"


_TRANSITIONS = {
    SignupState.FORM_ENTRY: {SignupState.SENDING_OTP},
    SignupState.SENDING_OTP: {SignupState.OTP_PENDING, SignupState.FORM_ENTRY},
    SignupState.OTP_PENDING: {SignupState.SENDING_OTP, SignupState.CREATING_ACCOUNT, SignupState.FORM_ENTRY},
    SignupState.CREATING_ACCOUNT: {SignupState.DONE, SignupState.ABANDONED},
    SignupState.DONE: set(),
    SignupState.ABANDONED: set(),
}

_BUSY = {SignupState.SENDING_OTP, SignupState.CREATING_ACCOUNT}


class SignupFlow:
    def __init__(
        self,
        identity=None,
        profiles=None,
        email_sender=None,
        *,
        otp_ttl: timedelta = timedelta(minutes=10),
        resend_cooldown: timedelta = timedelta(seconds=60),
        max_attempts: int | None = 5,
        now: Callable[[], datetime] = utcnow,
    ):
        self.identity = identity
        self.profiles = profiles
        self.email_sender = email_sender
        self.otp_ttl = otp_ttl
        self.max_attempts = max_attempts
        self.now = now

        self.state = SignupState.FORM_ENTRY
        self.form: SignupForm | None = None
        self.session: OtpSession | None = None
        self.dialog = OtpInput(resend_cooldown=resend_cooldown, now=now)
        self.error: AuthFlowError | None = None
        self.account = None

    def bind(self, identity, profiles, email_sender) -> "SignupFlow":
        """Attach request-scoped collaborators before driving the next step."""
        self.identity = identity
        self.profiles = profiles
        self.email_sender = email_sender
        return self

    @property
    def email(self) -> str | None:
        return normalize_email(self.form.email) if self.form else None

    @property
    def is_finished(self) -> bool:
        return self.state in (SignupState.DONE, SignupState.ABANDONED)

    def _transition(self, new: SignupState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise FlowStateError(f"Cannot move from {self.state.value} to {new.value}.")
        logger.debug("signup %s -> %s", self.state.value, new.value)
        self.state = new

    def _require(self, *allowed: SignupState) -> bool:
        if self.state in allowed:
            return True
        if self.state in _BUSY:
            self.error = FlowStateError("Please wait, your previous request is still being processed.")
        else:
            self.error = FlowStateError(f"This action is not available while the signup is {self.state.value}.")
        return False

    # ── form submit ──────────────────────────────────────────────────
    async def submit(self, form: SignupForm) -> SignupState:
        if not self._require(SignupState.FORM_ENTRY):
            return self.state
        self.error = None

        try:
            validate_signup_form(form)
        except ValidationError as exc:
            self.error = exc
            return self.state

        self.form = form
        self._transition(SignupState.SENDING_OTP)
        try:
            await self._deliver_code()
        except NetworkError as exc:
            self.error = exc
            self._transition(SignupState.FORM_ENTRY)
            return self.state

        self.dialog.cancel()
        self.dialog.start_cooldown()
        self._transition(SignupState.OTP_PENDING)
        return self.state

    async def _deliver_code(self) -> None:
        # a failed send leaves no active session behind
        self.session = None
        session = new_session(self.form.email, self.otp_ttl, self.now())
        try:
            await self.email_sender.send_otp_email(session.email, self.form.display_name, session.code)
        except EmailDeliveryError as exc:
            logger.warning("OTP email to %s failed: %s", session.email, exc)
            raise NetworkError("Failed to send verification code. Please try again.") from exc
        self.session = session
        logger.info("Signup OTP sent to %s", session.email)

    # ── verification ─────────────────────────────────────────────────
    async def _check_code(self, code: str) -> None:
        try:
            verify_otp(self.session, self.form.email, code, self.now(), self.max_attempts)
        except OtpError as exc:
            if exc.session is not None:
                self.session = exc.session
            raise
        self.session = None  # consumed

    async def type_digit(self, index: int, value: str) -> SignupState:
        """Keystroke into one cell; a completed code is verified straight away."""
        if not self._require(SignupState.OTP_PENDING):
            return self.state
        self.dialog.type_digit(index, value)
        if self.dialog.is_complete:
            return await self._submit_dialog()
        return self.state

    async def verify(self, code: str) -> SignupState:
        """Submit a whole code at once; it must be exactly the six digits that were sent."""
        if not self._require(SignupState.OTP_PENDING):
            return self.state
        if self.dialog.disabled:
            self.error = FlowStateError("Verification is already in progress.")
            return self.state

        code = (code or "").strip()
        if len(code) != OTP_LENGTH or not code.isdigit():
            self.error = ValidationError(f"Please enter the {OTP_LENGTH}-digit code sent to your email.")
            return self.state

        self.dialog.clear()
        self.dialog.paste(code)
        return await self._submit_dialog()

    async def _submit_dialog(self) -> SignupState:
        self.error = None
        try:
            verified = await self.dialog.submit(self._check_code)
        except FlowStateError as exc:
            self.error = exc
            return self.state
        if not verified:
            self.error = self.dialog.last_error
            return self.state
        return await self._create_account()

    async def _create_account(self) -> SignupState:
        self._transition(SignupState.CREATING_ACCOUNT)
        try:
            account = await self.identity.create_account(self.form.email, self.form.password)
            profile = self.form.profile()
            profile["email_verified"] = True
            await self.profiles.write_profile(account, profile)
        except (ProviderError, NetworkError) as exc:
            logger.info("Account creation for %s failed: %s", self.email, exc.message)
            self.error = exc
            self._transition(SignupState.ABANDONED)
            return self.state
        except Exception:
            # never leave the flow parked in a busy state
            self._transition(SignupState.ABANDONED)
            raise

        self.account = account
        self._transition(SignupState.DONE)
        self.form = None
        self.dialog.cancel()
        return self.state

    # ── resend / cancel ──────────────────────────────────────────────
    async def resend(self) -> SignupState:
        if not self._require(SignupState.OTP_PENDING):
            return self.state
        self.error = None

        wait = self.dialog.resend_available_in()
        if wait > 0:
            self.error = ValidationError(f"Please wait {wait}s before requesting a new code.")
            return self.state

        self._transition(SignupState.SENDING_OTP)
        sent = await self.dialog.resend(self._deliver_code)
        self._transition(SignupState.OTP_PENDING)
        if not sent:
            self.error = self.dialog.last_error
        return self.state

    def cancel(self) -> SignupState:
        if not self._require(SignupState.FORM_ENTRY, SignupState.OTP_PENDING):
            return self.state
        self.session = None
        self.dialog.cancel()
        self.error = None
        if self.state == SignupState.OTP_PENDING:
            self._transition(SignupState.FORM_ENTRY)
        return self.state

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "email": self.email,
            "error": self.error.to_dict() if self.error else None,
            "dialog": self.dialog.snapshot() if self.state == SignupState.OTP_PENDING else None,
        }
