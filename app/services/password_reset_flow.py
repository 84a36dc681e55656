"""
Password reset by emailed code.

    REQUESTING_CODE -> CODE_ENTRY -> SETTING_PASSWORD -> RESET_COMPLETE

The session lives in a ``ResetSessionStore`` rather than on the flow, so a
flow can be rebuilt with ``load()`` on every request. The stored session is
cleared only after the password update has gone through.
"""
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable

from app.core.credentials import check_password, is_valid_email, normalize_email
from app.core.email_service import EmailDeliveryError
from app.core.errors import (
    AuthFlowError,
    FlowStateError,
    NetworkError,
    OtpError,
    OtpErrorKind,
    ProviderError,
    ValidationError,
)
from app.core.otp import new_session, resend_available_in, utcnow, verify_otp
from app.services.session_store import ResetSessionStore

logger = logging.getLogger(__name__)

PasswordUpdater = Callable[[str, str, str], Awaitable[object]]


class ResetState(str, Enum):
    REQUESTING_CODE = "requesting_code"
    CODE_ENTRY = "code_entry"
    SETTING_PASSWORD = "setting_password"
    RESET_COMPLETE = "reset_complete"


_TRANSITIONS = {
    ResetState.REQUESTING_CODE: {ResetState.CODE_ENTRY},
    ResetState.CODE_ENTRY: {ResetState.CODE_ENTRY, ResetState.SETTING_PASSWORD, ResetState.REQUESTING_CODE},
    ResetState.SETTING_PASSWORD: {
        ResetState.CODE_ENTRY,
        ResetState.RESET_COMPLETE,
        ResetState.REQUESTING_CODE,
    },
    ResetState.RESET_COMPLETE: set(),
}

# conditions that send the user back to the first step
_RESTART_ON = {OtpErrorKind.EXPIRED, OtpErrorKind.MISSING, OtpErrorKind.LOCKED}


class PasswordResetFlow:
    def __init__(
        self,
        store: ResetSessionStore,
        identity,
        email_sender,
        update_password: PasswordUpdater,
        *,
        code_ttl: timedelta = timedelta(minutes=10),
        resend_cooldown: timedelta = timedelta(seconds=60),
        max_attempts: int | None = 5,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.identity = identity
        self.email_sender = email_sender
        self.update_password = update_password
        self.code_ttl = code_ttl
        self.resend_cooldown = resend_cooldown
        self.max_attempts = max_attempts
        self.now = now

        self.state = ResetState.REQUESTING_CODE
        self.email: str | None = None
        self.error: AuthFlowError | None = None
        self._busy = False

    def _transition(self, new: ResetState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise FlowStateError(f"Cannot move from {self.state.value} to {new.value}.")
        logger.debug("reset %s -> %s", self.state.value, new.value)
        self.state = new

    def _require(self, *allowed: ResetState) -> bool:
        if self._busy:
            self.error = FlowStateError("Please wait, your previous request is still being processed.")
            return False
        if self.state not in allowed:
            self.error = FlowStateError(f"This action is not available while the reset is {self.state.value}.")
            return False
        return True

    async def _restart(self) -> None:
        await self.store.clear(self.email)
        self.state = ResetState.REQUESTING_CODE

    async def load(self, email: str) -> ResetState:
        """Rebuild the flow for ``email`` from the persisted session."""
        self.email = normalize_email(email)
        session = await self.store.get(self.email)
        if session is None:
            self.state = ResetState.REQUESTING_CODE
        elif session.verified:
            self.state = ResetState.SETTING_PASSWORD
        else:
            self.state = ResetState.CODE_ENTRY
        return self.state

    # ── step 1: request a code ───────────────────────────────────────
    async def request_code(self, email: str) -> ResetState:
        if not self._require(ResetState.REQUESTING_CODE, ResetState.CODE_ENTRY):
            return self.state
        self.error = None

        email = (email or "").strip()
        if not email:
            self.error = ValidationError("Please enter an email address.")
            return self.state
        if not is_valid_email(email):
            self.error = ValidationError("Invalid email address.")
            return self.state

        self.email = normalize_email(email)
        self._busy = True
        try:
            await self._issue_code()
        except NetworkError as exc:
            self.error = exc
            return self.state
        finally:
            self._busy = False

        if self.state != ResetState.CODE_ENTRY:
            self._transition(ResetState.CODE_ENTRY)
        return self.state

    async def _issue_code(self) -> None:
        account = await self.identity.get_by_email(self.email)
        if account is None:
            # same answer as for a real account; no session is created
            logger.info("Password reset requested for unknown email")
            return

        session = new_session(self.email, self.code_ttl, self.now())
        await self.store.set(session)
        try:
            await self.email_sender.send_reset_code_email(self.email, account.display_name, session.code)
        except EmailDeliveryError as exc:
            logger.warning("Reset code email to %s failed: %s", self.email, exc)
            await self.store.clear(self.email)
            raise NetworkError("Failed to send email. Please try again.") from exc
        logger.info("Password reset code sent to %s", self.email)

    async def resend(self) -> ResetState:
        if not self._require(ResetState.CODE_ENTRY, ResetState.SETTING_PASSWORD):
            return self.state
        self.error = None

        wait = resend_available_in(await self.store.get(self.email), self.resend_cooldown, self.now())
        if wait > 0:
            self.error = ValidationError(f"Please wait {wait}s before requesting a new code.")
            return self.state

        self._busy = True
        try:
            await self._issue_code()
        except NetworkError as exc:
            self.error = exc
            await self._restart()
            return self.state
        finally:
            self._busy = False

        self._transition(ResetState.CODE_ENTRY)
        return self.state

    # ── step 2: verify the code ──────────────────────────────────────
    async def verify_code(self, code: str) -> ResetState:
        if not self._require(ResetState.CODE_ENTRY):
            return self.state
        self.error = None

        code = (code or "").strip()
        if len(code) != 6 or not code.isdigit():
            self.error = ValidationError("Please enter the 6-digit code sent to your email.")
            return self.state

        session = await self.store.get(self.email)
        try:
            verify_otp(session, self.email, code, self.now(), self.max_attempts)
        except OtpError as exc:
            self.error = exc
            if exc.session is not None:
                await self.store.set(exc.session)
            if exc.code in _RESTART_ON:
                await self._restart()
            return self.state

        await self.store.set(session.mark_verified())
        self._transition(ResetState.SETTING_PASSWORD)
        return self.state

    # ── step 3: choose the new password ──────────────────────────────
    async def set_password(self, new_password: str, confirm_password: str) -> ResetState:
        if not self._require(ResetState.SETTING_PASSWORD):
            return self.state
        self.error = None

        if not check_password(new_password).is_valid:
            self.error = ValidationError("Password does not meet all requirements.")
            return self.state
        if new_password != confirm_password:
            self.error = ValidationError("Passwords do not match.")
            return self.state

        session = await self.store.get(self.email)
        if session is None or not session.verified:
            self.error = OtpError(
                OtpErrorKind.MISSING,
                "Reset session expired. Please request a new password reset.",
            )
            await self._restart()
            return self.state

        self._busy = True
        try:
            await self.update_password(self.email, session.code, new_password)
        except OtpError as exc:
            self.error = exc
            if exc.code in _RESTART_ON:
                await self._restart()
            return self.state
        except (ProviderError, ValidationError, NetworkError) as exc:
            # session stays so the user can retry without a new code
            self.error = exc
            return self.state
        finally:
            self._busy = False

        await self.store.clear(self.email)
        self._transition(ResetState.RESET_COMPLETE)
        logger.info("Password reset complete for %s", self.email)
        return self.state

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "email": self.email,
            "error": self.error.to_dict() if self.error else None,
        }
