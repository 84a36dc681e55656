"""
Six-cell verification code input.

Mirrors what the browser dialog does cell by cell, so the signup flow can
feed it either keystrokes or a pasted code and get the same outcome.
"""
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable

from app.core.errors import AuthFlowError, FlowStateError, OtpError, ValidationError
from app.core.otp import OTP_LENGTH, utcnow


class DialogState(str, Enum):
    EDITING = "editing"
    VERIFYING = "verifying"
    SUCCESS = "success"


def _numeric_prefix(text: str) -> str:
    out = []
    for ch in text or "":
        if not ("0" <= ch <= "9"):
            break
        out.append(ch)
    return "".join(out)


class OtpInput:
    def __init__(
        self,
        resend_cooldown: timedelta = timedelta(seconds=60),
        now: Callable[[], datetime] = utcnow,
    ):
        self.resend_cooldown = resend_cooldown
        self.now = now
        self.cells = [""] * OTP_LENGTH
        self.focus = 0
        self.state = DialogState.EDITING
        self.last_error: AuthFlowError | None = None
        self._cooldown_started: datetime | None = None

    # ── derived ──────────────────────────────────────────────────────
    @property
    def code(self) -> str:
        return "".join(self.cells)

    @property
    def is_complete(self) -> bool:
        return all(self.cells)

    @property
    def disabled(self) -> bool:
        return self.state != DialogState.EDITING

    @property
    def error(self) -> str | None:
        return self.last_error.message if self.last_error else None

    def resend_available_in(self) -> int:
        if self._cooldown_started is None:
            return 0
        remaining = (self._cooldown_started + self.resend_cooldown - self.now()).total_seconds()
        return max(0, math.ceil(remaining))

    # ── editing ──────────────────────────────────────────────────────
    def type_digit(self, index: int, value: str) -> bool:
        """Returns False when the keystroke was ignored."""
        if self.disabled or not 0 <= index < OTP_LENGTH:
            return False
        if value and (len(value) != 1 or not ("0" <= value <= "9")):
            return False

        self.cells[index] = value
        self.last_error = None
        if value and index < OTP_LENGTH - 1:
            self.focus = index + 1
        else:
            self.focus = index
        return True

    def backspace(self, index: int) -> None:
        if self.disabled or not 0 <= index < OTP_LENGTH:
            return
        if self.cells[index]:
            self.cells[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    def paste(self, text: str) -> int:
        """Fill from the first cell with the leading digits of ``text``. Returns how many were taken."""
        if self.disabled:
            return 0
        digits = _numeric_prefix(text)[:OTP_LENGTH]
        if not digits:
            return 0
        for i, d in enumerate(digits):
            self.cells[i] = d
        self.last_error = None
        self.focus = min(len(digits), OTP_LENGTH - 1)
        return len(digits)

    def clear(self) -> None:
        self.cells = [""] * OTP_LENGTH
        self.focus = 0

    # ── actions ──────────────────────────────────────────────────────
    async def submit(self, verifier: Callable[[str], Awaitable[Any]]) -> bool:
        if self.state == DialogState.VERIFYING:
            raise FlowStateError("Verification is already in progress.")
        if self.state == DialogState.SUCCESS:
            return True
        if not self.is_complete:
            self.last_error = ValidationError(f"Please enter all {OTP_LENGTH} digits")
            return False

        self.state = DialogState.VERIFYING
        self.last_error = None
        try:
            await verifier(self.code)
        except OtpError as exc:
            self.clear()
            self.last_error = exc
            self.state = DialogState.EDITING
            return False
        except BaseException:
            self.state = DialogState.EDITING
            raise

        self.state = DialogState.SUCCESS
        return True

    def start_cooldown(self) -> None:
        self._cooldown_started = self.now()

    async def resend(self, sender: Callable[[], Awaitable[Any]]) -> bool:
        if self.disabled:
            return False
        wait = self.resend_available_in()
        if wait > 0:
            self.last_error = ValidationError(f"Please wait {wait}s before requesting a new code.")
            return False
        try:
            await sender()
        except AuthFlowError as exc:
            self.last_error = exc
            return False

        self.start_cooldown()
        self.clear()
        self.last_error = None
        return True

    def cancel(self) -> None:
        self.clear()
        self.state = DialogState.EDITING
        self.last_error = None
        self._cooldown_started = None

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "cells": list(self.cells),
            "focus": self.focus,
            "error": self.error,
            "resend_available_in": self.resend_available_in(),
        }
