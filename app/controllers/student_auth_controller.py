"""
HTTP side of the student authentication workflows.

Each function builds request-scoped collaborators around the db session,
drives one step of a flow and turns the error the flow recorded into an
HTTPException. Anything the step persisted (attempt counters, cleared
sessions) is committed before raising, since get_db rolls back on error.
"""
import logging
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import check_password
from app.core.dependencies import flow_http_error
from app.core.email_service import EmailDeliveryError
from app.core.errors import AuthFlowError, OtpError, OtpErrorKind, ValidationError
from app.core.security import create_access_token
from app.models.student import Student
from app.schemas.student import StudentProfileOut
from app.schemas.student_auth import (
    OtpDialogOut,
    PasswordStrengthResponse,
    ResetFlowResponse,
    SignupFlowResponse,
    SignupRequest,
    StudentLoginResponse,
)
from app.services.flow_registry import SignupFlowRegistry
from app.services.functions import reset_user_password
from app.services.identity import SqlIdentityProvider
from app.services.password_reset_flow import PasswordResetFlow, ResetState
from app.services.profiles import SqlProfileStore
from app.services.session_store import SqlResetSessionStore
from app.services.signup_flow import SignupFlow, SignupForm, SignupState

logger = logging.getLogger(__name__)

RESET_CODE_SENT = "If an account exists for this email, a reset code has been sent."


def password_strength(password: str) -> PasswordStrengthResponse:
    req = check_password(password)
    return PasswordStrengthResponse(
        min_length=req.min_length,
        has_uppercase=req.has_uppercase,
        has_lowercase=req.has_lowercase,
        has_number=req.has_number,
        is_valid=req.is_valid,
        strength=req.strength,
        label=req.strength_label,
    )


def _token_response(student: Student) -> StudentLoginResponse:
    return StudentLoginResponse(
        access_token=create_access_token(student.uid, "student", student.email),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        student=StudentProfileOut.model_validate(student),
    )


async def _fail(db: AsyncSession, error: AuthFlowError) -> HTTPException:
    await db.commit()
    return flow_http_error(error)


# ─────────────────────────────────────────────────────────────
# SIGNUP
# ─────────────────────────────────────────────────────────────
def _signup_response(flow_id: str, flow: SignupFlow) -> SignupFlowResponse:
    snap = flow.snapshot()
    return SignupFlowResponse(
        flow_id=flow_id,
        state=snap["state"],
        email=snap["email"],
        error=snap["error"],
        dialog=OtpDialogOut(**snap["dialog"]) if snap["dialog"] else None,
    )


def _bind(flow: SignupFlow, db: AsyncSession, email_sender) -> SignupFlow:
    return flow.bind(SqlIdentityProvider(db), SqlProfileStore(db), email_sender)


def _get_flow(registry: SignupFlowRegistry, flow_id: str) -> SignupFlow:
    flow = registry.get(flow_id)
    if flow is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Signup session not found or expired. Please start again.",
        )
    return flow


async def start_signup(
    db: AsyncSession,
    registry: SignupFlowRegistry,
    email_sender,
    payload: SignupRequest,
) -> SignupFlowResponse:
    """
    Start (or restart) a signup. A new code for an email that already has a
    live flow waits out that flow's resend cooldown, then replaces it.
    """
    live = registry.find_by_email(str(payload.email))
    if live is not None:
        _, live_flow = live
        wait = live_flow.dialog.resend_available_in()
        if wait > 0:
            logger.info("Signup for %s refused, %ss of resend cooldown left", live_flow.email, wait)
            raise flow_http_error(ValidationError(f"Please wait {wait}s before requesting a new code."))

    flow = SignupFlow(
        otp_ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        resend_cooldown=timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS),
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )
    _bind(flow, db, email_sender)

    state = await flow.submit(SignupForm(**payload.model_dump()))
    if state != SignupState.OTP_PENDING:
        raise flow_http_error(flow.error)

    flow_id = registry.add(flow)
    return _signup_response(flow_id, flow)


async def get_signup(registry: SignupFlowRegistry, flow_id: str) -> SignupFlowResponse:
    return _signup_response(flow_id, _get_flow(registry, flow_id))


async def verify_signup(
    db: AsyncSession,
    registry: SignupFlowRegistry,
    email_sender,
    flow_id: str,
    code: str,
) -> StudentLoginResponse:
    flow = _bind(_get_flow(registry, flow_id), db, email_sender)

    state = await flow.verify(code)
    if state == SignupState.DONE:
        registry.discard(flow_id)
        logger.info("Signup complete for %s", flow.account.email)
        return _token_response(flow.account)

    if state == SignupState.ABANDONED:
        registry.discard(flow_id)
    raise flow_http_error(flow.error)


async def resend_signup_code(
    db: AsyncSession,
    registry: SignupFlowRegistry,
    email_sender,
    flow_id: str,
) -> SignupFlowResponse:
    flow = _bind(_get_flow(registry, flow_id), db, email_sender)
    await flow.resend()
    if flow.error:
        raise flow_http_error(flow.error)
    return _signup_response(flow_id, flow)


async def cancel_signup(registry: SignupFlowRegistry, flow_id: str) -> dict:
    flow = _get_flow(registry, flow_id)
    flow.cancel()
    if flow.error:
        raise flow_http_error(flow.error)
    registry.discard(flow_id)
    return {"message": "Signup cancelled"}


# ─────────────────────────────────────────────────────────────
# LOGIN
# ─────────────────────────────────────────────────────────────
async def login(db: AsyncSession, email: str, password: str) -> StudentLoginResponse:
    try:
        student = await SqlIdentityProvider(db).sign_in(email, password)
    except AuthFlowError as exc:
        raise flow_http_error(exc)
    return _token_response(student)


async def oauth_login(db: AsyncSession, provider: str, access_token: str) -> StudentLoginResponse:
    try:
        student = await SqlIdentityProvider(db).oauth_sign_in(provider, access_token)
    except AuthFlowError as exc:
        raise flow_http_error(exc)
    return _token_response(student)


# ─────────────────────────────────────────────────────────────
# PASSWORD RESET (emailed code)
# ─────────────────────────────────────────────────────────────
def _reset_flow(db: AsyncSession, email_sender) -> PasswordResetFlow:
    store = SqlResetSessionStore(db)
    identity = SqlIdentityProvider(db)

    async def update_password(email: str, code: str, new_password: str):
        return await reset_user_password(
            identity,
            store,
            email,
            code,
            new_password,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            verified_grace=timedelta(minutes=settings.RESET_VERIFIED_GRACE_MINUTES),
        )

    return PasswordResetFlow(
        store,
        identity,
        email_sender,
        update_password,
        code_ttl=timedelta(minutes=settings.RESET_CODE_EXPIRE_MINUTES),
        resend_cooldown=timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS),
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )


def _no_reset_session() -> OtpError:
    return OtpError(OtpErrorKind.MISSING, "Reset session expired. Please request a new password reset.")


async def request_reset_code(db: AsyncSession, email_sender, email: str) -> ResetFlowResponse:
    """
    Send (or re-send) a reset code. An existing session goes through the
    resend cooldown; an unknown email gets the same answer as a known one.
    """
    flow = _reset_flow(db, email_sender)
    if await flow.load(email or "") == ResetState.REQUESTING_CODE:
        await flow.request_code(email)
    else:
        await flow.resend()

    if flow.error:
        raise await _fail(db, flow.error)
    return ResetFlowResponse(state=flow.state.value, email=flow.email, message=RESET_CODE_SENT)


async def verify_reset_code(db: AsyncSession, email_sender, email: str, code: str) -> ResetFlowResponse:
    flow = _reset_flow(db, email_sender)
    if await flow.load(email or "") == ResetState.REQUESTING_CODE:
        raise flow_http_error(_no_reset_session())

    await flow.verify_code(code)
    if flow.error:
        raise await _fail(db, flow.error)
    return ResetFlowResponse(state=flow.state.value, email=flow.email, message="Code verified")


async def confirm_reset(
    db: AsyncSession,
    email_sender,
    email: str,
    new_password: str,
    confirm_password: str,
) -> ResetFlowResponse:
    flow = _reset_flow(db, email_sender)
    if await flow.load(email or "") == ResetState.REQUESTING_CODE:
        raise flow_http_error(_no_reset_session())

    await flow.set_password(new_password, confirm_password)
    if flow.error:
        raise await _fail(db, flow.error)
    return ResetFlowResponse(
        state=flow.state.value,
        email=flow.email,
        message="Password reset successfully. You can now sign in with your new password.",
    )


async def call_reset_user_password(
    db: AsyncSession,
    email: str,
    verification_code: str,
    new_password: str,
) -> dict:
    try:
        return await reset_user_password(
            SqlIdentityProvider(db),
            SqlResetSessionStore(db),
            email,
            verification_code,
            new_password,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            verified_grace=timedelta(minutes=settings.RESET_VERIFIED_GRACE_MINUTES),
        )
    except AuthFlowError as exc:
        raise await _fail(db, exc)


# ─────────────────────────────────────────────────────────────
# PASSWORD RESET (emailed link)
# ─────────────────────────────────────────────────────────────
async def send_reset_link(db: AsyncSession, email_sender, email: str) -> dict:
    try:
        await SqlIdentityProvider(db).send_password_reset_email(email, email_sender)
    except AuthFlowError as exc:
        raise flow_http_error(exc)
    except EmailDeliveryError as exc:
        logger.warning("Reset link email failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"detail": "Failed to send email. Please try again.", "kind": "network"},
        )
    return {"message": "Password reset email sent. Check your inbox."}


async def check_reset_link(db: AsyncSession, code: str) -> dict:
    try:
        email = await SqlIdentityProvider(db).verify_password_reset_link(code)
    except AuthFlowError as exc:
        raise flow_http_error(exc)
    return {"email": email}


async def confirm_reset_link(db: AsyncSession, code: str, new_password: str, confirm_password: str) -> dict:
    if new_password != confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"detail": "Passwords do not match.", "kind": "validation"},
        )
    try:
        await SqlIdentityProvider(db).confirm_password_reset_link(code, new_password)
    except AuthFlowError as exc:
        raise flow_http_error(exc)
    return {"message": "Password reset successfully. You can now sign in with your new password."}
