from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import student_auth_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_student, get_signup_registry
from app.core.email_service import get_email_sender
from app.models.student import Student
from app.schemas.student import StudentProfileOut
from app.schemas.student_auth import (
    MessageResponse,
    OAuthLoginRequest,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    ResetConfirmRequest,
    ResetFlowResponse,
    ResetLinkConfirm,
    ResetLinkInfo,
    ResetLinkRequest,
    ResetRequest,
    ResetVerifyRequest,
    SignupFlowResponse,
    SignupRequest,
    SignupVerifyRequest,
    StudentLoginRequest,
    StudentLoginResponse,
)
from app.services.flow_registry import SignupFlowRegistry

router = APIRouter(prefix="/auth", tags=["Auth - Student"])


@router.post("/password-strength", response_model=PasswordStrengthResponse)
async def password_strength(payload: PasswordStrengthRequest):
    return ctl.password_strength(payload.password)


# ── Signup ────────────────────────────────────────────────────────────
@router.post("/signup", response_model=SignupFlowResponse, status_code=201)
async def signup(
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db),
    registry: SignupFlowRegistry = Depends(get_signup_registry),
    email_sender=Depends(get_email_sender),
):
    return await ctl.start_signup(db, registry, email_sender, payload)


@router.get("/signup/{flow_id}", response_model=SignupFlowResponse)
async def signup_status(flow_id: str, registry: SignupFlowRegistry = Depends(get_signup_registry)):
    return await ctl.get_signup(registry, flow_id)


@router.post("/signup/{flow_id}/verify", response_model=StudentLoginResponse)
async def signup_verify(
    flow_id: str,
    payload: SignupVerifyRequest,
    db: AsyncSession = Depends(get_db),
    registry: SignupFlowRegistry = Depends(get_signup_registry),
    email_sender=Depends(get_email_sender),
):
    return await ctl.verify_signup(db, registry, email_sender, flow_id, payload.code)


@router.post("/signup/{flow_id}/resend", response_model=SignupFlowResponse)
async def signup_resend(
    flow_id: str,
    db: AsyncSession = Depends(get_db),
    registry: SignupFlowRegistry = Depends(get_signup_registry),
    email_sender=Depends(get_email_sender),
):
    return await ctl.resend_signup_code(db, registry, email_sender, flow_id)


@router.delete("/signup/{flow_id}", response_model=MessageResponse)
async def signup_cancel(flow_id: str, registry: SignupFlowRegistry = Depends(get_signup_registry)):
    return await ctl.cancel_signup(registry, flow_id)


# ── Login ─────────────────────────────────────────────────────────────
@router.post("/login", response_model=StudentLoginResponse)
async def login(payload: StudentLoginRequest, db: AsyncSession = Depends(get_db)):
    return await ctl.login(db, payload.email, payload.password)


@router.post("/oauth/{provider}", response_model=StudentLoginResponse)
async def oauth_login(provider: str, payload: OAuthLoginRequest, db: AsyncSession = Depends(get_db)):
    return await ctl.oauth_login(db, provider, payload.access_token)


@router.get("/me", response_model=StudentProfileOut)
async def me(student: Student = Depends(get_current_student)):
    return student


# ── Password reset by code ────────────────────────────────────────────
@router.post("/password-reset/request", response_model=ResetFlowResponse)
async def reset_request(
    payload: ResetRequest,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender),
):
    return await ctl.request_reset_code(db, email_sender, payload.email)


@router.post("/password-reset/resend", response_model=ResetFlowResponse)
async def reset_resend(
    payload: ResetRequest,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender),
):
    return await ctl.request_reset_code(db, email_sender, payload.email)


@router.post("/password-reset/verify", response_model=ResetFlowResponse)
async def reset_verify(
    payload: ResetVerifyRequest,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender),
):
    return await ctl.verify_reset_code(db, email_sender, payload.email, payload.code)


@router.post("/password-reset/confirm", response_model=ResetFlowResponse)
async def reset_confirm(
    payload: ResetConfirmRequest,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender),
):
    return await ctl.confirm_reset(db, email_sender, payload.email, payload.new_password, payload.confirm_password)


# ── Password reset by link ────────────────────────────────────────────
@router.post("/password-reset-link", response_model=MessageResponse)
async def reset_link(
    payload: ResetLinkRequest,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender),
):
    return await ctl.send_reset_link(db, email_sender, payload.email)


@router.post("/password-reset-link/confirm", response_model=MessageResponse)
async def reset_link_confirm(payload: ResetLinkConfirm, db: AsyncSession = Depends(get_db)):
    return await ctl.confirm_reset_link(db, payload.code, payload.new_password, payload.confirm_password)


@router.get("/password-reset-link/{code}", response_model=ResetLinkInfo)
async def reset_link_check(code: str, db: AsyncSession = Depends(get_db)):
    return await ctl.check_reset_link(db, code)
