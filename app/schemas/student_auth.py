from pydantic import BaseModel, Field

from app.schemas.student import StudentProfileOut


# ── Password checklist ────────────────────────────────────────────────
class PasswordStrengthRequest(BaseModel):
    password: str = ""


class PasswordStrengthResponse(BaseModel):
    min_length: bool
    has_uppercase: bool
    has_lowercase: bool
    has_number: bool
    is_valid: bool
    strength: int
    label: str


# ── Signup ────────────────────────────────────────────────────────────
# email/password are plain strings on purpose: the signup flow owns the
# validation messages, pydantic only checks shape
class SignupRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    course: str = ""
    other_course: str | None = None
    is_enrolled: bool = True
    year_level: str = ""
    accepted_terms: bool = False

    model_config = {
        "json_schema_extra": {
            "example": {
                "first_name": "Ana",
                "last_name": "Reyes",
                "email": "ana@example.com",
                "password": "Passw0rdX",
                "confirm_password": "Passw0rdX",
                "course": "BSIT",
                "is_enrolled": True,
                "year_level": "3rd Year",
                "accepted_terms": True,
            }
        }
    }


class OtpDialogOut(BaseModel):
    state: str
    cells: list[str]
    focus: int
    error: str | None = None
    resend_available_in: int


class SignupFlowResponse(BaseModel):
    flow_id: str
    state: str
    email: str | None = None
    error: dict | None = None
    dialog: OtpDialogOut | None = None


class SignupVerifyRequest(BaseModel):
    code: str = Field(..., max_length=32)


# ── Tokens ────────────────────────────────────────────────────────────
class StudentLoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)


class OAuthLoginRequest(BaseModel):
    access_token: str = Field(..., min_length=1)


class StudentLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    student: StudentProfileOut


# ── Password reset by code ────────────────────────────────────────────
class ResetRequest(BaseModel):
    email: str


class ResetVerifyRequest(BaseModel):
    email: str
    code: str = Field(..., max_length=32)


class ResetConfirmRequest(BaseModel):
    email: str
    new_password: str
    confirm_password: str


class ResetFlowResponse(BaseModel):
    state: str
    email: str | None = None
    message: str | None = None


class ResetUserPasswordRequest(BaseModel):
    email: str = ""
    verification_code: str = ""
    new_password: str = ""


class ResetUserPasswordResponse(BaseModel):
    success: bool
    message: str


# ── Password reset by link ────────────────────────────────────────────
class ResetLinkRequest(BaseModel):
    email: str


class ResetLinkInfo(BaseModel):
    email: str


class ResetLinkConfirm(BaseModel):
    code: str
    new_password: str
    confirm_password: str


class MessageResponse(BaseModel):
    message: str
