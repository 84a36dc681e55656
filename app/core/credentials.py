import re
from dataclasses import dataclass

MIN_PASSWORD_LENGTH = 8

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")

STRENGTH_LABELS = ("Very Weak", "Weak", "Fair", "Good", "Strong")


@dataclass(frozen=True)
class PasswordRequirements:
    min_length: bool
    has_uppercase: bool
    has_lowercase: bool
    has_number: bool

    @property
    def is_valid(self) -> bool:
        return self.min_length and self.has_uppercase and self.has_lowercase and self.has_number

    @property
    def strength(self) -> int:
        return sum((self.min_length, self.has_uppercase, self.has_lowercase, self.has_number))

    @property
    def strength_label(self) -> str:
        return STRENGTH_LABELS[self.strength]

    def unmet(self) -> list[str]:
        """Human-readable list of the rules still failing, in checklist order."""
        out = []
        if not self.min_length:
            out.append(f"At least {MIN_PASSWORD_LENGTH} characters")
        if not self.has_uppercase:
            out.append("One uppercase letter")
        if not self.has_lowercase:
            out.append("One lowercase letter")
        if not self.has_number:
            out.append("One number")
        return out


def check_password(password) -> PasswordRequirements:
    if not isinstance(password, str):
        return PasswordRequirements(False, False, False, False)
    return PasswordRequirements(
        min_length=len(password) >= MIN_PASSWORD_LENGTH,
        has_uppercase=bool(_UPPER_RE.search(password)),
        has_lowercase=bool(_LOWER_RE.search(password)),
        has_number=bool(_DIGIT_RE.search(password)),
    )


def is_valid_password(password) -> bool:
    return check_password(password).is_valid


def is_valid_email(email) -> bool:
    if not isinstance(email, str):
        return False
    return bool(_EMAIL_RE.fullmatch(email))


def normalize_email(email: str) -> str:
    return email.strip().lower()
