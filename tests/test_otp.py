from datetime import timedelta

import pytest

from app.core.errors import OtpError, OtpErrorKind
from app.core.otp import generate_code, new_session, resend_available_in, verify_otp


def test_codes_are_six_digit_and_in_range():
    codes = [generate_code() for _ in range(1000)]
    for code in codes:
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999
    # 1000 draws from 900000 values: a handful of collisions at most
    assert len(set(codes)) > 990


def test_new_session_sets_expiry_and_normalizes_email(clock):
    session = new_session(" Ana@Example.com", timedelta(minutes=10), clock())
    assert session.email == "ana@example.com"
    assert session.expires_at == clock() + timedelta(minutes=10)
    assert session.sent_at == clock()
    assert session.attempts == 0


def test_correct_code_passes(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())
    assert verify_otp(session, "ANA@example.com ", session.code, clock()) is session


def test_expiry_boundary(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())

    just_before = session.expires_at - timedelta(milliseconds=1)
    assert verify_otp(session, "ana@example.com", session.code, just_before)

    with pytest.raises(OtpError) as exc:
        verify_otp(session, "ana@example.com", session.code, session.expires_at)
    assert exc.value.code == OtpErrorKind.EXPIRED

    with pytest.raises(OtpError) as exc:
        verify_otp(session, "ana@example.com", session.code, session.expires_at + timedelta(milliseconds=1))
    assert exc.value.code == OtpErrorKind.EXPIRED


def test_missing_session():
    with pytest.raises(OtpError) as exc:
        verify_otp(None, "ana@example.com", "123456")
    assert exc.value.code == OtpErrorKind.MISSING


def test_email_mismatch(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())
    with pytest.raises(OtpError) as exc:
        verify_otp(session, "ben@example.com", session.code, clock())
    assert exc.value.code == OtpErrorKind.MISMATCH


def test_wrong_code_bumps_attempts_without_mutating(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())
    wrong = "000000" if session.code != "000000" else "111111"

    with pytest.raises(OtpError) as exc:
        verify_otp(session, "ana@example.com", wrong, clock())

    assert exc.value.code == OtpErrorKind.INVALID
    assert exc.value.status_code == 400
    assert exc.value.session.attempts == 1
    assert session.attempts == 0


def test_locked_after_max_attempts(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())
    for _ in range(5):
        try:
            verify_otp(session, "ana@example.com", "not-it", clock(), max_attempts=5)
        except OtpError as exc:
            session = exc.session

    assert session.attempts == 5
    # even the right code is refused now
    with pytest.raises(OtpError) as exc:
        verify_otp(session, "ana@example.com", session.code, clock(), max_attempts=5)
    assert exc.value.code == OtpErrorKind.LOCKED
    assert exc.value.status_code == 429


def test_resend_cooldown(clock):
    session = new_session("ana@example.com", timedelta(minutes=10), clock())
    cooldown = timedelta(seconds=60)

    assert resend_available_in(session, cooldown, clock()) == 60
    clock.advance(seconds=59, milliseconds=500)
    assert resend_available_in(session, cooldown, clock()) == 1
    clock.advance(milliseconds=500)
    assert resend_available_in(session, cooldown, clock()) == 0
    assert resend_available_in(None, cooldown, clock()) == 0
