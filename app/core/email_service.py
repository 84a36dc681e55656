import html
import logging

import httpx

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(RuntimeError):
    pass


def _base_template(title: str, body_html: str) -> str:
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:560px;margin:auto;padding:24px">
      <div style="background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);
                  padding:24px;border-radius:10px 10px 0 0;text-align:center">
        <h1 style="margin:0;color:#fff;font-size:24px;">{html.escape(title)}</h1>
      </div>
      <div style="background:#f9f9f9;padding:24px;border-radius:0 0 10px 10px;">
        {body_html}
      </div>
      <p style="margin:18px 0 0 0;color:#666;font-size:12px;text-align:center">
        This is an automated email from DevPath. If you did not request it, you can ignore it.
      </p>
    </div>
    """


def _code_box(code: str, minutes: int) -> str:
    return f"""
      <div style="background:#fff;border:2px dashed #667eea;padding:20px;text-align:center;
                  margin:20px 0;border-radius:8px;">
        <p style="margin:0;color:#666;font-size:14px;">Your verification code is:</p>
        <div style="font-size:36px;font-weight:bold;color:#667eea;letter-spacing:8px;
                    margin:10px 0;font-family:monospace;">{html.escape(str(code))}</div>
        <p style="margin:0;color:#666;font-size:12px;">Valid for {int(minutes)} minutes</p>
      </div>
    """


def _first_name(name: str) -> str:
    """First word of the display name, HTML-escaped; it comes straight from the signup form."""
    first = name.split()[0] if name and name.strip() else "there"
    return html.escape(first)


class BrevoEmailSender:
    """
    Transactional email through the Brevo (Sendinblue) HTTP API.

    Every message is built from the same parameter set:
    to_email, to_name, otp_code, from_name, from_email, reply_to.
    """

    def __init__(self, cfg: Settings | None = None, timeout: float = 20):
        self.cfg = cfg or settings
        self.timeout = timeout

    def _params(self, to_email: str, to_name: str, otp_code: str | None = None) -> dict:
        return {
            "to_email": to_email,
            "to_name": to_name or to_email,
            "otp_code": otp_code,
            "from_name": self.cfg.EMAIL_FROM_NAME,
            "from_email": self.cfg.EMAIL_FROM,
            "reply_to": self.cfg.reply_to,
        }

    async def _send(self, params: dict, subject: str, html: str) -> None:
        if not self.cfg.BREVO_API_KEY:
            raise EmailDeliveryError("BREVO_API_KEY not configured")

        payload = {
            "sender": {"name": params["from_name"], "email": params["from_email"]},
            "to": [{"email": params["to_email"], "name": params["to_name"]}],
            "replyTo": {"email": params["reply_to"]},
            "subject": subject,
            "htmlContent": html,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(
                    BREVO_SEND_URL,
                    headers={"api-key": self.cfg.BREVO_API_KEY, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email transport error: {exc}") from exc

        if r.status_code >= 400:
            raise EmailDeliveryError(f"Brevo error {r.status_code}: {r.text}")
        logger.info("Email sent to %s | %s", params["to_email"], subject)

    async def send_otp_email(self, to_email: str, to_name: str, otp_code: str) -> None:
        params = self._params(to_email, to_name, otp_code)
        body = f"""
          <h2>Hi {_first_name(to_name)},</h2>
          <p>Thank you for signing up for DevPath! To complete your registration,
             please verify your email address with the code below:</p>
          {_code_box(otp_code, self.cfg.OTP_EXPIRE_MINUTES)}
          <p><strong>Security notice:</strong> never share this code with anyone.</p>
        """
        await self._send(params, "Verify Your Email - DevPath OTP", _base_template("Welcome to DevPath!", body))

    async def send_reset_code_email(self, to_email: str, to_name: str, otp_code: str) -> None:
        params = self._params(to_email, to_name, otp_code)
        body = f"""
          <h2>Hi {_first_name(to_name)},</h2>
          <p>Use this code to reset your DevPath password.</p>
          {_code_box(otp_code, self.cfg.RESET_CODE_EXPIRE_MINUTES)}
          <p>If you didn't request this, ignore it. Your account is safe.</p>
        """
        await self._send(params, "Reset your DevPath password", _base_template("Password Reset", body))

    async def send_reset_link_email(self, to_email: str, to_name: str, reset_url: str) -> None:
        params = self._params(to_email, to_name)
        body = f"""
          <h2>Hi {_first_name(to_name)},</h2>
          <p>Follow the button below to choose a new password.</p>
          <a href="{html.escape(reset_url, quote=True)}"
             style="display:inline-block;background:#667eea;color:#fff;text-decoration:none;
                    padding:12px 18px;border-radius:10px;font-weight:700;">
            RESET PASSWORD
          </a>
        """
        await self._send(params, "Reset your DevPath password", _base_template("Password Reset", body))


def get_email_sender() -> BrevoEmailSender:
    return BrevoEmailSender()
