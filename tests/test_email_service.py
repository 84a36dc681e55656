from app.core.email_service import BrevoEmailSender

HOSTILE_NAME = "<a/href='http://evil.test'>Click</a> Reyes"


class CapturingSender(BrevoEmailSender):
    def __init__(self):
        super().__init__()
        self.sent: list[dict] = []

    async def _send(self, params, subject, html):
        self.sent.append({"params": params, "subject": subject, "html": html})


async def test_otp_email_escapes_the_name():
    sender = CapturingSender()
    await sender.send_otp_email("victim@example.com", HOSTILE_NAME, "123456")

    body = sender.sent[0]["html"]
    assert "<a/href" not in body
    assert "&lt;a/href=&#x27;http://evil.test&#x27;&gt;Click&lt;/a&gt;" in body
    assert "123456" in body


async def test_reset_code_email_escapes_the_name():
    sender = CapturingSender()
    await sender.send_reset_code_email("victim@example.com", "<script>x</script>", "654321")
    assert "<script>" not in sender.sent[0]["html"]


async def test_reset_link_is_quoted_inside_href():
    sender = CapturingSender()
    url = 'http://localhost:5173/reset-password?oobCode=abc"><img src=x>'
    await sender.send_reset_link_email("ana@example.com", "Ana", url)

    body = sender.sent[0]["html"]
    assert '"><img' not in body
    assert 'oobCode=abc&quot;&gt;&lt;img src=x&gt;"' in body


async def test_blank_name_falls_back_to_greeting():
    sender = CapturingSender()
    await sender.send_otp_email("ana@example.com", "   ", "123456")
    assert "Hi there," in sender.sent[0]["html"]
