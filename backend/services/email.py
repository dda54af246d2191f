"""Appointment confirmation email sent after a booking."""
from __future__ import annotations

from html import escape

import httpx

from core.config import get_settings

RESEND_EMAILS_URL = "https://api.resend.com/emails"


def _render_confirmation_html(name: str, formatted_date: str, formatted_time: str) -> str:
    settings = get_settings()
    site_url = settings.app_url.rstrip("/")

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1"></head>
<body style="margin:0;padding:0;background:#f4f5f7;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
  <div style="max-width:560px;margin:0 auto;padding:40px 24px;">
    <div style="background:white;border-radius:16px;padding:40px 32px;box-shadow:0 1px 3px rgba(0,0,0,0.08);">
      <h1 style="font-size:26px;font-weight:700;color:#1a1a1a;margin:0 0 16px;">Hallo {escape(name)},</h1>

      <p style="font-size:16px;color:#555;line-height:1.6;margin:0 0 24px;">
        dein Kennenlerngespräch ist gebucht. Die Kalendereinladung kommt in einer separaten E-Mail.
      </p>

      <div style="background:#f7f8fa;border-radius:12px;padding:20px 24px;margin:0 0 24px;">
        <p style="font-size:15px;color:#1a1a1a;margin:0 0 6px;"><strong>{escape(formatted_date)}</strong></p>
        <p style="font-size:15px;color:#555;margin:0;">{escape(formatted_time)} Uhr (15 Minuten)</p>
      </div>

      <p style="font-size:13px;color:#999;margin:0;line-height:1.5;">
        Du kannst nicht? Antworte einfach auf diese E-Mail, dann finden wir einen neuen Termin.
      </p>
    </div>

    <p style="text-align:center;font-size:12px;color:#aaa;margin:24px 0 0;">
      <a href="{site_url}" style="color:#aaa;">{escape(site_url)}</a>
    </p>
  </div>
</body>
</html>"""


def send_appointment_confirmation(name: str, email: str, formatted_date: str, formatted_time: str) -> None:
    settings = get_settings()
    if not settings.resend_api_key or not email:
        return

    html = _render_confirmation_html(name, formatted_date, formatted_time)

    with httpx.Client(timeout=20) as client:
        client.post(
            RESEND_EMAILS_URL,
            headers={
                "Authorization": f"Bearer {settings.resend_api_key}",
                "Content-Type": "application/json",
            },
            json={
                "from": settings.resend_from_email,
                "to": [email],
                "subject": f"Dein Termin am {formatted_date} um {formatted_time} Uhr",
                "html": html,
            },
        ).raise_for_status()
