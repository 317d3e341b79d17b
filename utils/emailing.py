import os
import uuid
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, MAIL_FROM, FRONTEND_ORIGIN, logger

# Jinja env
_templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
_jinja_env = Environment(
    loader=FileSystemLoader(_templates_dir),
    autoescape=select_autoescape(["html", "xml"]),
)

EMAIL_BRAND_BUTTON_BG = os.getenv("EMAIL_BRAND_BUTTON_BG", "#1F1A17")
EMAIL_BRAND_BUTTON_TEXT = os.getenv("EMAIL_BRAND_BUTTON_TEXT", "#FFFFFF")
EMAIL_BRAND_BG = os.getenv("EMAIL_BRAND_BG", "#F6F1EB")
APP_NAME = os.getenv("APP_NAME", "Abaya Store")
EMAIL_LOGO_URL = os.getenv("EMAIL_LOGO_URL", (FRONTEND_ORIGIN + "/logo.png") if FRONTEND_ORIGIN else "")


def render_email(template_name: str, **context) -> str:
    base = {
        "app_name": APP_NAME,
        "brand_bg": EMAIL_BRAND_BG,
        "button_bg": EMAIL_BRAND_BUTTON_BG,
        "button_text": EMAIL_BRAND_BUTTON_TEXT,
        "logo_url": EMAIL_LOGO_URL,
        "frontend_origin": FRONTEND_ORIGIN,
    }
    base.update(context or {})
    return _jinja_env.get_template(template_name).render(**base)


def send_email_smtp(
    to_addr: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    from_addr: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> Optional[str]:
    """Send one HTML email. Returns the Message-ID on success, None on failure (never raises)."""
    try:
        if not SMTP_HOST or not MAIL_FROM:
            logger.error("[email] SMTP not configured; cannot send email")
            return None
        sender = (from_addr or MAIL_FROM).strip()
        display_from = f"{APP_NAME} <{sender}>" if "<" not in sender else sender
        envelope_from = sender.split("<", 1)[1].rstrip(">").strip() if "<" in sender else sender

        domain = envelope_from.split("@")[-1] if "@" in envelope_from else "localhost"
        message_id = f"<{uuid.uuid4()}@{domain}>"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = display_from
        msg["To"] = to_addr
        msg["Message-ID"] = message_id
        msg["Date"] = datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S +0000")
        if reply_to:
            msg["Reply-To"] = reply_to
        if not text:
            text = "Open this message in an HTML-capable email client."
        msg.attach(MIMEText(text or "", "plain", _charset="utf-8"))
        msg.attach(MIMEText(html or "", "html", _charset="utf-8"))

        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            server.starttls()
            if SMTP_USER or SMTP_PASS:
                server.login(SMTP_USER, SMTP_PASS)
            server.sendmail(envelope_from, [to_addr], msg.as_string())
        return message_id
    except Exception as ex:
        logger.exception(f"[email] SMTP send failed: {ex}")
        return None
