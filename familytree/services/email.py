import smtplib
import time
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from html import escape
from typing import Optional, Union

from loguru import logger

from familytree.config import settings


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


# ============================================================
# TEMPLATES
# ============================================================

NEW_MEMBER_ADDED = "new_member_added"
PENDING_APPROVED = "pending_approved"

_LAYOUT = """
<div dir="rtl" style="font-family: 'Segoe UI', Tahoma, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #1E3A5F; color: white; padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
    <h1 style="margin: 0; font-size: 26px;">{title}</h1>
  </div>
  <div style="background: #fff; padding: 30px; border: 1px solid #e0e0e0; border-top: none; border-radius: 0 0 10px 10px;">
    <p style="color: #666; line-height: 1.8;">{body}</p>
    <div style="text-align: center; margin: 30px 0;">
      <a href="{url}" style="background: #1E3A5F; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px;">{link_text}</a>
    </div>
  </div>
</div>
"""


def render_template(template_name: str, data: dict) -> dict:
    """Returns {subject, html, text} for a named template."""
    member_name = escape(str(data.get("memberName") or "فرد جديد"))
    view_url = escape(str(data.get("viewUrl") or "#"))

    if template_name == NEW_MEMBER_ADDED:
        return {
            "subject": "تمت إضافة فرد جديد للعائلة - New Family Member Added",
            "html": _LAYOUT.format(
                title="فرد جديد في العائلة",
                body=f"تمت إضافة <strong>{member_name}</strong> إلى شجرة العائلة.",
                url=view_url,
                link_text="عرض الملف الشخصي",
            ),
            "text": f"تمت إضافة فرد جديد: {member_name}\n\nعرض: {view_url}",
        }

    if template_name == PENDING_APPROVED:
        return {
            "subject": "تمت الموافقة على طلب الإضافة - Your Submission Was Approved",
            "html": _LAYOUT.format(
                title="تمت الموافقة على طلبك",
                body=f"تمت مراجعة طلب إضافة <strong>{member_name}</strong> والموافقة عليه، وأصبح الآن جزءاً من شجرة العائلة.",
                url=view_url,
                link_text="عرض شجرة العائلة",
            ),
            "text": f"تمت الموافقة على إضافة {member_name} إلى شجرة العائلة.\n\nعرض: {view_url}",
        }

    message = escape(str(data.get("message") or ""))
    return {
        "subject": f"رسالة من شجرة عائلة {settings.DEFAULT_FAMILY_NAME}",
        "html": f"<p>{message}</p>",
        "text": message,
    }


# ============================================================
# SENDING
# ============================================================

def _send_via_smtp(recipients: list[str], subject: str, html: str, text: str) -> EmailResult:
    if not settings.SMTP_HOST or not settings.SMTP_USERNAME:
        return EmailResult(False, error="SMTP credentials not configured")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg["To"] = ", ".join(recipients)
    msg["Message-ID"] = make_msgid()

    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {recipients}: {e}")
        return EmailResult(False, error=f"SMTP error: {e}")

    logger.info(f"Email '{subject}' sent to {recipients}")
    return EmailResult(True, message_id=msg["Message-ID"])


def send_email(
    to: Union[str, list[str]],
    subject: str,
    html: str = "",
    text: str = "",
) -> EmailResult:
    recipients = [to] if isinstance(to, str) else list(to)

    if settings.EMAIL_PROVIDER == "none":
        logger.info(f"[EMAIL TEST MODE] to={recipients} subject={subject!r}")
        return EmailResult(True, message_id=f"test-{int(time.time() * 1000)}")

    if settings.EMAIL_PROVIDER == "smtp":
        return _send_via_smtp(recipients, subject, html, text)

    return EmailResult(False, error=f"Unsupported email provider: {settings.EMAIL_PROVIDER}")


def send_template_email(to: Union[str, list[str]], template_name: str, data: dict) -> EmailResult:
    rendered = render_template(template_name, data)
    return send_email(to, rendered["subject"], rendered["html"], rendered["text"])
