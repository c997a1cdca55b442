import enum
import logging
import smtplib

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import format_html

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "We miss you on Codeforces!"


class ReminderOutcome(enum.Enum):
    SENT = "sent"
    QUOTA_EXCEEDED = "quota_exceeded"


class ReminderDispatchError(Exception):
    """Delivery failed for a reason other than the sending quota."""


def profile_url(handle: str) -> str:
    base = getattr(settings, "CF_PROFILE_URL", "https://codeforces.com/profile").rstrip("/")
    return f"{base}/{handle}"


def _quota_codes() -> set[int]:
    return {int(code) for code in getattr(settings, "EMAIL_QUOTA_STATUS_CODES", [451])}


def _is_quota_error(exc: Exception) -> bool:
    codes = _quota_codes()
    if isinstance(exc, smtplib.SMTPResponseException):
        return exc.smtp_code in codes
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        return any(code in codes for code, _msg in exc.recipients.values())
    if isinstance(exc, smtplib.SMTPException):
        message = str(exc)
        return any(str(code) in message for code in codes)
    return False


def build_reminder(email: str, name: str, handle: str) -> EmailMultiAlternatives:
    url = profile_url(handle)
    text_body = (
        f"Hi {name},\n\n"
        "We noticed you haven't solved any problems in the last week on Codeforces.\n\n"
        f"Your profile: {url}\n\n"
        "Keep up the practice and happy coding!\n\n"
        "- Student Progress Manager"
    )
    html_body = format_html(
        "<p>Hi {},</p>"
        "<p>We noticed you haven't solved any problems in the last week on Codeforces.</p>"
        '<p>Your profile: <a href="{}" target="_blank">{}</a></p>'
        "<p>Keep up the practice and happy coding!</p>"
        "<p>- Student Progress Manager</p>",
        name,
        url,
        handle,
    )
    message = EmailMultiAlternatives(
        subject=REMINDER_SUBJECT,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[email],
    )
    message.attach_alternative(html_body, "text/html")
    return message


def send_reminder(email: str, name: str, handle: str) -> ReminderOutcome:
    """
    Send one inactivity reminder.

    Returns ``ReminderOutcome.SENT`` on delivery and
    ``ReminderOutcome.QUOTA_EXCEEDED`` when the transport reports the sending
    quota; any other failure raises ``ReminderDispatchError``.
    """
    message = build_reminder(email, name, handle)
    try:
        sent = message.send(fail_silently=False)
    except Exception as exc:
        if _is_quota_error(exc):
            logger.warning("Email quota exceeded, skipping reminder to %s: %s", email, exc)
            return ReminderOutcome.QUOTA_EXCEEDED
        raise ReminderDispatchError(f"Failed to send reminder to {email}: {exc}") from exc

    if not sent:
        raise ReminderDispatchError(f"Mail backend accepted no message for {email}")
    return ReminderOutcome.SENT
