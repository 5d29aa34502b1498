import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from fastapi import BackgroundTasks

from app.core.config import settings
from app.core.timezone import normalizer
from app.models.appointment import Appointment
from app.models.user import User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Told about confirmed and cancelled appointments. Nothing it does feeds back
    into scheduling."""

    def appointment_confirmed(self, appointment: Appointment, patient: User | None) -> None: ...

    def appointment_cancelled(self, appointment: Appointment, patient: User | None) -> None: ...


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def _local_window(start_utc: datetime | None, end_utc: datetime | None) -> tuple[str, str]:
    if start_utc is None or end_utc is None:
        return "", ""
    d, start_hhmm = normalizer.to_local(start_utc)
    _, end_hhmm = normalizer.to_local(end_utc)
    return d.strftime("%A, %B %d, %Y"), f"{start_hhmm} – {end_hhmm}"


def _footer() -> str:
    contact = " &nbsp;·&nbsp; ".join(
        html.escape(v) for v in (settings.contact_email, settings.contact_phone) if v
    )
    return f"""
      <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{html.escape(settings.site_name)}</p>
      <p style="margin:0;font-size:13px;color:#6b7280;">{contact}<br>{html.escape(settings.contact_address)}</p>
    """


def build_appointment_html(
    heading: str,
    recipient_name: str | None,
    intro: str,
    date_str: str,
    time_str: str,
    extra: str | None = None,
) -> str:
    """Build HTML body for an appointment notification."""
    extra_section = ""
    if extra:
        extra_section = f'<p style="margin:0 0 24px 0;color:#6b7280;font-size:14px;">{html.escape(extra)}</p>'
    when_section = ""
    if date_str:
        when_section = f"""
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
          <tr>
            <td style="padding:20px 24px;">
              <p style="margin:0 0 8px 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Date</p>
              <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{date_str}</p>
              <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Time (clinic time)</p>
              <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{time_str}</p>
            </td>
          </tr>
        </table>
        """
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{html.escape(heading)}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;margin:40px auto;background:#ffffff;border-radius:12px;">
    <tr>
      <td style="padding:32px 32px 24px 32px;">
        <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{html.escape(heading)}</h1>
        <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hi {html.escape(recipient_name or 'there')}, {html.escape(intro)}</p>
        {when_section}
        {extra_section}
      </td>
    </tr>
    <tr>
      <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">{_footer()}</td>
    </tr>
  </table>
</body>
</html>
"""


def send_appointment_confirmed_email(
    to_email: str,
    recipient_name: str | None,
    start_utc: datetime | None,
    end_utc: datetime | None,
) -> None:
    """Compose and send appointment confirmation (call from background task)."""
    date_str, time_str = _local_window(start_utc, end_utc)
    body = build_appointment_html(
        "Appointment Confirmed", recipient_name, "your appointment is booked.", date_str, time_str,
        "If you need to reschedule or cancel, please contact us.",
    )
    _send_email_sync(to_email, f"{settings.site_name} – Appointment Confirmed", body)


def send_appointment_cancelled_email(
    to_email: str,
    recipient_name: str | None,
    start_utc: datetime | None,
    end_utc: datetime | None,
    reason: str | None = None,
) -> None:
    date_str, time_str = _local_window(start_utc, end_utc)
    body = build_appointment_html(
        "Appointment Cancelled", recipient_name, "your appointment has been cancelled.", date_str, time_str,
        f"Reason: {reason}" if reason else None,
    )
    _send_email_sync(to_email, f"{settings.site_name} – Appointment Cancelled", body)


class EmailNotifier:
    """Queues notification emails on the request's BackgroundTasks so SMTP runs after the response."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self.background_tasks = background_tasks

    def appointment_confirmed(self, appointment: Appointment, patient: User | None) -> None:
        if patient is None:
            logger.warning("Appointment %s has no patient record; confirmation not sent", appointment.id)
            return
        self.background_tasks.add_task(
            send_appointment_confirmed_email,
            to_email=patient.email,
            recipient_name=patient.full_name,
            start_utc=appointment.start_time,
            end_utc=appointment.end_time,
        )

    def appointment_cancelled(self, appointment: Appointment, patient: User | None) -> None:
        if patient is None:
            logger.warning("Appointment %s has no patient record; cancellation not sent", appointment.id)
            return
        self.background_tasks.add_task(
            send_appointment_cancelled_email,
            to_email=patient.email,
            recipient_name=patient.full_name,
            start_utc=appointment.start_time,
            end_utc=appointment.end_time,
            reason=appointment.cancellation_reason,
        )
