import os
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from cwv_auditor.platform.config import settings
from cwv_auditor.platform.exceptions import ExportError
from cwv_auditor.platform.logger import get_logger

logger = get_logger("email_service")

current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../../features/reports/template")

if not os.path.exists(template_dir):
    template_dir = os.path.join(os.getcwd(), "cwv_auditor/features/reports/template")

env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_subtype: str = "octet-stream"


def render_template(name: str, **context) -> str:
    return env.get_template(name).render(app_name=settings.APP_NAME, **context)


def build_message(
    to_email: str,
    subject: str,
    body: str,
    attachments: Optional[Iterable[Attachment]] = None,
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.MAIL_FROM_NAME, settings.MAIL_FROM_ADDRESS))
    msg["To"] = to_email

    msg.attach(MIMEText(body, "html"))

    for attachment in attachments or ():
        part = MIMEApplication(attachment.content, _subtype=attachment.mime_subtype)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)

    return msg


def send_email(
    to_email: str,
    subject: str,
    body: str,
    attachments: Optional[Iterable[Attachment]] = None,
):
    """
    Send an HTML email with optional attachments over SMTP.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    MAIL_ENCRYPTION is "tls". Raises ExportError on any delivery failure so
    callers decide whether the failure is fatal.
    """
    if not settings.MAIL_USERNAME or not settings.MAIL_PASSWORD:
        raise ExportError("SMTP credentials are not configured (MAIL_USERNAME / MAIL_PASSWORD)")

    msg = build_message(to_email, subject, body, attachments)
    port = settings.MAIL_PORT

    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.MAIL_HOST, port, context=context) as server:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
        else:
            with smtplib.SMTP(settings.MAIL_HOST, port) as server:
                server.ehlo()

                if str(settings.MAIL_ENCRYPTION).upper() in ["TLS", "TRUE"]:
                    server.starttls()
                    server.ehlo()

                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP delivery to {to_email} failed: {e}")
        raise ExportError(f"Failed to send email: {e}") from e

    logger.info(f"Email '{subject}' sent to {to_email}")
