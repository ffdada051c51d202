"""Outgoing email over SMTP for the ``mail`` notification channel."""

import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from signoff.config import SMTPConfig
from signoff.core.logging_config import get_logger

logger = get_logger('signoff.core.mail')


def send_email(
    smtp: SMTPConfig,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
) -> tuple[bool, str]:
    """
    Send an email using the given SMTP settings.

    Args:
        smtp: SMTP settings
        to_email: Recipient email address
        subject: Email subject
        text_body: Plain text content
        html_body: Optional HTML alternative

    Returns:
        tuple: (success: bool, error_message: str)
    """
    if not smtp.HOST:
        return False, "SMTP host not configured"

    if not smtp.FROM_EMAIL:
        return False, "From email not configured"

    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = f"{smtp.FROM_NAME} <{smtp.FROM_EMAIL}>" if smtp.FROM_NAME else smtp.FROM_EMAIL
    msg['To'] = to_email
    msg.attach(MIMEText(text_body, 'plain'))
    if html_body:
        msg.attach(MIMEText(html_body, 'html'))

    try:
        with smtplib.SMTP(smtp.HOST, smtp.PORT) as server:
            if smtp.USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if smtp.USERNAME and smtp.PASSWORD:
                server.login(smtp.USERNAME, smtp.PASSWORD)
            server.sendmail(smtp.FROM_EMAIL, [to_email], msg.as_string())

        logger.info(f"Email sent to {to_email}")
        return True, ""

    except smtplib.SMTPAuthenticationError as e:
        error_msg = f"SMTP authentication failed: {e}"
        logger.error(error_msg)
        return False, error_msg
    except (smtplib.SMTPException, OSError) as e:
        error_msg = f"SMTP error: {e}"
        logger.error(error_msg)
        return False, error_msg
