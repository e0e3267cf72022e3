import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import aiosmtplib
from core.breaker import email_breaker
from core.settings import settings

logger = logging.getLogger(__name__)


def escape(value: str | None) -> str:
    return html.escape(value or "", quote=True)


def _sender() -> str:
    address = settings.EMAIL_SENDER or settings.EMAIL_USER or ""
    return formataddr((settings.EMAIL_SENDER_NAME, address))


async def send_email(
    to: str, subject: str, html_content: str, reply_to: str | None = None
) -> bool:
    """Deliver one HTML email. Returns False instead of raising on failure."""
    if settings.EMAIL_TEST_MODE:
        logger.info(f"[test mode] Email to {to}: {subject}")
        return True
    if not settings.EMAIL_SERVER:
        logger.warning(f"Email server not configured, dropping email to {to}")
        return False

    async def handler():
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = _sender()
        message["To"] = to
        if reply_to:
            message["Reply-To"] = reply_to
        message.attach(MIMEText(html_content, "html"))

        await aiosmtplib.send(
            message,
            hostname=settings.EMAIL_SERVER,
            port=settings.EMAIL_PORT,
            username=settings.EMAIL_USER,
            password=settings.EMAIL_PASSWORD,
            start_tls=settings.EMAIL_USE_TLS,
        )

    try:
        await email_breaker.call(handler)
    except Exception as e:
        logger.error(f"Error sending email to {to}: {e}")
        return False
    logger.info(f"Email sent to {to}: {subject}")
    return True


def message_notification_html(
    recipient_name: str,
    sender_name: str,
    listing_title: str,
    message_preview: str,
    conversation_link: str,
) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; background-color: #f5f5f5;">
        <div style="max-width: 600px; margin: 0 auto; background: #ffffff; padding: 32px;">
            <h2 style="color: #1e1b4b;">New Message</h2>
            <p>Hi {escape(recipient_name)},</p>
            <p><strong>{escape(sender_name)}</strong> sent you a message about
            "<strong>{escape(listing_title)}</strong>":</p>
            <blockquote style="border-left: 4px solid #1e1b4b; padding: 12px 20px; color: #4b5563; font-style: italic;">
                "{escape(message_preview)}"
            </blockquote>
            <p style="text-align: center; margin-top: 28px;">
                <a href="{escape(conversation_link)}" style="background: #1e1b4b; color: #ffffff; padding: 12px 28px; text-decoration: none; border-radius: 8px;">
                    View Conversation
                </a>
            </p>
            <p style="color: #9ca3af; font-size: 12px;">
                You received this email because someone sent you a message on UME.
            </p>
        </div>
    </body>
    </html>
    """


async def send_message_notification_email(
    to: str,
    recipient_name: str,
    sender_name: str,
    listing_title: str,
    message_preview: str,
    conversation_link: str,
) -> bool:
    return await send_email(
        to,
        f"New message from {sender_name} on UME",
        message_notification_html(
            recipient_name, sender_name, listing_title, message_preview, conversation_link
        ),
    )


async def send_report_notification_email(
    report_id: str,
    reason: str,
    listing_title: str | None,
    reporter_email: str | None,
) -> bool:
    if not settings.SUPPORT_EMAIL:
        logger.warning("SUPPORT_EMAIL not set, skipping report notification")
        return False
    admin_link = f"{settings.FRONTEND_URL.rstrip('/')}/admin/reports/{report_id}"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>New Report Submitted</h2>
        <p><strong>Report ID:</strong> {escape(report_id)}</p>
        <p><strong>Listing:</strong> {escape(listing_title or "Unknown")}</p>
        <p><strong>Reporter:</strong> {escape(reporter_email or "Unknown")}</p>
        <p><strong>Reason:</strong></p>
        <p>{escape(reason)}</p>
        <p><a href="{escape(admin_link)}">Review report</a></p>
    </body>
    </html>
    """
    return await send_email(
        settings.SUPPORT_EMAIL,
        f"New report: {listing_title or report_id}",
        html_content,
        reply_to=reporter_email,
    )


async def send_contact_email(
    name: str, email: str, subject: str, message: str
) -> bool:
    if not settings.SUPPORT_EMAIL:
        logger.warning("SUPPORT_EMAIL not set, cannot forward contact message")
        return False
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Contact Form Submission</h2>
        <p><strong>From:</strong> {escape(name)} &lt;{escape(email)}&gt;</p>
        <p><strong>Subject:</strong> {escape(subject)}</p>
        <p style="white-space: pre-wrap;">{escape(message)}</p>
    </body>
    </html>
    """
    return await send_email(
        settings.SUPPORT_EMAIL,
        f"[Contact] {subject}",
        html_content,
        reply_to=email,
    )
