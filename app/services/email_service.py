import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging
from jinja2 import Environment

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email delivery over SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME
        self.use_tls = settings.SMTP_USE_TLS

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send_email(
        self,
        to_email: str,
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
        reply_to: Optional[str] = None
    ) -> bool:
        """Send an email via SMTP"""
        if not self.is_configured:
            logger.warning(f"SMTP not configured; email to {to_email} not sent: {subject}")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if reply_to:
                msg['Reply-To'] = reply_to

            msg.attach(MIMEText(body_text, 'plain', 'utf-8'))
            if body_html:
                msg.attach(MIMEText(body_html, 'html', 'utf-8'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}", exc_info=True)
            return False


# HTML bodies escape user-supplied values; plain-text bodies are sent as written
html_templates = Environment(autoescape=True)
text_templates = Environment(autoescape=False)

NOTIFICATION_HTML = html_templates.from_string("""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="color: #1e3a8a;">{{ title }}</h2>
  <p>Dear {{ name }},</p>
  <p>{{ message }}</p>
  {% if link %}<p><a href="{{ link }}">Open in the campus portal</a></p>{% endif %}
  <p style="font-size: 12px; color: #888;">{{ sender }}</p>
</body>
</html>
""")

PASSWORD_RESET_TEXT = text_templates.from_string("""Dear {{ name }},

We received a request to reset your password. Use the link below within {{ hours }} hour(s):

{{ reset_url }}

If you did not request this, you can ignore this email.

{{ sender }}
""")

PASSWORD_RESET_HTML = html_templates.from_string("""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <p>Dear {{ name }},</p>
  <p>We received a request to reset your password. The link is valid for {{ hours }} hour(s).</p>
  <p><a href="{{ reset_url }}" style="background: #1e3a8a; color: #fff; padding: 10px 16px; text-decoration: none;">Reset password</a></p>
  <p>If you did not request this, you can ignore this email.</p>
  <p style="font-size: 12px; color: #888;">{{ sender }}</p>
</body>
</html>
""")


class EmailTemplates:
    """Email bodies for common campus messages"""

    @staticmethod
    def notification(name: str, title: str, message: str, link: Optional[str] = None) -> tuple[str, str]:
        text = f"Dear {name},\n\n{message}\n"
        if link:
            text += f"\n{link}\n"
        text += f"\n{settings.SMTP_FROM_NAME}\n"
        html = NOTIFICATION_HTML.render(
            name=name, title=title, message=message, link=link, sender=settings.SMTP_FROM_NAME
        )
        return text, html

    @staticmethod
    def password_reset(name: str, token: str, email: str) -> tuple[str, str]:
        reset_url = f"{settings.PASSWORD_RESET_URL}?token={token}&email={email}"
        context = {
            "name": name,
            "reset_url": reset_url,
            "hours": settings.RESET_TOKEN_EXPIRE_HOURS,
            "sender": settings.SMTP_FROM_NAME,
        }
        return PASSWORD_RESET_TEXT.render(**context), PASSWORD_RESET_HTML.render(**context)
