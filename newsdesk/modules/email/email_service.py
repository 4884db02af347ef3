"""
Email Service Module
====================

Configurable email service supporting Resend, Brevo and SMTP.
Provider is selected via EMAIL_PROVIDER config ('resend', 'brevo', or 'smtp').
Every provider call is recorded in the email_logs table.
"""

import re
import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import make_msgid, formataddr
from typing import Optional, Dict, Any, Tuple
from urllib.parse import quote

import requests
import resend

from newsdesk.core.errors import ExternalServiceError, ValidationError

# Rejects consecutive dots, leading/trailing dots in local part
_VALID_EMAIL = re.compile(r'^[a-zA-Z0-9_%+-]+(\.[a-zA-Z0-9_%+-]+)*@[a-zA-Z0-9-]+(\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$')

BREVO_API_URL = 'https://api.brevo.com/v3/smtp/email'

logger = logging.getLogger(__name__)


def is_valid_email(address):
    return bool(address) and bool(_VALID_EMAIL.match(address))


class EmailService:
    """
    Provider-backed mailer.

    Configuration (read from Flask app.config):
        EMAIL_PROVIDER: 'resend' (default), 'brevo', or 'smtp'
        RESEND_API_KEY: required if provider is 'resend'
        BREVO_API_KEY: required if provider is 'brevo'
        EMAIL_HOST / EMAIL_PORT / EMAIL_PASSWORD: SMTP settings
        EMAIL_ADDRESS: sender address
        EMAIL_SENDER_NAME: sender display name
        EMAIL_BRAND_NAME: brand name used in templates
        FRONTEND_URL / ARTICLE_PATH_PREFIX: public article links
    """

    def __init__(self, app=None, db=None):
        self.provider = 'resend'
        self.api_key = None
        self.sender_email = None
        self.sender_name = 'Newsdesk'
        self.brand_name = 'Newsdesk'
        self.website_url = 'http://localhost:3000'
        self.article_path_prefix = '/article/'
        self.smtp_host = 'smtp.gmail.com'
        self.smtp_port = 587
        self.smtp_password = None
        self.db = db

        if app is not None:
            self.init_app(app, db)

    def init_app(self, app, db=None):
        """Initialize email service with Flask app configuration"""
        if db is not None:
            self.db = db

        self.provider = (app.config.get('EMAIL_PROVIDER') or 'resend').lower()
        logger.info(f"=== INITIALIZING EMAIL SERVICE (provider: {self.provider}) ===")

        self.sender_email = app.config.get('EMAIL_ADDRESS', 'noreply@example.com')
        self.sender_name = app.config.get('EMAIL_SENDER_NAME', 'Newsdesk')
        self.brand_name = app.config.get('EMAIL_BRAND_NAME', 'Newsdesk')
        self.website_url = (app.config.get('FRONTEND_URL') or 'http://localhost:3000').rstrip('/')
        self.article_path_prefix = app.config.get('ARTICLE_PATH_PREFIX', '/article/')

        if self.provider == 'brevo':
            self.api_key = app.config.get('BREVO_API_KEY')
            if not self.api_key:
                logger.warning("BREVO_API_KEY not configured - email sending disabled")
        elif self.provider == 'smtp':
            self.smtp_host = app.config.get('EMAIL_HOST', 'smtp.gmail.com')
            self.smtp_port = int(app.config.get('EMAIL_PORT', 587))
            self.smtp_password = app.config.get('EMAIL_PASSWORD')
            if not self.smtp_password:
                logger.warning("EMAIL_PASSWORD not configured - SMTP email sending disabled")
            else:
                logger.info(f"SMTP configured: {self.smtp_host}:{self.smtp_port}")
        else:
            self.provider = 'resend'
            self.api_key = app.config.get('RESEND_API_KEY')
            if not self.api_key:
                logger.warning("RESEND_API_KEY not configured - email sending disabled")
            else:
                resend.api_key = self.api_key
                logger.info("Resend API client initialized successfully")

    def _log_email(self, recipient, subject, email_type, status, error_message=None):
        """Log email attempt to database"""
        if self.db is None:
            return
        try:
            with self.db.connect() as conn:
                conn.execute("""
                    INSERT INTO email_logs (recipient, subject, email_type, status, error_message)
                    VALUES (?, ?, ?, ?, ?)
                """, (recipient, subject, email_type, status, error_message))
        except Exception as e:
            logger.error(f"Failed to log email to database: {e}")

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None,
             email_type: str = 'other') -> str:
        """
        Send one email through the configured provider.

        Returns:
            str: the provider's message id

        Raises:
            ValidationError: the recipient address is malformed
            ExternalServiceError: the provider is not configured or rejected the message
        """
        if not is_valid_email(to):
            raise ValidationError(f"Invalid email address: {to}")

        try:
            if self.provider == 'brevo':
                message_id = self._send_via_brevo(to, subject, html, text)
            elif self.provider == 'smtp':
                message_id = self._send_via_smtp(to, subject, html, text)
            else:
                message_id = self._send_via_resend(to, subject, html, text)
        except ExternalServiceError as e:
            self._log_email(to, subject, email_type, 'failed', e.message)
            raise
        except (requests.RequestException, smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending to {to}: {e}")
            self._log_email(to, subject, email_type, 'failed', str(e))
            raise ExternalServiceError(f"Email delivery failed for {to}", str(e))

        logger.debug(f"Email sent successfully to: {to}, ID: {message_id}")
        self._log_email(to, subject, email_type, 'sent')
        return message_id

    def _send_via_resend(self, recipient, subject, html_body, text_body=None):
        """Send a single email via Resend API"""
        if not self.api_key:
            raise ExternalServiceError('Resend API key not configured')

        email_params = {
            "from": formataddr((self.sender_name, self.sender_email)),
            "to": recipient,
            "subject": subject,
            "html": html_body
        }
        if text_body:
            email_params["text"] = text_body

        try:
            r = resend.Emails.send(email_params)
        except resend.exceptions.ResendError as e:
            raise ExternalServiceError(f"Resend error for {recipient}", str(e))

        if r and r.get('id'):
            return r['id']
        raise ExternalServiceError(f"Resend error for {recipient}", str(r))

    def _send_via_brevo(self, recipient, subject, html_body, text_body=None):
        """Send a single email via the Brevo transactional API"""
        if not self.api_key:
            raise ExternalServiceError('Brevo API key not configured')

        payload = {
            'sender': {'name': self.sender_name, 'email': self.sender_email},
            'to': [{'email': recipient}],
            'subject': subject,
            'htmlContent': html_body,
        }
        if text_body:
            payload['textContent'] = text_body

        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers={'api-key': self.api_key, 'accept': 'application/json'},
            timeout=10
        )
        if response.status_code != 201:
            raise ExternalServiceError(
                f"Brevo API error for {recipient}",
                f"{response.status_code}: {response.text[:200]}"
            )
        return response.json().get('messageId', '')

    def _send_via_smtp(self, recipient, subject, html_body, text_body=None):
        """Send a single email via SMTP (e.g. Gmail)"""
        if not self.smtp_password:
            raise ExternalServiceError('SMTP password not configured')

        msg = MIMEMultipart('alternative')
        msg['From'] = formataddr((self.sender_name, self.sender_email))
        msg['To'] = recipient
        msg['Subject'] = subject
        msg['Message-ID'] = make_msgid()

        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.sender_email, self.smtp_password)
            server.send_message(msg)

        logger.info(f"SMTP email sent to {recipient}")
        return msg['Message-ID']

    # ==================== Links ====================

    def article_url(self, article: Dict[str, Any]) -> str:
        return f"{self.website_url}{self.article_path_prefix}{article.get('slug') or article.get('id')}"

    def unsubscribe_url(self, email: str) -> str:
        return f"{self.website_url}/unsubscribe?email={quote(email)}"

    # ==================== Article Notification ====================

    def render_article_notification(self, article: Dict[str, Any], recipient: str,
                                    subject_prefix: str = '') -> Tuple[str, str, str]:
        """Build (subject, html, text) announcing a newly published article"""
        title = article.get('title', 'Latest News')
        excerpt = article.get('excerpt') or 'Read the full article to learn more...'
        category = article.get('category_name') or 'News'
        author = article.get('author_name') or 'Editor'
        article_url = self.article_url(article)
        unsubscribe_url = self.unsubscribe_url(recipient)
        date = _display_date(article.get('publish_date') or article.get('created_at'))

        subject = f"{subject_prefix}New Article: {title}"

        html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - {self.brand_name}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; background: #f4f4f4; max-width: 600px; margin: 0 auto; padding: 24px;">
    <div style="background: #ffffff; border: 1px solid #e0e0e0;">
        <div style="background: #1a1a1a; color: #ffffff; padding: 32px; text-align: center;">
            <h1 style="font-size: 24px; margin: 0 0 8px 0; letter-spacing: 2px;">{self.brand_name.upper()}</h1>
            <p style="font-size: 14px; margin: 0; opacity: 0.8;">New Article</p>
        </div>

        <div style="padding: 40px 32px;">
            <div style="font-size: 12px; text-transform: uppercase; color: #888; margin-bottom: 8px;">{category}</div>
            <h2 style="font-size: 22px; margin: 0 0 16px 0; line-height: 1.3;">{title}</h2>
            <div style="font-size: 14px; color: #666; margin-bottom: 24px; font-style: italic;">By {author} . {date}</div>

            <div style="background: #f8f8f8; padding: 24px; margin: 24px 0; border-left: 4px solid #1a1a1a;">
                <p style="font-size: 15px; margin: 0;">{excerpt}</p>
            </div>

            <div style="text-align: center; margin: 32px 0;">
                <a href="{article_url}" style="display: inline-block; background: #1a1a1a; color: #ffffff; padding: 14px 28px; text-decoration: none; font-weight: bold;">Read Full Article</a>
            </div>
        </div>

        <div style="background: #f8f8f8; padding: 24px; text-align: center; font-size: 13px; color: #666; border-top: 1px solid #e0e0e0;">
            <p style="margin: 4px 0;">{self.brand_name} . {datetime.now().year}</p>
            <p style="margin: 4px 0;"><a href="{unsubscribe_url}" style="color: #666;">Unsubscribe from these notifications</a> | <a href="{self.website_url}" style="color: #666;">Website</a></p>
        </div>
    </div>
</body>
</html>
        """

        text_body = f"""
New article from {self.brand_name}!

{title}
{category} . By {author} . {date}

{excerpt}

Read the full article: {article_url}

Unsubscribe: {unsubscribe_url}
        """

        return subject, html_body, text_body

    # ==================== Manual Newsletter ====================

    def render_newsletter(self, subject: str, content: str, recipient: str) -> Tuple[str, str, str]:
        """Wrap free-form newsletter content in the branded layout"""
        unsubscribe_url = self.unsubscribe_url(recipient)

        html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{subject}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; background: #f4f4f4; max-width: 600px; margin: 0 auto; padding: 24px;">
    <div style="background: #ffffff; border: 1px solid #e0e0e0;">
        <div style="background: #1a1a1a; color: #ffffff; padding: 32px; text-align: center;">
            <h1 style="font-size: 24px; margin: 0;">{self.brand_name} Newsletter</h1>
        </div>
        <div style="padding: 40px 32px;">
            {content}
        </div>
        <div style="background: #f8f8f8; padding: 24px; text-align: center; font-size: 13px; color: #666; border-top: 1px solid #e0e0e0;">
            <p style="margin: 4px 0;"><a href="{unsubscribe_url}" style="color: #666;">Unsubscribe</a></p>
        </div>
    </div>
</body>
</html>
        """

        text_body = f"""
{subject}

{_strip_tags(content)}

Unsubscribe: {unsubscribe_url}
        """

        return subject, html_body, text_body


def _display_date(value):
    if isinstance(value, datetime):
        return value.strftime('%B %d, %Y')
    if value:
        try:
            return datetime.strptime(str(value)[:19], '%Y-%m-%d %H:%M:%S').strftime('%B %d, %Y')
        except ValueError:
            return str(value)
    return datetime.now().strftime('%B %d, %Y')


def _strip_tags(html):
    return re.sub(r'<[^>]+>', '', html or '').strip()
