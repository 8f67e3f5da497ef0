"""
Email utility module for Natours.
Handles transactional emails (welcome, password reset) using Flask-Mailman.
Messages carry an HTML body rendered from templates/email/ and a plain-text
alternative, and are sent with retry and exponential backoff.
"""
import re
import time
import uuid
import logging
from flask import render_template, current_app
from flask_mailman import EmailMultiAlternatives
from jinja2 import TemplateNotFound

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds (2, 4 with exponential backoff)


def send_email(subject, recipient, template, **kwargs):
    """
    Send an email using Flask-Mailman with retry logic.

    Args:
        subject: Email subject
        recipient: Email address of the recipient
        template: Template name (without .html extension) in templates/email/
        **kwargs: Context variables for the template

    Returns:
        bool: True if email sent successfully, False otherwise
    """
    email_id = str(uuid.uuid4())[:8]

    logger.info(f"[EMAIL:{email_id}] Sending to {recipient} - {subject} (template: {template})")

    try:
        html_body = render_template(f'email/{template}.html', subject=subject, **kwargs)
        if _template_exists(f'email/{template}.txt'):
            text_body = render_template(f'email/{template}.txt', subject=subject, **kwargs)
        else:
            text_body = _html_to_text(html_body)

        msg = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=current_app.config.get('MAIL_DEFAULT_SENDER', 'hello@natours.io'),
            to=[recipient],
        )
        msg.attach_alternative(html_body, 'text/html')
    except Exception as e:
        logger.error(f"[EMAIL:{email_id}] Could not build message for {recipient}: {e}")
        return False

    return _send_with_retry(msg, email_id, recipient)


def _send_with_retry(msg, email_id, recipient):
    """
    Send a prepared message with exponential backoff retry.

    Args:
        msg: EmailMessage object (already built)
        email_id: Tracking ID for logging
        recipient: Recipient email for logging

    Returns:
        bool: True if sent successfully after retries
    """
    retries = current_app.config.get('MAIL_MAX_RETRIES', MAX_RETRIES)
    for attempt in range(1, retries + 1):
        try:
            msg.send()
            logger.info(f"[EMAIL:{email_id}] Sent to {recipient}"
                        + (f" (attempt {attempt})" if attempt > 1 else ""))
            return True
        except Exception as e:
            if attempt < retries:
                delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    f"[EMAIL:{email_id}] Attempt {attempt}/{retries} failed "
                    f"for {recipient}: {e}, retrying in {delay}s"
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"[EMAIL:{email_id}] Giving up after {retries} attempts "
                    f"for {recipient}: {e}"
                )
    return False


def send_welcome_email(user, url):
    """
    Send the welcome email after signup.

    Args:
        user: User object
        url: Link to the account page

    Returns:
        bool: True if email sent successfully
    """
    return send_email(
        subject='Welcome to the Natours Family!',
        recipient=user.email,
        template='welcome',
        first_name=user.name.split(' ')[0],
        url=url,
    )


def send_password_reset_email(user, reset_url):
    """
    Send password reset email.

    Args:
        user: User object
        reset_url: Absolute URL of the reset-password endpoint, token included

    Returns:
        bool: True if email sent successfully
    """
    return send_email(
        subject='Your password reset token (valid for only 10 minutes)',
        recipient=user.email,
        template='password_reset',
        first_name=user.name.split(' ')[0],
        url=reset_url,
        expiry_minutes=10,
    )


def _template_exists(template_name):
    """Check if a template exists."""
    try:
        current_app.jinja_env.get_template(template_name)
        return True
    except TemplateNotFound:
        return False


def _html_to_text(html):
    """Crude HTML to plain text conversion for the text alternative."""
    text = re.sub(r'<(style|script)[^>]*>.*?</\1>', '', html, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r'<br\s*/?>|</p>|</h\d>|</tr>', '\n', text, flags=re.IGNORECASE)
    text = re.sub(r'<[^>]+>', '', text)
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n\s*\n+', '\n\n', text)
    return text.strip()
