"""
Email Module
============

Provides email sending through Resend, Brevo or SMTP, plus the HTML
templates for article notifications and manual newsletters.
"""

from .email_service import EmailService, is_valid_email

__all__ = ['EmailService', 'is_valid_email']
