"""
Subscribers Module
==================

Provides:
- Public subscribe / unsubscribe API (soft delete, re-subscribe reactivates)
- Admin listing, stats and hard delete
- Manual newsletter campaigns and campaign history
"""

from flask import Blueprint

subscribers_bp = Blueprint('subscribers', __name__, url_prefix='/api/subscribers')

from . import routes
from .models import SubscriberStore

__all__ = ['subscribers_bp', 'SubscriberStore']
