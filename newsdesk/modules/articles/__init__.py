"""
Articles Module
===============

Provides:
- Article CRUD as a JSON API (/api/articles)
- Schedule / publish / unpublish status transitions
- The publish scheduler that releases due drafts and triggers the
  automated newsletter
"""

from flask import Blueprint

articles_bp = Blueprint('articles', __name__, url_prefix='/api/articles')

from . import routes
from .models import ArticleStore, STATUSES
from .scheduler import PublishScheduler

__all__ = ['articles_bp', 'ArticleStore', 'STATUSES', 'PublishScheduler']
