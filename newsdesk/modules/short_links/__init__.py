"""
Short Links Module
==================

Provides:
- Deterministic short slugs for articles, with stored UTM parameters
- GET /s/<slug> -- click-tracked 301 redirect to the article
- /api/short-links/* -- generation, per-article links and click analytics
"""

from flask import Blueprint

short_links_bp = Blueprint('short_links', __name__, url_prefix='/api/short-links')
redirect_bp = Blueprint('redirect', __name__, url_prefix='/s')

from . import routes
from .registry import ShortLinkRegistry, UTM_KEYS
from .resolver import RedirectResolver

__all__ = ['short_links_bp', 'redirect_bp', 'ShortLinkRegistry', 'RedirectResolver', 'UTM_KEYS']
