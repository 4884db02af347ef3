"""
Categories Module
=================

Article categories with published-article counts.

Provides:
- GET /api/categories, GET /api/categories/<id> (public)
- GET /api/categories/<id>/articles (public, published only)
- POST /api/categories, PUT /api/categories/<id> (admin, editor)
- DELETE /api/categories/<id> (admin, refused while articles use it)
"""

from flask import Blueprint

categories_bp = Blueprint('categories', __name__, url_prefix='/api/categories')

from . import routes
from .models import CategoryStore

__all__ = ['categories_bp', 'CategoryStore']
