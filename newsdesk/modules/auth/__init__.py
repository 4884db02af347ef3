"""
Newsdesk Auth Module

Provides staff authentication for the JSON API:
- Email/password login issuing signed bearer tokens (JWT, HS256)
- Role checks (admin, editor, author) through the auth_required decorator
- Staff account administration under /api/users; the very first admin can
  be created without a token, every later account needs an admin
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')
users_bp = Blueprint('users', __name__, url_prefix='/api/users')

from . import routes
from .database import UserStore, ROLES
from .decorators import auth_required, current_user

__all__ = ['auth_bp', 'users_bp', 'UserStore', 'ROLES', 'auth_required', 'current_user']
