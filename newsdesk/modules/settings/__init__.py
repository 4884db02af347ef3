"""
Settings Module
===============

Typed runtime site settings (newsletter automation switch, site name,
newsletter subject prefix) stored in the site_settings table.

Provides:
- GET /api/settings -- current settings (public)
- PUT /api/settings -- update settings (admin)
"""

from flask import Blueprint

settings_bp = Blueprint('settings', __name__, url_prefix='/api/settings')

from . import routes
