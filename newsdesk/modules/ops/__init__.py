"""
Ops Module
==========

- Public /health endpoint for uptime monitors (database, scheduler, disk)
- Admin view of the persistent application log
"""

from flask import Blueprint

# Public health endpoint (no auth, for uptime monitors)
ops_health_bp = Blueprint('ops_health', __name__, url_prefix='/health')

# Admin log feed (bearer token, admin role)
ops_admin_bp = Blueprint('ops_admin', __name__, url_prefix='/api/ops')

from . import routes
