"""
Newsdesk Core
=============

Shared plumbing for the Newsdesk modules: configuration, the SQLite
database handle, the error taxonomy, persistent logging and rate limiting.
"""

from .config import Config
from .database import Database
from .errors import NewsdeskError, register_error_handlers
from .logging_service import LoggingService, db_log
from .rate_limit import RateLimiter

__all__ = [
    'Config', 'Database', 'NewsdeskError', 'register_error_handlers',
    'LoggingService', 'db_log', 'RateLimiter',
]
