"""
Centralized logging service for the Newsdesk backend.
Writes structured entries to the app_logs table next to the regular
stdlib loggers, so background failures stay visible after a restart.
"""

import json
import logging
import traceback
from datetime import datetime, timedelta
from flask import request, has_request_context, current_app

logger = logging.getLogger(__name__)


class LoggingService:
    """Persistent application log. Never raises into the caller."""

    def __init__(self, db=None):
        self.db = db

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        try:
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()

            user_agent = request.headers.get('User-Agent', '')
            return ip_address, user_agent, request.path
        except RuntimeError:
            return None, None, None

    def log(self, level, source, message, details=None):
        """
        Log a message to the database

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (scheduler, redirect, newsletter, ...)
            message (str): Main log message
            details (str/dict): Additional details (JSON-encoded if dict)
        """
        if self.db is None:
            logger.log(logging.getLevelName(level.upper()), f"[{source}] {message}")
            return

        try:
            ip_address, user_agent, request_path = self._get_request_context()

            if isinstance(details, dict):
                details = json.dumps(details, default=str)

            with self.db.connect() as conn:
                conn.execute('''
                    INSERT INTO app_logs
                    (timestamp, level, source, message, details, ip_address, user_agent, request_path)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    datetime.now().isoformat(), level.upper(), source, message, details,
                    ip_address, user_agent, request_path
                ))

        except Exception as e:
            # Fallback to console logging if database fails
            logger.error(f"[{level.upper()}] [{source}] {message} (logging service error: {e})")

    def info(self, source, message, details=None):
        self.log('INFO', source, message, details)

    def warning(self, source, message, details=None):
        self.log('WARNING', source, message, details)

    def error(self, source, message, details=None):
        self.log('ERROR', source, message, details)

    def log_error_with_traceback(self, source, error, details=None):
        """Log error with full traceback"""
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        self.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    def recent(self, limit=100, level=None, source=None):
        """Most recent entries, newest first"""
        query = 'SELECT * FROM app_logs'
        clauses = []
        params = []
        if level:
            clauses.append('level = ?')
            params.append(level.upper())
        if source:
            clauses.append('source = ?')
            params.append(source)
        if clauses:
            query += ' WHERE ' + ' AND '.join(clauses)
        query += ' ORDER BY id DESC LIMIT ?'
        params.append(limit)

        with self.db.connect() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def error_count_since(self, hours=1):
        """ERROR/CRITICAL entries written in the last hours"""
        cutoff = (datetime.now() - timedelta(hours=hours)).isoformat()
        with self.db.connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM app_logs WHERE level IN ('ERROR', 'CRITICAL') AND timestamp > ?",
                (cutoff,)
            ).fetchone()[0]

    def cleanup_old_logs(self, days_to_keep=30):
        """Delete entries older than days_to_keep. Returns the number removed."""
        cutoff_iso = (datetime.now() - timedelta(days=days_to_keep)).isoformat()

        with self.db.connect() as conn:
            cursor = conn.execute('DELETE FROM app_logs WHERE timestamp < ?', (cutoff_iso,))
            deleted_count = cursor.rowcount

        self.info('system', f"Cleaned up {deleted_count} old log entries")
        return deleted_count


def db_log(level, source, message, details=None):
    """Write to the current app's persistent log, falling back to stdout"""
    try:
        service = current_app.extensions['newsdesk'].log_service
    except (RuntimeError, KeyError):
        logger.log(logging.getLevelName(level.upper()), f"[{source}] {message}")
        return
    service.log(level, source, message, details)
