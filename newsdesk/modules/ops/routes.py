"""
Ops Routes
==========
"""

import os
import time
import shutil
import sqlite3
from datetime import datetime

from flask import jsonify, request, current_app

from newsdesk.core.context import get_newsdesk, int_arg
from newsdesk.modules.auth.decorators import auth_required
from . import ops_health_bp, ops_admin_bp

DISK_CRITICAL_PERCENT = 95


def _get_disk_usage(path):
    """Disk usage for the partition holding the database"""
    try:
        usage = shutil.disk_usage(path)
    except OSError as e:
        return {'total_gb': 0, 'used_gb': 0, 'free_gb': 0, 'percent': 0, 'error': str(e)}
    return {
        'total_gb': round(usage.total / (1024 ** 3), 1),
        'used_gb': round(usage.used / (1024 ** 3), 1),
        'free_gb': round(usage.free / (1024 ** 3), 1),
        'percent': round((usage.used / usage.total) * 100, 1) if usage.total else 0,
    }


def _build_health_response():
    """Build the health check response dict."""
    newsdesk = get_newsdesk()
    issues = []

    database_ok = newsdesk.db.ping()
    if not database_ok:
        issues.append('database unreachable')

    scheduler_enabled = bool(current_app.config.get('SCHEDULER_ENABLED'))
    scheduler_running = newsdesk.scheduler.running
    if scheduler_enabled and not scheduler_running and not current_app.testing:
        issues.append('publish scheduler not running')

    db_dir = os.path.dirname(os.path.abspath(newsdesk.db.path))
    disk = _get_disk_usage(db_dir)
    if disk.get('percent', 0) >= DISK_CRITICAL_PERCENT:
        issues.append(f"disk {disk['percent']}% full")

    errors_last_hour = 0
    if database_ok:
        try:
            errors_last_hour = newsdesk.log_service.error_count_since(hours=1)
        except sqlite3.Error:
            errors_last_hour = None

    if not database_ok:
        status = 'critical'
    elif issues:
        status = 'warning'
    else:
        status = 'ok'

    return {
        'status': status,
        'timestamp': datetime.now().isoformat(),
        'checks': {
            'database': {'ok': database_ok},
            'scheduler': {'enabled': scheduler_enabled, 'running': scheduler_running},
            'disk': disk,
            'uptime_seconds': round(time.time() - newsdesk.started_at),
            'errors_last_hour': errors_last_hour,
        },
        'issues': issues,
    }, status


@ops_health_bp.route('')
@ops_health_bp.route('/')
def health_check():
    """Public health endpoint for uptime monitors."""
    data, status = _build_health_response()
    code = 503 if status == 'critical' else 200
    return jsonify(data), code


@ops_admin_bp.route('/logs', methods=['GET'])
@auth_required('admin')
def recent_logs():
    """Most recent persistent log entries (?limit, level, source)"""
    logs = get_newsdesk().log_service.recent(
        limit=int_arg('limit', 100, minimum=1, maximum=1000),
        level=request.args.get('level') or None,
        source=request.args.get('source') or None,
    )
    return jsonify({'error': False, 'data': logs})


@ops_admin_bp.route('/logs', methods=['DELETE'])
@auth_required('admin')
def cleanup_logs():
    """Drop log entries older than ?days (default 30)"""
    deleted = get_newsdesk().log_service.cleanup_old_logs(
        days_to_keep=int_arg('days', 30, minimum=1, maximum=3650)
    )
    return jsonify({'error': False, 'message': f"Deleted {deleted} old log entries", 'data': {'deleted': deleted}})
