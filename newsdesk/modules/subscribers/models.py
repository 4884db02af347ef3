"""
Subscribers Models
==================

CRUD for the subscribers table. Unsubscribing is a soft delete; the row is
kept so a later subscribe reactivates it instead of inserting a duplicate.
"""

import math
import sqlite3
import logging
from datetime import timedelta

from newsdesk.core.database import utc_now, to_db_timestamp
from newsdesk.core.errors import Conflict, NotFound, ValidationError
from newsdesk.modules.email import is_valid_email

logger = logging.getLogger(__name__)

STATUSES = ('active', 'unsubscribed')


def normalize_email(email):
    return (email or '').strip().lower()


class SubscriberStore:

    def __init__(self, db):
        self.db = db

    def get_by_email(self, email):
        with self.db.connect() as conn:
            row = conn.execute(
                'SELECT * FROM subscribers WHERE email = ?', (normalize_email(email),)
            ).fetchone()
        return dict(row) if row else None

    def subscribe(self, email, name=None):
        """
        Add or reactivate a subscriber.

        Returns:
            tuple: (subscriber dict, 'created' or 'reactivated')

        Raises:
            ValidationError: malformed email
            Conflict: the address is already an active subscriber
        """
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError('Please provide a valid email address')
        name = (name or '').strip() or None

        with self.db.connect() as conn:
            existing = conn.execute(
                'SELECT id, status FROM subscribers WHERE email = ?', (email,)
            ).fetchone()

            if existing is not None:
                if existing['status'] == 'active':
                    raise Conflict('This email is already subscribed to our newsletter.')
                conn.execute('''
                    UPDATE subscribers
                    SET status = 'active', unsubscribed_at = NULL, name = COALESCE(?, name)
                    WHERE id = ?
                ''', (name, existing['id']))
                outcome = 'reactivated'
            else:
                try:
                    conn.execute(
                        'INSERT INTO subscribers (email, name, subscribed_at) VALUES (?, ?, ?)',
                        (email, name, to_db_timestamp(utc_now()))
                    )
                except sqlite3.IntegrityError:
                    raise Conflict('This email is already subscribed to our newsletter.')
                outcome = 'created'

        logger.info(f"Subscriber {email} {outcome}")
        return self.get_by_email(email), outcome

    def unsubscribe(self, email):
        email = normalize_email(email)
        if not email:
            raise ValidationError('Email is required.')

        with self.db.connect() as conn:
            cursor = conn.execute('''
                UPDATE subscribers
                SET status = 'unsubscribed', unsubscribed_at = ?
                WHERE email = ?
            ''', (to_db_timestamp(utc_now()), email))
            if cursor.rowcount == 0:
                raise NotFound('Email not found in our subscription list.')

        logger.info(f"Subscriber {email} unsubscribed")
        return self.get_by_email(email)

    def delete(self, subscriber_id):
        """Hard delete (admin only)"""
        with self.db.connect() as conn:
            cursor = conn.execute('DELETE FROM subscribers WHERE id = ?', (subscriber_id,))
            if cursor.rowcount == 0:
                raise NotFound('Subscriber not found.')

    def list_subscribers(self, page=1, limit=20, status=None, search=None):
        if status and status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

        clauses = []
        params = []
        if status:
            clauses.append('status = ?')
            params.append(status)
        if search and search.strip():
            clauses.append('(email LIKE ? OR name LIKE ?)')
            params.extend([f"%{search.strip()}%"] * 2)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

        with self.db.connect() as conn:
            total = conn.execute(f'SELECT COUNT(*) FROM subscribers{where}', params).fetchone()[0]
            rows = conn.execute(
                f'SELECT * FROM subscribers{where} ORDER BY subscribed_at DESC, id DESC LIMIT ? OFFSET ?',
                params + [limit, (page - 1) * limit]
            ).fetchall()

        return {
            'subscribers': [dict(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }

    def stats(self):
        now = utc_now()
        with self.db.connect() as conn:
            row = conn.execute('''
                SELECT
                    COUNT(*) AS total_subscribers,
                    COUNT(CASE WHEN status = 'active' THEN 1 END) AS active_subscribers,
                    COUNT(CASE WHEN status = 'unsubscribed' THEN 1 END) AS unsubscribed_subscribers,
                    COUNT(CASE WHEN subscribed_at >= ? THEN 1 END) AS new_this_week,
                    COUNT(CASE WHEN subscribed_at >= ? THEN 1 END) AS new_this_month
                FROM subscribers
            ''', (
                to_db_timestamp(now - timedelta(days=7)),
                to_db_timestamp(now - timedelta(days=30)),
            )).fetchone()
        return dict(row)

    def active_recipients(self):
        """Every active subscriber as {id, email, name}"""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT id, email, name FROM subscribers WHERE status = 'active' ORDER BY id"
            ).fetchall()
        return [dict(row) for row in rows]
