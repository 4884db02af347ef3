"""
Click Analytics Recorder
========================

Append-only click log (link_analytics) and every aggregate built on it.
Counts are always computed from the log; nothing caches a click total.
"""

import math
import logging
from datetime import timedelta

from newsdesk.core.database import utc_now, to_db_timestamp
from newsdesk.core.errors import ValidationError, NotFound

logger = logging.getLogger(__name__)

GROUPINGS = ('day', 'referrer', 'location', 'country', 'utm', 'article')

# group_by -> (select columns, extra where, group by, order by)
_GROUP_SQL = {
    'day': (
        'DATE(la.clicked_at) AS date',
        '',
        'DATE(la.clicked_at)',
        'date DESC',
    ),
    'referrer': (
        'la.referrer, MAX(la.clicked_at) AS last_referral',
        "AND la.referrer IS NOT NULL AND la.referrer != ''",
        'la.referrer',
        'clicks DESC, la.referrer',
    ),
    'location': (
        'la.country, la.city',
        'AND la.country IS NOT NULL',
        'la.country, la.city',
        'clicks DESC, la.country, la.city',
    ),
    'country': (
        'la.country',
        '',
        'la.country',
        'clicks DESC, la.country',
    ),
    'utm': (
        'sl.utm_source, sl.utm_medium, sl.utm_campaign',
        '',
        'sl.utm_source, sl.utm_medium, sl.utm_campaign',
        'clicks DESC',
    ),
    'article': (
        'a.id AS article_id, a.title, a.slug',
        '',
        'a.id, a.title, a.slug',
        'clicks DESC, a.id',
    ),
}


def _check_period(period_days):
    if isinstance(period_days, bool) or not isinstance(period_days, int) or period_days <= 0:
        raise ValidationError('period must be a positive number of days')


def _window_start(period_days):
    return to_db_timestamp(utc_now() - timedelta(days=period_days))


class ClickRecorder:

    def __init__(self, db):
        self.db = db

    def record(self, short_link_id, ip=None, user_agent=None, referrer=None,
               country=None, city=None, clicked_at=None):
        """Append one click event. Returns the new row id."""
        if short_link_id is None:
            raise ValidationError('short_link_id is required')

        clicked_at = to_db_timestamp(clicked_at or utc_now())
        with self.db.connect() as conn:
            cursor = conn.execute('''
                INSERT INTO link_analytics
                (short_link_id, clicked_at, ip_address, user_agent, referrer, country, city)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (short_link_id, clicked_at, ip, user_agent, referrer, country, city))
            return cursor.lastrowid

    def count(self, short_link_id):
        with self.db.connect() as conn:
            row = conn.execute(
                'SELECT COUNT(*) AS clicks FROM link_analytics WHERE short_link_id = ?',
                (short_link_id,)
            ).fetchone()
        return row['clicks']

    def aggregate(self, group_by, period_days=30, article_id=None, limit=None):
        """
        Group clicks inside the last period_days.

        Args:
            group_by (str): one of day, referrer, location, country, utm, article
            period_days (int): window size in days
            article_id (int): restrict to one article's links
            limit (int): cap on returned rows

        Returns:
            list[dict]: every row carries clicks and unique_visitors
        """
        if group_by not in _GROUP_SQL:
            raise ValidationError(f"group_by must be one of: {', '.join(GROUPINGS)}")
        _check_period(period_days)

        columns, extra_where, group_clause, order_clause = _GROUP_SQL[group_by]
        params = [_window_start(period_days)]

        query = f'''
            SELECT {columns},
                   COUNT(la.id) AS clicks,
                   COUNT(DISTINCT la.ip_address) AS unique_visitors
            FROM link_analytics la
            JOIN short_links sl ON la.short_link_id = sl.id
            JOIN articles a ON sl.article_id = a.id
            WHERE la.clicked_at >= ? {extra_where}
        '''
        if article_id is not None:
            query += ' AND sl.article_id = ?'
            params.append(article_id)
        query += f' GROUP BY {group_clause} ORDER BY {order_clause}'
        if limit:
            query += ' LIMIT ?'
            params.append(int(limit))

        with self.db.connect() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def summary(self, article_id, period_days=30):
        """Lifetime totals for one article plus clicks inside the window"""
        _check_period(period_days)

        with self.db.connect() as conn:
            row = conn.execute('''
                SELECT a.id AS article_id,
                       a.title AS article_title,
                       a.slug AS article_slug,
                       COUNT(DISTINCT sl.id) AS link_count,
                       COUNT(la.id) AS total_clicks,
                       COUNT(DISTINCT la.ip_address) AS unique_visitors,
                       COUNT(DISTINCT DATE(la.clicked_at)) AS active_days,
                       MIN(la.clicked_at) AS first_clicked,
                       MAX(la.clicked_at) AS last_clicked,
                       COUNT(CASE WHEN la.clicked_at >= ? THEN 1 END) AS clicks_in_period
                FROM articles a
                LEFT JOIN short_links sl ON sl.article_id = a.id
                LEFT JOIN link_analytics la ON la.short_link_id = sl.id
                WHERE a.id = ?
                GROUP BY a.id, a.title, a.slug
            ''', (_window_start(period_days), article_id)).fetchone()

        if row is None:
            raise NotFound('Article not found')
        return dict(row)

    def totals(self, period_days=30):
        """Dashboard totals for the window"""
        _check_period(period_days)

        with self.db.connect() as conn:
            row = conn.execute('''
                SELECT COUNT(la.id) AS total_clicks,
                       COUNT(DISTINCT la.ip_address) AS unique_visitors,
                       COUNT(DISTINCT sl.article_id) AS articles_with_clicks
                FROM link_analytics la
                JOIN short_links sl ON la.short_link_id = sl.id
                WHERE la.clicked_at >= ?
            ''', (_window_start(period_days),)).fetchone()
        return dict(row)

    def detailed(self, period_days=30, page=1, limit=50):
        """Raw clicks, newest first, with article and link columns"""
        _check_period(period_days)
        if page < 1:
            raise ValidationError('page must be 1 or greater')
        if limit < 1 or limit > 500:
            raise ValidationError('limit must be between 1 and 500')

        since = _window_start(period_days)
        offset = (page - 1) * limit

        with self.db.connect() as conn:
            clicks = conn.execute('''
                SELECT la.id, la.ip_address, la.user_agent, la.referrer,
                       la.country, la.city, la.clicked_at,
                       a.id AS article_id, a.title AS article_title, a.slug AS article_slug,
                       sl.short_slug, sl.utm_source, sl.utm_medium, sl.utm_campaign
                FROM link_analytics la
                JOIN short_links sl ON la.short_link_id = sl.id
                JOIN articles a ON sl.article_id = a.id
                WHERE la.clicked_at >= ?
                ORDER BY la.clicked_at DESC, la.id DESC
                LIMIT ? OFFSET ?
            ''', (since, limit, offset)).fetchall()

            total = conn.execute('''
                SELECT COUNT(*) AS total
                FROM link_analytics la
                JOIN short_links sl ON la.short_link_id = sl.id
                WHERE la.clicked_at >= ?
            ''', (since,)).fetchone()['total']

        return {
            'clicks': [dict(row) for row in clicks],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }
