"""
Short-Link Registry
===================

Maps short slugs to article URLs. Slugs are derived from the article, never
random, so generating twice with the same UTM values lands on the same row.
"""

import re
import sqlite3
import hashlib
import logging

from newsdesk.core.errors import NotFound, Conflict, ValidationError

logger = logging.getLogger(__name__)

UTM_KEYS = ('utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content')

MAX_SLUG_CANDIDATES = 5
MAX_UTM_LENGTH = 255


def normalize_slug(value):
    """Lowercase, URL-safe, hyphen separated"""
    slug = re.sub(r'[^a-z0-9]+', '-', (value or '').lower())
    return slug.strip('-')[:80].strip('-')


def clean_utm_params(params):
    """Keep the five UTM keys; blank values become None"""
    params = params or {}
    cleaned = {}
    for key in UTM_KEYS:
        value = params.get(key)
        if value is None:
            cleaned[key] = None
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        value = value.strip()
        if len(value) > MAX_UTM_LENGTH:
            raise ValidationError(f"{key} must be at most {MAX_UTM_LENGTH} characters")
        cleaned[key] = value or None
    return cleaned


def utm_fingerprint(utm):
    """Six hex chars identifying a UTM tuple, or None when no UTM value is set"""
    if not any(utm.values()):
        return None
    joined = '|'.join(utm[key] or '' for key in UTM_KEYS)
    return hashlib.sha1(joined.encode('utf-8')).hexdigest()[:6]


class ShortLinkRegistry:

    def __init__(self, db, base_url, frontend_url, article_path_prefix='/article/'):
        self.db = db
        self.base_url = base_url.rstrip('/')
        self.frontend_url = frontend_url.rstrip('/')
        self.article_path_prefix = article_path_prefix

    def short_url(self, slug):
        return f"{self.base_url}/s/{slug}"

    def article_url(self, article):
        return f"{self.frontend_url}{self.article_path_prefix}{article['slug'] or article['id']}"

    def _get_article(self, conn, article_id):
        row = conn.execute('SELECT id, title, slug FROM articles WHERE id = ?', (article_id,)).fetchone()
        if row is None:
            raise NotFound('Article not found')
        return row

    def _serialize(self, conn, row, created=False):
        link = dict(row)
        link['is_active'] = bool(link['is_active'])
        link['short_link'] = self.short_url(link['short_slug'])
        link['click_count'] = conn.execute(
            'SELECT COUNT(*) FROM link_analytics WHERE short_link_id = ?', (link['id'],)
        ).fetchone()[0]
        link['created'] = created
        return link

    @staticmethod
    def _matches(row, article_id, utm):
        return (
            row['article_id'] == article_id
            and row['is_active']
            and all(row[key] == utm[key] for key in UTM_KEYS)
        )

    def generate(self, article_id, utm_params=None):
        """
        Return the short link for (article, UTM values), creating it on first use.

        Raises:
            NotFound: the article does not exist
            Conflict: every slug candidate is taken by another link
        """
        utm = clean_utm_params(utm_params)

        with self.db.connect() as conn:
            article = self._get_article(conn, article_id)

        base = normalize_slug(article['slug']) or f"article-{article['id']}"
        fingerprint = utm_fingerprint(utm)
        root = f"{base}-{fingerprint}" if fingerprint else base
        candidates = [root] + [f"{root}-{n}" for n in range(2, MAX_SLUG_CANDIDATES + 1)]
        full_url = self.article_url(article)

        for candidate in candidates:
            with self.db.connect() as conn:
                existing = conn.execute(
                    'SELECT * FROM short_links WHERE short_slug = ?', (candidate,)
                ).fetchone()
                if existing is not None:
                    if self._matches(existing, article_id, utm):
                        return self._serialize(conn, existing)
                    continue

            try:
                with self.db.connect() as conn:
                    cursor = conn.execute('''
                        INSERT INTO short_links
                        (article_id, short_slug, full_url, utm_source, utm_medium,
                         utm_campaign, utm_term, utm_content)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ''', (article_id, candidate, full_url) + tuple(utm[key] for key in UTM_KEYS))
                    row = conn.execute('SELECT * FROM short_links WHERE id = ?', (cursor.lastrowid,)).fetchone()
                    logger.info(f"Created short link /s/{candidate} for article {article_id}")
                    return self._serialize(conn, row, created=True)
            except sqlite3.IntegrityError as e:
                if 'FOREIGN KEY' in str(e):
                    raise NotFound('Article not found')
                # Lost an insert race; the winner may be an identical request
                with self.db.connect() as conn:
                    winner = conn.execute(
                        'SELECT * FROM short_links WHERE short_slug = ?', (candidate,)
                    ).fetchone()
                    if winner is not None and self._matches(winner, article_id, utm):
                        return self._serialize(conn, winner)

        raise Conflict(f"Could not allocate a short slug for article {article_id}")

    def find_active(self, slug):
        """Active link row for slug, or None"""
        with self.db.connect() as conn:
            row = conn.execute(
                'SELECT * FROM short_links WHERE short_slug = ? AND is_active = 1', (slug,)
            ).fetchone()
        return dict(row) if row else None

    def links_for_article(self, article_id):
        """Every link of an article, newest first, with click counts from the log"""
        with self.db.connect() as conn:
            self._get_article(conn, article_id)
            rows = conn.execute('''
                SELECT sl.id, sl.article_id, sl.short_slug, sl.full_url,
                       sl.utm_source, sl.utm_medium, sl.utm_campaign, sl.utm_term, sl.utm_content,
                       sl.is_active, sl.created_at,
                       (SELECT COUNT(*) FROM link_analytics la WHERE la.short_link_id = sl.id) AS click_count
                FROM short_links sl
                WHERE sl.article_id = ?
                ORDER BY sl.created_at DESC, sl.id DESC
            ''', (article_id,)).fetchall()

        links = []
        for row in rows:
            link = dict(row)
            link['is_active'] = bool(link['is_active'])
            link['short_link'] = self.short_url(link['short_slug'])
            links.append(link)
        return links

    def set_active(self, link_id, active):
        """Switch a link on or off. Inactive slugs 404 on redirect; clicks are kept."""
        with self.db.connect() as conn:
            cursor = conn.execute('UPDATE short_links SET is_active = ? WHERE id = ?', (1 if active else 0, link_id))
            if cursor.rowcount == 0:
                raise NotFound('Short link not found')
            row = conn.execute('SELECT * FROM short_links WHERE id = ?', (link_id,)).fetchone()
            link = self._serialize(conn, row)
        logger.info(f"Short link /s/{link['short_slug']} {'activated' if active else 'deactivated'}")
        return link
