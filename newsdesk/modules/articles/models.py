"""
Articles Models
===============

CRUD and status transitions for the articles table.

Status lifecycle: draft (optionally scheduled through publish_date) ->
published. The draft -> published move is always a conditional UPDATE so
two concurrent publishers cannot both win.
"""

import re
import math
import logging

from newsdesk.core.database import utc_now, to_db_timestamp, from_db_timestamp, parse_client_datetime
from newsdesk.core.errors import NotFound, ValidationError, Forbidden

logger = logging.getLogger(__name__)

STATUSES = ('draft', 'pending', 'published')
FLAGS = ('featured', 'breaking', 'headline')
EDITABLE_FIELDS = ('title', 'excerpt', 'content', 'image', 'category_id', 'status', 'publish_date') + FLAGS

ARTICLE_SELECT = '''
    SELECT a.*,
           c.name AS category_name,
           c.slug AS category_slug,
           c.color AS category_color,
           u.name AS author_name
    FROM articles a
    LEFT JOIN categories c ON a.category_id = c.id
    LEFT JOIN users u ON a.author_id = u.id
'''


def slugify(title):
    """URL-friendly slug from a title"""
    slug = re.sub(r'[^\w\s-]', '', (title or '').lower())
    slug = re.sub(r'[-\s_]+', '-', slug)
    return slug.strip('-')[:120].strip('-') or 'article'


def _format(row):
    if row is None:
        return None
    article = dict(row)
    for flag in FLAGS:
        article[flag] = bool(article.get(flag))
    return article


class ArticleStore:

    def __init__(self, db):
        self.db = db

    # ===================
    # VALIDATION
    # ===================

    def _unique_slug(self, conn, title, exclude_id=None):
        """Create URL-friendly slug with uniqueness checking"""
        base_slug = slugify(title)
        slug = base_slug
        counter = 1
        while True:
            row = conn.execute('SELECT id FROM articles WHERE slug = ?', (slug,)).fetchone()
            if row is None or row['id'] == exclude_id:
                return slug
            counter += 1
            slug = f"{base_slug}-{counter}"

    def _clean(self, conn, data, partial=False):
        unknown = sorted(k for k in data if k not in EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

        values = {}
        if 'title' in data or not partial:
            title = data.get('title')
            if not isinstance(title, str) or not title.strip() or len(title.strip()) > 200:
                raise ValidationError('Title is required and must be at most 200 characters')
            values['title'] = title.strip()

        if 'content' in data or not partial:
            content = data.get('content')
            if not isinstance(content, str) or not content.strip():
                raise ValidationError('Content is required')
            values['content'] = content

        if 'excerpt' in data:
            excerpt = data['excerpt']
            if excerpt is not None and (not isinstance(excerpt, str) or len(excerpt) > 500):
                raise ValidationError('Excerpt must be text of at most 500 characters')
            values['excerpt'] = (excerpt or '').strip() or None

        if 'image' in data:
            if data['image'] is not None and not isinstance(data['image'], str):
                raise ValidationError('Image must be a string')
            values['image'] = data['image'] or None

        if 'category_id' in data:
            category_id = data['category_id']
            if category_id is not None:
                if isinstance(category_id, bool) or not isinstance(category_id, int):
                    raise ValidationError('category_id must be an integer')
                if conn.execute('SELECT id FROM categories WHERE id = ?', (category_id,)).fetchone() is None:
                    raise ValidationError('Category not found')
            values['category_id'] = category_id

        for flag in FLAGS:
            if flag in data:
                if not isinstance(data[flag], bool):
                    raise ValidationError(f"{flag} must be true or false")
                values[flag] = 1 if data[flag] else 0

        if 'status' in data:
            if data['status'] not in STATUSES:
                raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
            values['status'] = data['status']

        if 'publish_date' in data:
            if data['publish_date'] in (None, ''):
                values['publish_date'] = None
            else:
                try:
                    values['publish_date'] = to_db_timestamp(parse_client_datetime(data['publish_date']))
                except ValueError:
                    raise ValidationError('publish_date must be an ISO 8601 date')

        return values

    @staticmethod
    def _check_publish_state(values, now):
        """A published article never carries a future publish_date"""
        if values.get('status') != 'published':
            return
        publish_date = values.get('publish_date')
        if publish_date and from_db_timestamp(publish_date) > now:
            raise ValidationError('Cannot publish with a future publish_date; leave it as draft to schedule')
        if not publish_date:
            values['publish_date'] = to_db_timestamp(now)

    # ===================
    # CRUD
    # ===================

    def get(self, article_id):
        with self.db.connect() as conn:
            row = conn.execute(ARTICLE_SELECT + ' WHERE a.id = ?', (article_id,)).fetchone()
        if row is None:
            raise NotFound('Article not found')
        return _format(row)

    def get_by_slug(self, slug):
        with self.db.connect() as conn:
            row = conn.execute(ARTICLE_SELECT + ' WHERE a.slug = ?', (slug,)).fetchone()
        if row is None:
            raise NotFound('Article not found')
        return _format(row)

    def list_articles(self, page=1, limit=10, status='published', category_id=None,
                      search=None, featured=None, author_id=None):
        clauses = []
        params = []
        if status:
            if status not in STATUSES:
                raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
            clauses.append('a.status = ?')
            params.append(status)
        if category_id is not None:
            clauses.append('a.category_id = ?')
            params.append(category_id)
        if author_id is not None:
            clauses.append('a.author_id = ?')
            params.append(author_id)
        if featured is not None:
            clauses.append('a.featured = ?')
            params.append(1 if featured else 0)
        if search:
            clauses.append('(a.title LIKE ? OR a.excerpt LIKE ? OR a.content LIKE ?)')
            params.extend([f"%{search}%"] * 3)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

        with self.db.connect() as conn:
            total = conn.execute(f'SELECT COUNT(*) FROM articles a{where}', params).fetchone()[0]
            rows = conn.execute(
                ARTICLE_SELECT + where +
                ' ORDER BY COALESCE(a.publish_date, a.created_at) DESC, a.id DESC LIMIT ? OFFSET ?',
                params + [limit, (page - 1) * limit]
            ).fetchall()

        return {
            'articles': [_format(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }

    def create(self, data, author_id=None, now=None):
        if not isinstance(data, dict):
            raise ValidationError('Invalid article data')
        now = now or utc_now()

        with self.db.connect() as conn:
            values = self._clean(conn, data)
            values.setdefault('status', 'draft')
            self._check_publish_state(values, now)
            values['slug'] = self._unique_slug(conn, values['title'])
            values['author_id'] = author_id
            values['created_at'] = values['updated_at'] = to_db_timestamp(now)

            columns = ', '.join(values)
            placeholders = ', '.join('?' for _ in values)
            cursor = conn.execute(
                f'INSERT INTO articles ({columns}) VALUES ({placeholders})', list(values.values())
            )
            article_id = cursor.lastrowid

        logger.info(f"Created article {article_id} ({values['status']})")
        return self.get(article_id)

    def update(self, article_id, data, user=None, now=None):
        """
        Partial update. Authors may only edit their own articles.

        Whenever the result is 'published' the merged publish_date gets the
        same future-date check as publish(). Moving a published article back
        to draft clears a past publish_date, as unpublish() does.
        """
        if not isinstance(data, dict) or not data:
            raise ValidationError('No fields to update')
        now = now or utc_now()

        with self.db.connect() as conn:
            current = conn.execute('SELECT * FROM articles WHERE id = ?', (article_id,)).fetchone()
            if current is None:
                raise NotFound('Article not found')
            if user is not None and user['role'] == 'author' and current['author_id'] != user['id']:
                raise Forbidden('You can only edit your own articles')

            values = self._clean(conn, data, partial=True)
            status = values.get('status', current['status'])
            if status == 'published':
                merged = {'status': status, 'publish_date': values.get('publish_date', current['publish_date'])}
                self._check_publish_state(merged, now)
                if merged['publish_date'] != current['publish_date']:
                    values['publish_date'] = merged['publish_date']
            elif current['status'] == 'published':
                # leaving published: only a future date survives, or the scheduler would republish
                publish_date = values.get('publish_date')
                if not publish_date or from_db_timestamp(publish_date) <= now:
                    values['publish_date'] = None
            if 'title' in values and values['title'] != current['title']:
                values['slug'] = self._unique_slug(conn, values['title'], exclude_id=article_id)
            values['updated_at'] = to_db_timestamp(now)

            assignments = ', '.join(f"{column} = ?" for column in values)
            conn.execute(f'UPDATE articles SET {assignments} WHERE id = ?', list(values.values()) + [article_id])

        return self.get(article_id)

    def delete(self, article_id):
        """Delete an article; its short links and their clicks cascade"""
        with self.db.connect() as conn:
            cursor = conn.execute('DELETE FROM articles WHERE id = ?', (article_id,))
            if cursor.rowcount == 0:
                raise NotFound('Article not found')
        logger.info(f"Deleted article {article_id}")

    def increment_views(self, article_id):
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE articles SET views = views + 1 WHERE id = ? AND status = 'published'",
                (article_id,)
            )

    # ===================
    # STATUS TRANSITIONS
    # ===================

    def schedule(self, article_id, publish_date, now=None):
        """Set a strictly future publish_date on a draft; the scheduler publishes it when due"""
        now = now or utc_now()
        article = self.get(article_id)
        if article['status'] == 'published':
            raise ValidationError('Article is already published')

        try:
            when = parse_client_datetime(publish_date)
        except ValueError:
            raise ValidationError('publish_date must be an ISO 8601 date')
        if when <= now:
            raise ValidationError('publish_date must be in the future')

        with self.db.connect() as conn:
            conn.execute('''
                UPDATE articles SET status = 'draft', publish_date = ?, updated_at = ?
                WHERE id = ? AND status != 'published'
            ''', (to_db_timestamp(when), to_db_timestamp(now), article_id))

        logger.info(f"Article {article_id} scheduled for {to_db_timestamp(when)} UTC")
        return self.get(article_id)

    def publish(self, article_id, now=None):
        """
        Publish immediately.

        Returns:
            tuple: (article, transitioned) where transitioned is False if it
            was already published

        Raises:
            ValidationError: the article carries a future publish_date
        """
        now = now or utc_now()
        article = self.get(article_id)
        if article['status'] == 'published':
            return article, False

        publish_date = from_db_timestamp(article['publish_date'])
        if publish_date is not None and publish_date > now:
            raise ValidationError('Article is scheduled for a future date; it will be published automatically')

        stamp = to_db_timestamp(now)
        with self.db.connect() as conn:
            cursor = conn.execute('''
                UPDATE articles
                SET status = 'published', publish_date = COALESCE(publish_date, ?), updated_at = ?
                WHERE id = ? AND status != 'published'
            ''', (stamp, stamp, article_id))
            transitioned = cursor.rowcount == 1

        return self.get(article_id), transitioned

    def unpublish(self, article_id, now=None):
        """Back to draft with publish_date cleared so the scheduler leaves it alone"""
        now = now or utc_now()
        with self.db.connect() as conn:
            cursor = conn.execute('''
                UPDATE articles SET status = 'draft', publish_date = NULL, updated_at = ?
                WHERE id = ?
            ''', (to_db_timestamp(now), article_id))
            if cursor.rowcount == 0:
                raise NotFound('Article not found')
        return self.get(article_id)

    def due_for_publish(self, now):
        """Drafts whose publish_date has arrived"""
        with self.db.connect() as conn:
            rows = conn.execute('''
                SELECT id, title, publish_date FROM articles
                WHERE status = 'draft' AND publish_date IS NOT NULL AND publish_date <= ?
                ORDER BY publish_date, id
            ''', (to_db_timestamp(now),)).fetchall()
        return [dict(row) for row in rows]

    def publish_if_due(self, article_id, now):
        """Conditional draft -> published. True only for the caller that made the change."""
        stamp = to_db_timestamp(now)
        with self.db.connect() as conn:
            cursor = conn.execute('''
                UPDATE articles SET status = 'published', updated_at = ?
                WHERE id = ? AND status = 'draft' AND publish_date IS NOT NULL AND publish_date <= ?
            ''', (stamp, article_id, stamp))
            return cursor.rowcount == 1
