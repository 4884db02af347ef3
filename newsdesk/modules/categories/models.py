import re
import sqlite3
import logging

from newsdesk.core.database import utc_now, to_db_timestamp
from newsdesk.core.errors import NotFound, ValidationError, Conflict
from newsdesk.modules.articles.models import slugify

logger = logging.getLogger(__name__)

COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')

CATEGORY_SELECT = '''
    SELECT c.*,
           COUNT(a.id) AS article_count,
           COALESCE(SUM(a.views), 0) AS total_views
    FROM categories c
    LEFT JOIN articles a ON a.category_id = c.id AND a.status = 'published'
'''


class CategoryStore:
    """Rows of the categories table plus published-article stats"""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _clean(data):
        if not isinstance(data, dict):
            raise ValidationError('Invalid category data')
        unknown = sorted(k for k in data if k not in ('name', 'slug', 'description', 'color'))
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

        name = data.get('name')
        if not isinstance(name, str) or not 2 <= len(name.strip()) <= 50:
            raise ValidationError('Name is required and must be 2-50 characters')

        slug = data.get('slug')
        if slug is None or slug == '':
            slug = slugify(name)
        elif not isinstance(slug, str):
            raise ValidationError('Slug must be a string')
        slug = slugify(slug)
        if not 2 <= len(slug) <= 50:
            raise ValidationError('Slug must be 2-50 characters')

        description = data.get('description')
        if description is not None and (not isinstance(description, str) or len(description) > 200):
            raise ValidationError('Description must be text of at most 200 characters')

        color = data.get('color')
        if color is not None and (not isinstance(color, str) or not COLOR_RE.match(color)):
            raise ValidationError('Color must be a hex value like #1A2B3C')

        return {
            'name': name.strip(),
            'slug': slug,
            'description': (description or '').strip() or None,
            'color': color,
        }

    def list_categories(self):
        with self.db.connect() as conn:
            rows = conn.execute(CATEGORY_SELECT + ' GROUP BY c.id ORDER BY c.name ASC').fetchall()
        return [dict(row) for row in rows]

    def get(self, category_id):
        with self.db.connect() as conn:
            row = conn.execute(CATEGORY_SELECT + ' WHERE c.id = ? GROUP BY c.id', (category_id,)).fetchone()
        if row is None:
            raise NotFound('Category not found')
        return dict(row)

    def create(self, data):
        values = self._clean(data)
        try:
            with self.db.connect() as conn:
                cursor = conn.execute('''
                    INSERT INTO categories (name, slug, description, color, created_at)
                    VALUES (?, ?, ?, ?, ?)
                ''', (values['name'], values['slug'], values['description'], values['color'],
                      to_db_timestamp(utc_now())))
                category_id = cursor.lastrowid
        except sqlite3.IntegrityError:
            raise Conflict('Category with this slug already exists')

        logger.info(f"Created category {values['slug']}")
        return self.get(category_id)

    def update(self, category_id, data):
        """Full replacement of name, slug, description and color"""
        self.get(category_id)
        values = self._clean(data)
        try:
            with self.db.connect() as conn:
                conn.execute('''
                    UPDATE categories
                    SET name = ?, slug = ?, description = ?, color = ?, updated_at = ?
                    WHERE id = ?
                ''', (values['name'], values['slug'], values['description'], values['color'],
                      to_db_timestamp(utc_now()), category_id))
        except sqlite3.IntegrityError:
            raise Conflict('Category with this slug already exists')
        return self.get(category_id)

    def delete(self, category_id):
        with self.db.connect() as conn:
            if conn.execute('SELECT id FROM categories WHERE id = ?', (category_id,)).fetchone() is None:
                raise NotFound('Category not found')
            in_use = conn.execute(
                'SELECT COUNT(*) FROM articles WHERE category_id = ?', (category_id,)
            ).fetchone()[0]
            if in_use:
                raise ValidationError('Cannot delete category with existing articles')
            conn.execute('DELETE FROM categories WHERE id = ?', (category_id,))
        logger.info(f"Deleted category {category_id}")
