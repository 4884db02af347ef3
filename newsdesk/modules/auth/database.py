import math
import sqlite3
import logging
from werkzeug.security import generate_password_hash, check_password_hash

from newsdesk.core.errors import Conflict, NotFound, ValidationError
from newsdesk.modules.email.email_service import is_valid_email

logger = logging.getLogger(__name__)

ROLES = ('admin', 'editor', 'author')
STATUSES = ('active', 'inactive')
MIN_PASSWORD_LENGTH = 6

USER_COLUMNS = 'id, name, email, role, status, created_at'


def validate_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


class UserStore:
    """Staff accounts in the users table"""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _public(row):
        if row is None:
            return None
        user = dict(row)
        user.pop('password_hash', None)
        return user

    def get_user_by_email(self, email):
        """Get active user by email address"""
        with self.db.connect() as conn:
            row = conn.execute("""
                SELECT * FROM users WHERE email = ? AND status = 'active'
            """, ((email or '').strip().lower(),)).fetchone()
        return self._public(row)

    def get_user_by_id(self, user_id):
        """Get active user by ID"""
        with self.db.connect() as conn:
            row = conn.execute("""
                SELECT * FROM users WHERE id = ? AND status = 'active'
            """, (user_id,)).fetchone()
        return self._public(row)

    def create_user(self, name, email, password, role='author'):
        """Create a new user. Returns the new user dict."""
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        if not all(isinstance(value, str) and value.strip() for value in (name, email, password)):
            raise ValidationError('Name, email and password are required')
        if not is_valid_email(email.strip()):
            raise ValidationError('Invalid email format')

        email = email.strip().lower()
        try:
            with self.db.connect() as conn:
                cursor = conn.execute("""
                    INSERT INTO users (name, email, password_hash, role)
                    VALUES (?, ?, ?, ?)
                """, (name.strip(), email, generate_password_hash(password), role))
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError:
            raise Conflict('A user with this email already exists')

        logger.info(f"Created {role} user {email}")
        return self.get_user_by_id(user_id)

    def verify_user_credentials(self, email, password):
        """Return the user for a correct email/password pair, else None"""
        with self.db.connect() as conn:
            row = conn.execute("""
                SELECT * FROM users WHERE email = ? AND status = 'active'
            """, ((email or '').strip().lower(),)).fetchone()

        if row is None or not row['password_hash']:
            return None
        if not check_password_hash(row['password_hash'], password or ''):
            return None
        return self._public(row)

    # ===================
    # ADMINISTRATION
    # ===================

    def count_admins(self):
        with self.db.connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM users WHERE role = 'admin'").fetchone()[0]

    def get_user(self, user_id):
        """Any user by ID, inactive included"""
        with self.db.connect() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFound('User not found')
        return dict(row)

    def list_users(self, page=1, limit=10, role=None, status=None):
        clauses = []
        params = []
        if role:
            if role not in ROLES:
                raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
            clauses.append('u.role = ?')
            params.append(role)
        if status:
            if status not in STATUSES:
                raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
            clauses.append('u.status = ?')
            params.append(status)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

        with self.db.connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM users u{where}", params).fetchone()[0]
            rows = conn.execute(f"""
                SELECT u.id, u.name, u.email, u.role, u.status, u.created_at,
                       (SELECT COUNT(*) FROM articles a WHERE a.author_id = u.id) AS article_count
                FROM users u{where}
                ORDER BY u.created_at DESC, u.id DESC
                LIMIT ? OFFSET ?
            """, params + [limit, (page - 1) * limit]).fetchall()

        return {
            'users': [dict(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }

    def set_status(self, user_id, status):
        """Activate or deactivate an account. Inactive users cannot log in and their tokens stop working."""
        if status not in STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
        with self.db.connect() as conn:
            cursor = conn.execute('UPDATE users SET status = ? WHERE id = ?', (status, user_id))
            if cursor.rowcount == 0:
                raise NotFound('User not found')
        logger.info(f"User {user_id} set to {status}")
        return self.get_user(user_id)

    def change_password(self, user_id, current_password, new_password):
        validate_password(new_password)
        with self.db.connect() as conn:
            row = conn.execute('SELECT password_hash FROM users WHERE id = ?', (user_id,)).fetchone()
            if row is None:
                raise NotFound('User not found')
            if not row['password_hash'] or not check_password_hash(row['password_hash'], current_password or ''):
                raise ValidationError('Current password is incorrect')
            conn.execute('UPDATE users SET password_hash = ? WHERE id = ?',
                         (generate_password_hash(new_password), user_id))
        logger.info(f"Password changed for user {user_id}")
