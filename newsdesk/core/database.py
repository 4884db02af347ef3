import os
import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

# Stored timestamps are UTC text, same shape as SQLite's CURRENT_TIMESTAMP
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT,
        role TEXT NOT NULL DEFAULT 'author',
        status TEXT NOT NULL DEFAULT 'active',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        slug TEXT UNIQUE NOT NULL,
        description TEXT,
        color TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        slug TEXT UNIQUE,
        excerpt TEXT,
        content TEXT NOT NULL DEFAULT '',
        image TEXT,
        category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
        author_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        status TEXT NOT NULL DEFAULT 'draft',
        publish_date TIMESTAMP,
        featured INTEGER DEFAULT 0,
        breaking INTEGER DEFAULT 0,
        headline INTEGER DEFAULT 0,
        views INTEGER DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_articles_status_publish ON articles(status, publish_date)',
    '''
    CREATE TABLE IF NOT EXISTS short_links (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        article_id INTEGER NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
        short_slug TEXT NOT NULL UNIQUE,
        full_url TEXT NOT NULL,
        utm_source TEXT,
        utm_medium TEXT,
        utm_campaign TEXT,
        utm_term TEXT,
        utm_content TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_short_links_article ON short_links(article_id)',
    '''
    CREATE TABLE IF NOT EXISTS link_analytics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        short_link_id INTEGER NOT NULL REFERENCES short_links(id) ON DELETE CASCADE,
        clicked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        ip_address TEXT,
        user_agent TEXT,
        referrer TEXT,
        country TEXT,
        city TEXT
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_link_analytics_link ON link_analytics(short_link_id)',
    'CREATE INDEX IF NOT EXISTS idx_link_analytics_clicked ON link_analytics(clicked_at)',
    '''
    CREATE TABLE IF NOT EXISTS subscribers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        name TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        subscribed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        unsubscribed_at TIMESTAMP,
        last_email_sent TIMESTAMP,
        email_count INTEGER NOT NULL DEFAULT 0
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_subscribers_status ON subscribers(status, subscribed_at)',
    '''
    CREATE TABLE IF NOT EXISTS newsletter_campaigns (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subject TEXT NOT NULL,
        content TEXT,
        campaign_type TEXT NOT NULL DEFAULT 'manual',
        article_id INTEGER REFERENCES articles(id) ON DELETE SET NULL,
        status TEXT NOT NULL DEFAULT 'sending',
        total_subscribers INTEGER NOT NULL DEFAULT 0,
        sent_count INTEGER NOT NULL DEFAULT 0,
        failed_count INTEGER NOT NULL DEFAULT 0,
        sent_by INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        sent_at TIMESTAMP
    )
    ''',
    # One automated campaign per article, enforced by the store itself
    '''
    CREATE UNIQUE INDEX IF NOT EXISTS idx_campaigns_automated_article
    ON newsletter_campaigns(article_id) WHERE campaign_type = 'automated'
    ''',
    '''
    CREATE TABLE IF NOT EXISTS site_settings (
        setting_key TEXT PRIMARY KEY,
        setting_value TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS email_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        recipient TEXT NOT NULL,
        subject TEXT NOT NULL,
        email_type TEXT,
        status TEXT NOT NULL,
        error_message TEXT,
        sent_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS app_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        level TEXT NOT NULL,
        source TEXT NOT NULL,
        message TEXT NOT NULL,
        details TEXT,
        ip_address TEXT,
        user_agent TEXT,
        request_path TEXT
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_logs_timestamp ON app_logs(timestamp DESC)',
]


def utc_now():
    """Current UTC time as a naive datetime (the form stored in the database)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_timestamp(value):
    """Format a datetime for storage. Aware datetimes are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def from_db_timestamp(value):
    """Parse a stored timestamp back into a naive UTC datetime"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.strptime(value[:19], TIMESTAMP_FORMAT)


def parse_client_datetime(value):
    """
    Parse an ISO 8601 string coming from a client.
    Naive values are taken as UTC. Returns a naive UTC datetime.
    Raises ValueError on anything unparseable.
    """
    if not value or not isinstance(value, str):
        raise ValueError('A date string is required')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class Database:
    """Thin wrapper around one SQLite file. Each unit of work gets its own connection."""

    def __init__(self, path):
        self.path = path

    @contextmanager
    def connect(self):
        """Yield a connection that commits on success, rolls back on error and always closes"""
        conn = sqlite3.connect(self.path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        """Create every table and index. Failure here is fatal for startup."""
        db_dir = os.path.dirname(self.path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        with self.connect() as conn:
            conn.execute('PRAGMA journal_mode = WAL')
            for statement in SCHEMA:
                conn.execute(statement)
        logger.info(f"Database schema created/verified at {self.path}")

    def ping(self):
        """Return True if the database answers a trivial query"""
        try:
            with self.connect() as conn:
                conn.execute('SELECT 1').fetchone()
            return True
        except sqlite3.Error as e:
            logger.error(f"Database ping failed: {e}")
            return False
