import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base configuration for the Newsdesk backend.
    Every key can be overridden through the environment (or a .env file),
    and anything already present on app.config wins over these defaults.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'production')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Single database file: joins between articles, short links and clicks
    # need every table in the same store
    NEWS_DB = os.getenv('NEWS_DB', os.path.join(DB_DIR, 'news.db'))

    # Public URLs
    BASE_URL = os.getenv('BASE_URL', 'http://localhost:5000')
    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000')
    ARTICLE_PATH_PREFIX = os.getenv('ARTICLE_PATH_PREFIX', '/article/')
    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

    # Email settings
    EMAIL_PROVIDER = os.getenv('EMAIL_PROVIDER', 'resend')
    EMAIL_ADDRESS = os.getenv('EMAIL_ADDRESS', 'noreply@example.com')
    EMAIL_SENDER_NAME = os.getenv('EMAIL_SENDER_NAME', 'Newsdesk')
    EMAIL_BRAND_NAME = os.getenv('EMAIL_BRAND_NAME', 'Newsdesk')
    RESEND_API_KEY = os.getenv('RESEND_API_KEY') or os.getenv('RESEND')
    BREVO_API_KEY = os.getenv('BREVO_API_KEY')
    EMAIL_HOST = os.getenv('EMAIL_HOST', 'smtp.gmail.com')
    EMAIL_PORT = int(os.getenv('EMAIL_PORT', '587'))
    EMAIL_PASSWORD = os.getenv('EMAIL_PASSWORD')

    # Geo lookup for click analytics: 'none' or 'ip-api'
    GEO_PROVIDER = os.getenv('GEO_PROVIDER', 'none')

    # Publish scheduler
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
    SCHEDULER_INTERVAL_SECONDS = int(os.getenv('SCHEDULER_INTERVAL_SECONDS', '60'))

    # Newsletter batching (provider rate limits)
    NEWSLETTER_BATCH_SIZE = int(os.getenv('NEWSLETTER_BATCH_SIZE', '10'))
    NEWSLETTER_BATCH_DELAY = float(os.getenv('NEWSLETTER_BATCH_DELAY', '1.0'))

    # Rate limits (requests per window, window in seconds)
    REDIRECT_RATE_LIMIT = int(os.getenv('REDIRECT_RATE_LIMIT', '1000'))
    REDIRECT_RATE_WINDOW = int(os.getenv('REDIRECT_RATE_WINDOW', '60'))
    SHORT_LINK_RATE_LIMIT = int(os.getenv('SHORT_LINK_RATE_LIMIT', '100'))
    SHORT_LINK_RATE_WINDOW = int(os.getenv('SHORT_LINK_RATE_WINDOW', '900'))

    # Bearer tokens issued by /api/auth/login
    AUTH_TOKEN_MAX_AGE = int(os.getenv('AUTH_TOKEN_MAX_AGE', str(7 * 24 * 3600)))

    # Port for local server
    port = int(os.getenv('PORT', '5000'))
