"""
Newsdesk - News Publishing Backend
==================================

A Flask JSON API for a news site with:
- Article CRUD and scheduled publishing
- Click-tracked short links with UTM attribution and click analytics
- Newsletter subscribers, manual campaigns and one automated newsletter
  per newly published article
- Runtime site settings, persistent logging and a health endpoint

Usage:
    from flask import Flask
    from newsdesk import Newsdesk

    app = Flask(__name__)
    Newsdesk(app)

Or use the factory:
    from newsdesk import create_app
    app = create_app()
"""

import time
import logging

from flask import Flask
from flask_cors import CORS

from .core.config import Config
from .core.database import Database
from .core.errors import register_error_handlers
from .core.logging_service import LoggingService
from .core.rate_limit import RateLimiter

__version__ = '0.1.0'

logger = logging.getLogger(__name__)


class Newsdesk:
    """
    Flask extension that builds every service around one SQLite database
    and registers the module blueprints.

    Services are reachable from request handlers as
    current_app.extensions['newsdesk'].<name>.
    """

    def __init__(self, app=None, email_service=None, geo_resolver=None):
        self.email_service = email_service
        self.geo_resolver = geo_resolver
        self.started_at = time.time()
        self._registered_modules = []

        if app is not None:
            self.init_app(app)

    def _apply_config_defaults(self, app):
        """Anything the app already configured wins over Config"""
        for key in dir(Config):
            if key.isupper():
                app.config.setdefault(key, getattr(Config, key))
        app.config.setdefault('PORT', Config.port)
        if not app.config.get('SECRET_KEY'):
            app.config['SECRET_KEY'] = Config.SECRET_KEY

    def init_app(self, app):
        from .modules.settings.store import SettingsStore
        from .modules.email.email_service import EmailService
        from .modules.analytics.geo import create_geo_resolver
        from .modules.analytics.recorder import ClickRecorder
        from .modules.auth.database import UserStore
        from .modules.categories.models import CategoryStore
        from .modules.short_links.registry import ShortLinkRegistry
        from .modules.short_links.resolver import RedirectResolver
        from .modules.subscribers.models import SubscriberStore
        from .modules.newsletter.dispatcher import CampaignDispatcher
        from .modules.newsletter.automation import NewsletterAutomation
        from .modules.articles.models import ArticleStore
        from .modules.articles.scheduler import PublishScheduler

        self._apply_config_defaults(app)
        config = app.config

        # Storage first: a database that cannot be created is fatal
        self.db = Database(config['NEWS_DB'])
        self.db.init_schema()

        self.log_service = LoggingService(self.db)
        self.settings_store = SettingsStore(self.db)

        if self.email_service is None:
            self.email_service = EmailService()
        if hasattr(self.email_service, 'init_app'):
            self.email_service.init_app(app, self.db)

        if self.geo_resolver is None:
            self.geo_resolver = create_geo_resolver(config['GEO_PROVIDER'])

        self.redirect_limiter = RateLimiter(config['REDIRECT_RATE_LIMIT'], config['REDIRECT_RATE_WINDOW'])
        self.short_link_limiter = RateLimiter(config['SHORT_LINK_RATE_LIMIT'], config['SHORT_LINK_RATE_WINDOW'])

        self.users = UserStore(self.db)
        self.categories = CategoryStore(self.db)
        self.articles = ArticleStore(self.db)
        self.subscribers = SubscriberStore(self.db)
        self.recorder = ClickRecorder(self.db)
        self.registry = ShortLinkRegistry(
            self.db,
            base_url=config['BASE_URL'],
            frontend_url=config['FRONTEND_URL'],
            article_path_prefix=config['ARTICLE_PATH_PREFIX'],
        )
        self.resolver = RedirectResolver(
            self.registry, self.recorder, self.geo_resolver, self.redirect_limiter, self.log_service
        )
        self.dispatcher = CampaignDispatcher(
            self.db,
            self.email_service,
            batch_size=config['NEWSLETTER_BATCH_SIZE'],
            batch_delay=config['NEWSLETTER_BATCH_DELAY'],
            log_service=self.log_service,
        )
        self.automation = NewsletterAutomation(
            self.db, self.settings_store, self.subscribers, self.dispatcher,
            self.email_service, self.log_service
        )
        self.scheduler = PublishScheduler(
            self.articles,
            self.automation,
            settings_store=self.settings_store,
            interval_seconds=config['SCHEDULER_INTERVAL_SECONDS'],
            log_service=self.log_service,
        )

        self._register_blueprints(app)
        register_error_handlers(app)
        CORS(app, resources={r'/api/*': {'origins': config['CORS_ORIGINS']}})

        app.extensions['newsdesk'] = self

        if config['SCHEDULER_ENABLED'] and not app.testing:
            self.scheduler.start()
        else:
            logger.info("Publish scheduler not started (disabled or testing)")

        logger.info(f"Newsdesk initialised with modules: {', '.join(self._registered_modules)}")

    def _register_blueprints(self, app):
        from .modules.auth import auth_bp, users_bp
        from .modules.categories import categories_bp
        from .modules.articles import articles_bp
        from .modules.short_links import short_links_bp, redirect_bp
        from .modules.subscribers import subscribers_bp
        from .modules.settings import settings_bp
        from .modules.ops import ops_health_bp, ops_admin_bp

        for name, blueprints in (
            ('auth', [auth_bp, users_bp]),
            ('categories', [categories_bp]),
            ('articles', [articles_bp]),
            ('short_links', [short_links_bp, redirect_bp]),
            ('subscribers', [subscribers_bp]),
            ('settings', [settings_bp]),
            ('ops', [ops_health_bp, ops_admin_bp]),
        ):
            for blueprint in blueprints:
                if blueprint.name not in app.blueprints:
                    app.register_blueprint(blueprint)
            self._registered_modules.append(name)

    def get_registered_modules(self):
        return list(self._registered_modules)


def create_app(config=None, email_service=None, geo_resolver=None):
    """
    Application factory.

    Args:
        config (dict): values applied to app.config before Config defaults
        email_service: object with send() and the render_* helpers; defaults
            to the configured EmailService provider
        geo_resolver: object with lookup(ip); defaults to GEO_PROVIDER
    """
    app = Flask(__name__)
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=logging.DEBUG if app.config.get('ENVIRONMENT', Config.ENVIRONMENT) == 'development' else logging.INFO,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    Newsdesk(app, email_service=email_service, geo_resolver=geo_resolver)
    return app


__all__ = ['Newsdesk', 'create_app', 'Config']
