"""
Shared fixtures for the Newsdesk test suite.

NOTE: pytest is listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import os
import shutil
import tempfile

import pytest

from newsdesk import create_app
from newsdesk.core.errors import ExternalServiceError
from newsdesk.modules.email.email_service import EmailService
from newsdesk.modules.auth.decorators import issue_token


TEST_SECRET = "newsdesk-test-secret-key-0123456789abcdef"


class FakeEmailService(EmailService):
    """Records every send instead of calling a provider. Addresses in fail_for raise."""

    def __init__(self, fail_for=None):
        super().__init__()
        self.sent = []
        self.fail_for = set(fail_for or ())

    def send(self, to, subject, html, text=None, email_type='other'):
        if to in self.fail_for:
            raise ExternalServiceError(f"Email delivery failed for {to}")
        self.sent.append({'to': to, 'subject': subject, 'html': html, 'text': text,
                          'email_type': email_type})
        return f"fake-{len(self.sent)}"


class FakeGeoResolver:

    def __init__(self, country='GB', city='London'):
        self.country = country
        self.city = city
        self.lookups = []

    def lookup(self, ip):
        self.lookups.append(ip)
        return {'country': self.country, 'city': self.city}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for the test database, cleaned up after."""
    d = tempfile.mkdtemp(prefix="newsdesk-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def fake_email():
    return FakeEmailService()


@pytest.fixture
def fake_geo():
    return FakeGeoResolver()


@pytest.fixture
def app(tmp_db_dir, fake_email, fake_geo):
    """Fully initialised Flask app backed by a throwaway database."""
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": TEST_SECRET,
        "DB_DIR": tmp_db_dir,
        "NEWS_DB": os.path.join(tmp_db_dir, "news.db"),
        "BASE_URL": "https://news.example.com",
        "FRONTEND_URL": "https://www.example.com",
        "ARTICLE_PATH_PREFIX": "/article/",
        "NEWSLETTER_BATCH_SIZE": 2,
        "NEWSLETTER_BATCH_DELAY": 0,
        "ENVIRONMENT": "testing",
    }, email_service=fake_email, geo_resolver=fake_geo)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def newsdesk(app):
    return app.extensions["newsdesk"]


def _make_user(app, role):
    nd = app.extensions["newsdesk"]
    user = nd.users.create_user(f"{role.title()} User", f"{role}@example.com", "secret-pass", role=role)
    with app.app_context():
        token = issue_token(user)
    return user, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(app):
    """(user, auth headers) for an admin"""
    return _make_user(app, "admin")


@pytest.fixture
def editor(app):
    return _make_user(app, "editor")


@pytest.fixture
def author(app):
    return _make_user(app, "author")


@pytest.fixture
def make_article(newsdesk, admin):
    """Create an article directly through the store."""
    def _make(title="Breaking Story", excerpt="A short summary", content="Body text", **extra):
        data = {"title": title, "content": content, **extra}
        if excerpt is not None:
            data["excerpt"] = excerpt
        return newsdesk.articles.create(data, author_id=admin[0]["id"])
    return _make


@pytest.fixture
def enable_automation(newsdesk):
    newsdesk.settings_store.update({"newsletter_automation_enabled": True})
