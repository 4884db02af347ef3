"""
Newsletter Tests
================

Campaign dispatch and the automated newsletter gate.
"""

import pytest

from newsdesk.core.errors import Conflict, ValidationError
from newsdesk.modules.newsletter.dispatcher import CampaignDispatcher


def _campaigns(newsdesk):
    with newsdesk.db.connect() as conn:
        return [dict(row) for row in conn.execute("SELECT * FROM newsletter_campaigns ORDER BY id").fetchall()]


@pytest.fixture
def readers(newsdesk):
    emails = ["a@example.com", "b@example.com", "c@example.com", "d@example.com", "e@example.com"]
    for email in emails:
        newsdesk.subscribers.subscribe(email)
    return emails


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def test_dispatch_in_batches_with_delay(newsdesk, fake_email, readers):
    sleeps = []
    dispatcher = CampaignDispatcher(newsdesk.db, fake_email, batch_size=2, batch_delay=1.5,
                                    sleep=sleeps.append)

    result = dispatcher.send("Weekly digest", "<p>Hello</p>", newsdesk.subscribers.active_recipients())

    assert result["sent_count"] == 5
    assert result["failed_count"] == 0
    assert result["total_subscribers"] == 5
    # three batches, no pause after the last one
    assert sleeps == [1.5, 1.5]
    assert [m["to"] for m in fake_email.sent] == readers

    campaign = _campaigns(newsdesk)[0]
    assert campaign["status"] == "sent"
    assert campaign["campaign_type"] == "manual"
    assert campaign["sent_at"] is not None


def test_dispatch_counts_partial_failures(newsdesk, fake_email, readers):
    fake_email.fail_for = {"b@example.com", "d@example.com"}

    result = newsdesk.dispatcher.send("Digest", "<p>Hi</p>", newsdesk.subscribers.active_recipients())

    assert result["sent_count"] == 3
    assert result["failed_count"] == 2
    assert _campaigns(newsdesk)[0]["failed_count"] == 2

    ok = newsdesk.subscribers.get_by_email("a@example.com")
    failed = newsdesk.subscribers.get_by_email("b@example.com")
    assert ok["email_count"] == 1 and ok["last_email_sent"] is not None
    assert failed["email_count"] == 0 and failed["last_email_sent"] is None


def test_dispatch_accepts_plain_addresses(newsdesk, fake_email):
    result = newsdesk.dispatcher.send("Hi", "Body", ["solo@example.com"])
    assert result["sent_count"] == 1
    assert "Unsubscribe" in fake_email.sent[0]["html"]


def test_dispatch_validation(newsdesk):
    with pytest.raises(ValidationError):
        newsdesk.dispatcher.send("Hi", "Body", [])
    with pytest.raises(ValidationError):
        newsdesk.dispatcher.send("Hi", "Body", ["x@example.com"], campaign_type="weekly")


def test_only_one_automated_campaign_per_article(newsdesk, make_article):
    article = make_article()
    newsdesk.dispatcher.send("A", "B", ["x@example.com"], campaign_type="automated", article_id=article["id"])
    with pytest.raises(Conflict):
        newsdesk.dispatcher.send("A", "B", ["x@example.com"], campaign_type="automated", article_id=article["id"])
    # manual campaigns about the same article are fine
    newsdesk.dispatcher.send("A", "B", ["x@example.com"], campaign_type="manual", article_id=article["id"])


# ---------------------------------------------------------------------------
# Automation gate
# ---------------------------------------------------------------------------

def test_gate_skips_when_disabled(newsdesk, make_article, readers, fake_email):
    article = make_article(status="published")
    result = newsdesk.automation.handle_published(article)
    assert result == {"status": "skipped", "reason": "automation_disabled", "article_id": article["id"]}
    assert fake_email.sent == []


def test_gate_skips_without_excerpt(newsdesk, make_article, readers, enable_automation):
    article = make_article(excerpt=None, status="published")
    assert newsdesk.automation.should_send(article) is False
    assert newsdesk.automation.handle_published(article)["reason"] == "missing_fields"


def test_gate_skips_without_subscribers(newsdesk, make_article, enable_automation):
    article = make_article(status="published")
    assert newsdesk.automation.handle_published(article)["reason"] == "no_subscribers"
    assert _campaigns(newsdesk) == []


def test_gate_sends_once(newsdesk, make_article, readers, enable_automation, fake_email):
    article = make_article(title="Council Approves Park", status="published")

    first = newsdesk.automation.handle_published(article)
    second = newsdesk.automation.handle_published(article)

    assert first["status"] == "sent"
    assert first["sent_count"] == len(readers)
    assert second == {"status": "skipped", "reason": "already_sent", "article_id": article["id"]}
    assert len(fake_email.sent) == len(readers)
    assert fake_email.sent[0]["subject"] == "New Article: Council Approves Park"
    assert "https://www.example.com/article/council-approves-park" in fake_email.sent[0]["html"]

    campaigns = _campaigns(newsdesk)
    assert len(campaigns) == 1
    assert campaigns[0]["campaign_type"] == "automated"
    assert campaigns[0]["article_id"] == article["id"]


def test_gate_race_lost_reports_duplicate(newsdesk, make_article, readers, enable_automation, monkeypatch):
    article = make_article(status="published")
    newsdesk.dispatcher.send("Earlier", "x", ["x@example.com"], campaign_type="automated", article_id=article["id"])

    # the fast-path check missed the other sender's row
    monkeypatch.setattr(newsdesk.automation, "automated_campaign_exists", lambda article_id: False)

    result = newsdesk.automation.handle_published(article)
    assert result["reason"] == "duplicate"
    assert len(_campaigns(newsdesk)) == 1


def test_gate_uses_subject_prefix(newsdesk, make_article, readers, enable_automation, fake_email):
    newsdesk.settings_store.update({"newsletter_subject_prefix": "[Daily] "})
    article = make_article(title="Tides", status="published")
    newsdesk.automation.handle_published(article)
    assert fake_email.sent[0]["subject"] == "[Daily] New Article: Tides"


# ---------------------------------------------------------------------------
# Publishing through the API
# ---------------------------------------------------------------------------

def test_publish_route_sends_newsletter_once(client, newsdesk, make_article, readers, enable_automation,
                                             fake_email, editor):
    _, headers = editor
    article = make_article()

    first = client.post(f"/api/articles/{article['id']}/publish", headers=headers)
    assert first.get_json()["newsletter"]["status"] == "sent"

    # unpublish and publish again: still only one automated newsletter
    client.post(f"/api/articles/{article['id']}/unpublish", headers=headers)
    again = client.post(f"/api/articles/{article['id']}/publish", headers=headers)
    assert again.get_json()["newsletter"]["reason"] == "already_sent"
    assert len(fake_email.sent) == len(readers)


def test_publish_route_survives_newsletter_crash(client, newsdesk, make_article, enable_automation, editor,
                                                 monkeypatch):
    _, headers = editor
    article = make_article()

    def explode(article):
        raise RuntimeError("boom")

    monkeypatch.setattr(newsdesk.automation, "handle_published", explode)

    response = client.post(f"/api/articles/{article['id']}/publish", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "published"
    assert response.get_json()["newsletter"]["status"] == "failed"
