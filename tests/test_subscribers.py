"""
Subscriber Tests
================
"""

import pytest

from newsdesk.core.errors import Conflict, NotFound, ValidationError


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def test_subscribe_normalises_email(newsdesk):
    subscriber, outcome = newsdesk.subscribers.subscribe("  Reader@Example.COM ", "Reader")
    assert outcome == "created"
    assert subscriber["email"] == "reader@example.com"
    assert subscriber["status"] == "active"


def test_subscribe_rejects_invalid_email(newsdesk):
    for bad in ("", "no-at-sign", "a@b", "two@@example.com"):
        with pytest.raises(ValidationError):
            newsdesk.subscribers.subscribe(bad)


def test_duplicate_active_subscription_conflicts(newsdesk):
    newsdesk.subscribers.subscribe("reader@example.com")
    with pytest.raises(Conflict):
        newsdesk.subscribers.subscribe("READER@example.com")


def test_unsubscribe_then_resubscribe_reactivates(newsdesk):
    original, _ = newsdesk.subscribers.subscribe("reader@example.com", "Reader")
    gone = newsdesk.subscribers.unsubscribe("reader@example.com")
    assert gone["status"] == "unsubscribed"
    assert gone["unsubscribed_at"] is not None
    assert newsdesk.subscribers.active_recipients() == []

    back, outcome = newsdesk.subscribers.subscribe("reader@example.com")
    assert outcome == "reactivated"
    assert back["id"] == original["id"]
    assert back["name"] == "Reader"
    assert back["unsubscribed_at"] is None


def test_unsubscribe_unknown(newsdesk):
    with pytest.raises(NotFound):
        newsdesk.subscribers.unsubscribe("nobody@example.com")


def test_stats_and_listing(newsdesk):
    for email in ("a@example.com", "b@example.com", "c@example.com"):
        newsdesk.subscribers.subscribe(email)
    newsdesk.subscribers.unsubscribe("b@example.com")

    stats = newsdesk.subscribers.stats()
    assert stats["total_subscribers"] == 3
    assert stats["active_subscribers"] == 2
    assert stats["unsubscribed_subscribers"] == 1
    assert stats["new_this_week"] == 3

    active = newsdesk.subscribers.list_subscribers(status="active")
    assert active["pagination"]["total"] == 2

    found = newsdesk.subscribers.list_subscribers(search="c@")
    assert [s["email"] for s in found["subscribers"]] == ["c@example.com"]

    with pytest.raises(ValidationError):
        newsdesk.subscribers.list_subscribers(status="bounced")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def test_subscribe_route(client):
    response = client.post("/api/subscribers/subscribe", json={"email": "new@example.com", "name": "New"})
    assert response.status_code == 201
    body = response.get_json()
    assert body["error"] is False
    assert body["message"] == "Thank you for subscribing to the Newsdesk newsletter!"

    response = client.post("/api/subscribers/subscribe", json={"email": "new@example.com"})
    assert response.status_code == 409
    assert response.get_json()["error"] is True


def test_subscribe_route_reactivation_is_200(client):
    client.post("/api/subscribers/subscribe", json={"email": "back@example.com"})
    client.post("/api/subscribers/unsubscribe", json={"email": "back@example.com"})
    response = client.post("/api/subscribers/subscribe", json={"email": "back@example.com"})
    assert response.status_code == 200
    assert "reactivated" in response.get_json()["message"]


def test_subscribe_route_invalid(client):
    assert client.post("/api/subscribers/subscribe", json={"email": "nope"}).status_code == 400
    assert client.post("/api/subscribers/subscribe", data="not json").status_code == 400


def test_unsubscribe_route_unknown(client):
    response = client.post("/api/subscribers/unsubscribe", json={"email": "ghost@example.com"})
    assert response.status_code == 404


def test_admin_listing_and_delete(client, newsdesk, admin, editor):
    subscriber, _ = newsdesk.subscribers.subscribe("reader@example.com")
    _, admin_headers = admin
    _, editor_headers = editor

    listing = client.get("/api/subscribers?status=active", headers=editor_headers)
    assert listing.status_code == 200
    assert listing.get_json()["pagination"]["total"] == 1

    stats = client.get("/api/subscribers/stats", headers=editor_headers)
    assert stats.get_json()["data"]["active_subscribers"] == 1

    assert client.delete(f"/api/subscribers/{subscriber['id']}", headers=editor_headers).status_code == 403
    assert client.delete(f"/api/subscribers/{subscriber['id']}", headers=admin_headers).status_code == 200
    assert newsdesk.subscribers.get_by_email("reader@example.com") is None


def test_send_campaign_route(client, newsdesk, fake_email, editor):
    user, headers = editor
    newsdesk.subscribers.subscribe("a@example.com")
    newsdesk.subscribers.subscribe("b@example.com")
    fake_email.fail_for = {"b@example.com"}

    response = client.post("/api/subscribers/send-campaign",
                           json={"subject": "Hello", "content": "<p>News</p>"}, headers=headers)
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["sent_count"] == 1
    assert data["failed_count"] == 1

    campaigns = client.get("/api/subscribers/campaigns", headers=headers).get_json()["data"]
    assert campaigns[0]["sent_by"] == user["id"]
    assert campaigns[0]["sender_name"] == "Editor User"
    assert campaigns[0]["campaign_type"] == "manual"


def test_send_campaign_requires_subscribers(client, editor):
    _, headers = editor
    response = client.post("/api/subscribers/send-campaign",
                           json={"subject": "Hello", "content": "Body"}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()["message"] == "No active subscribers found."
