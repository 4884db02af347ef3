"""
Short Link Tests
================

Deterministic slug generation and the /api/short-links endpoints.
"""

import pytest

from newsdesk.core.errors import NotFound, Conflict, ValidationError
from newsdesk.modules.short_links.registry import (
    normalize_slug, clean_utm_params, utm_fingerprint, UTM_KEYS,
)


def _insert_link(newsdesk, article_id, slug):
    with newsdesk.db.connect() as conn:
        conn.execute(
            "INSERT INTO short_links (article_id, short_slug, full_url) VALUES (?, ?, ?)",
            (article_id, slug, "https://elsewhere.example.com/"),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_normalize_slug():
    assert normalize_slug("Hello, World!") == "hello-world"
    assert normalize_slug("--Already-Slugged--") == "already-slugged"
    assert normalize_slug(None) == ""


def test_clean_utm_params_drops_unknown_and_blank():
    cleaned = clean_utm_params({"utm_source": " twitter ", "utm_medium": "", "ref": "x"})
    assert cleaned == {
        "utm_source": "twitter",
        "utm_medium": None,
        "utm_campaign": None,
        "utm_term": None,
        "utm_content": None,
    }


def test_clean_utm_params_rejects_non_strings():
    with pytest.raises(ValidationError):
        clean_utm_params({"utm_source": 42})


def test_utm_fingerprint_is_stable():
    utm = clean_utm_params({"utm_source": "twitter"})
    assert utm_fingerprint(utm) == utm_fingerprint(dict(utm))
    assert len(utm_fingerprint(utm)) == 6
    assert utm_fingerprint(clean_utm_params({})) is None
    assert utm_fingerprint(utm) != utm_fingerprint(clean_utm_params({"utm_source": "facebook"}))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_generate_is_idempotent(newsdesk, make_article):
    article = make_article(title="Budget Vote Tonight")

    first = newsdesk.registry.generate(article["id"])
    second = newsdesk.registry.generate(article["id"])

    assert first["created"] is True
    assert second["created"] is False
    assert first["id"] == second["id"]
    assert first["short_slug"] == "budget-vote-tonight"
    assert first["short_link"] == "https://news.example.com/s/budget-vote-tonight"
    assert first["full_url"] == "https://www.example.com/article/budget-vote-tonight"

    with newsdesk.db.connect() as conn:
        count = conn.execute("SELECT COUNT(*) FROM short_links").fetchone()[0]
    assert count == 1


def test_generate_with_utm_creates_distinct_link(newsdesk, make_article):
    article = make_article(title="Budget Vote Tonight")

    plain = newsdesk.registry.generate(article["id"])
    tagged = newsdesk.registry.generate(article["id"], {"utm_source": "twitter", "utm_medium": "social"})
    tagged_again = newsdesk.registry.generate(article["id"], {"utm_source": "twitter", "utm_medium": "social"})

    assert tagged["id"] != plain["id"]
    assert tagged["short_slug"].startswith("budget-vote-tonight-")
    assert tagged["utm_source"] == "twitter"
    assert tagged_again["id"] == tagged["id"]
    assert tagged_again["created"] is False


def test_generate_skips_slug_taken_by_other_link(newsdesk, make_article):
    article = make_article(title="Storm Warning")
    other = make_article(title="Something Else")
    _insert_link(newsdesk, other["id"], "storm-warning")

    link = newsdesk.registry.generate(article["id"])
    assert link["short_slug"] == "storm-warning-2"
    assert link["article_id"] == article["id"]


def test_generate_conflict_when_all_candidates_taken(newsdesk, make_article):
    article = make_article(title="Storm Warning")
    other = make_article(title="Something Else")
    _insert_link(newsdesk, other["id"], "storm-warning")
    for n in range(2, 6):
        _insert_link(newsdesk, other["id"], f"storm-warning-{n}")

    with pytest.raises(Conflict):
        newsdesk.registry.generate(article["id"])


def test_generate_unknown_article(newsdesk):
    with pytest.raises(NotFound):
        newsdesk.registry.generate(9999)


def test_deleting_article_removes_links(newsdesk, make_article):
    article = make_article()
    link = newsdesk.registry.generate(article["id"])
    newsdesk.articles.delete(article["id"])
    assert newsdesk.registry.find_active(link["short_slug"]) is None


def test_find_active_ignores_inactive(newsdesk, make_article):
    article = make_article()
    link = newsdesk.registry.generate(article["id"])
    with newsdesk.db.connect() as conn:
        conn.execute("UPDATE short_links SET is_active = 0 WHERE id = ?", (link["id"],))
    assert newsdesk.registry.find_active(link["short_slug"]) is None


def test_set_active_toggles_link(newsdesk, make_article):
    article = make_article()
    link = newsdesk.registry.generate(article["id"])

    off = newsdesk.registry.set_active(link["id"], False)
    assert off["is_active"] is False
    assert newsdesk.registry.find_active(link["short_slug"]) is None

    on = newsdesk.registry.set_active(link["id"], True)
    assert on["is_active"] is True
    assert newsdesk.registry.find_active(link["short_slug"])["id"] == link["id"]

    with pytest.raises(NotFound):
        newsdesk.registry.set_active(9999, False)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def test_generate_route_created_then_existing(client, make_article, author):
    _, headers = author
    article = make_article(title="Local Election Results")

    first = client.post("/api/short-links/generate", json={"article_id": article["id"]}, headers=headers)
    assert first.status_code == 201
    data = first.get_json()["data"]
    assert data["short_link"] == "https://news.example.com/s/local-election-results"
    assert data["click_count"] == 0
    assert set(data["utm"]) == set(UTM_KEYS)

    second = client.post("/api/short-links/generate", json={"article_id": article["id"]}, headers=headers)
    assert second.status_code == 200
    assert second.get_json()["data"]["short_slug"] == data["short_slug"]


def test_generate_route_validation(client, author):
    _, headers = author
    response = client.post("/api/short-links/generate", json={}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()["message"] == "Article ID is required"

    response = client.post("/api/short-links/generate", json={"article_id": 424242}, headers=headers)
    assert response.status_code == 404


def test_generate_route_requires_auth(client, make_article):
    article = make_article()
    response = client.post("/api/short-links/generate", json={"article_id": article["id"]})
    assert response.status_code == 401


def test_generate_route_rate_limited(client, newsdesk, make_article, author):
    _, headers = author
    article = make_article()
    newsdesk.short_link_limiter.max_requests = 2

    codes = [
        client.post("/api/short-links/generate", json={"article_id": article["id"]}, headers=headers).status_code
        for _ in range(3)
    ]
    assert codes == [201, 200, 429]


def test_article_links_route(client, newsdesk, make_article, author):
    _, headers = author
    article = make_article()
    newsdesk.registry.generate(article["id"])
    newsdesk.registry.generate(article["id"], {"utm_source": "newsletter"})

    response = client.get(f"/api/short-links/article/{article['id']}", headers=headers)
    assert response.status_code == 200
    links = response.get_json()["data"]
    assert len(links) == 2
    assert all(link["click_count"] == 0 for link in links)

    assert client.get("/api/short-links/article/9999", headers=headers).status_code == 404


def test_link_status_route(client, newsdesk, make_article, author, editor):
    article = make_article(status="published")
    link = newsdesk.registry.generate(article["id"])
    _, author_headers = author
    _, editor_headers = editor
    url = f"/api/short-links/{link['id']}/status"

    assert client.put(url, json={"is_active": False}, headers=author_headers).status_code == 403
    assert client.put(url, json={"is_active": "no"}, headers=editor_headers).status_code == 400

    response = client.put(url, json={"is_active": False}, headers=editor_headers)
    assert response.status_code == 200
    assert response.get_json()["data"]["is_active"] is False
    assert client.get(f"/s/{link['short_slug']}").status_code == 404

    client.put(url, json={"is_active": True}, headers=editor_headers)
    assert client.get(f"/s/{link['short_slug']}").status_code == 301
