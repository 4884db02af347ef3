"""
Core Tests
==========

Timestamps, rate limiting, geo lookup and the persistent log.
"""

from datetime import datetime, timezone, timedelta
from unittest.mock import patch, MagicMock

import pytest
import requests

from newsdesk.core.database import to_db_timestamp, from_db_timestamp, parse_client_datetime
from newsdesk.core.rate_limit import RateLimiter
from newsdesk.modules.analytics.geo import IpApiGeoResolver, NullGeoResolver, create_geo_resolver


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def test_aware_datetimes_stored_as_utc():
    local = datetime(2024, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert to_db_timestamp(local) == "2024-06-01 16:00:00"
    assert from_db_timestamp("2024-06-01 16:00:00") == datetime(2024, 6, 1, 16, 0)


def test_parse_client_datetime():
    assert parse_client_datetime("2024-06-01T16:00:00Z") == datetime(2024, 6, 1, 16, 0)
    assert parse_client_datetime("2024-06-01T16:00:00") == datetime(2024, 6, 1, 16, 0)
    with pytest.raises(ValueError):
        parse_client_datetime("tomorrow")
    with pytest.raises(ValueError):
        parse_client_datetime(None)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

def test_rate_limiter_window():
    now = [1000.0]
    limiter = RateLimiter(2, 60, clock=lambda: now[0])

    assert limiter.is_limited("1.2.3.4") is False
    assert limiter.is_limited("1.2.3.4") is False
    assert limiter.is_limited("1.2.3.4") is True
    # other clients are independent
    assert limiter.is_limited("5.6.7.8") is False

    now[0] += 61
    assert limiter.is_limited("1.2.3.4") is False


def test_rate_limiter_forgets_idle_clients():
    now = [1000.0]
    limiter = RateLimiter(5, 60, clock=lambda: now[0], sweep_every=100)

    for i in range(5000):
        limiter.is_limited(f"10.0.{i // 256}.{i % 256}")
    assert limiter.tracked_clients() == 5000

    # the periodic sweep drops everything outside the window
    now[0] += 61
    for i in range(100):
        limiter.is_limited(f"172.16.0.{i}")
    assert limiter.tracked_clients() == 100

    now[0] += 61
    limiter.sweep()
    assert limiter.tracked_clients() == 0


def test_rate_limiter_reset():
    limiter = RateLimiter(1, 60)
    limiter.is_limited("1.2.3.4")
    assert limiter.is_limited("1.2.3.4") is True
    limiter.reset()
    assert limiter.is_limited("1.2.3.4") is False


# ---------------------------------------------------------------------------
# Geo lookup
# ---------------------------------------------------------------------------

def test_create_geo_resolver():
    assert isinstance(create_geo_resolver("ip-api"), IpApiGeoResolver)
    assert isinstance(create_geo_resolver("none"), NullGeoResolver)
    assert isinstance(create_geo_resolver(None), NullGeoResolver)


def test_ip_api_private_addresses_skip_lookup():
    resolver = IpApiGeoResolver()
    with patch("newsdesk.modules.analytics.geo.requests.get") as get:
        assert resolver.lookup("192.168.1.10") == {"country": None, "city": None}
        assert resolver.lookup("127.0.0.1") == {"country": None, "city": None}
        assert resolver.lookup("garbage") == {"country": None, "city": None}
    get.assert_not_called()


def test_ip_api_lookup_is_cached():
    response = MagicMock(status_code=200)
    response.json.return_value = {"status": "success", "countryCode": "DE", "city": "Berlin"}
    resolver = IpApiGeoResolver()

    with patch("newsdesk.modules.analytics.geo.requests.get", return_value=response) as get:
        assert resolver.lookup("8.8.8.8") == {"country": "DE", "city": "Berlin"}
        assert resolver.lookup("8.8.8.8") == {"country": "DE", "city": "Berlin"}

    assert get.call_count == 1
    assert get.call_args.kwargs["timeout"] == 3


def test_ip_api_failure_yields_nulls():
    resolver = IpApiGeoResolver()
    with patch("newsdesk.modules.analytics.geo.requests.get", side_effect=requests.Timeout("slow")):
        assert resolver.lookup("8.8.4.4") == {"country": None, "city": None}

    failed = MagicMock(status_code=200)
    failed.json.return_value = {"status": "fail", "message": "reserved range"}
    with patch("newsdesk.modules.analytics.geo.requests.get", return_value=failed):
        assert resolver.lookup("8.8.4.4") == {"country": None, "city": None}


# ---------------------------------------------------------------------------
# Persistent log
# ---------------------------------------------------------------------------

def test_log_service_writes_and_filters(newsdesk):
    log = newsdesk.log_service
    log.info("articles", "created", {"article_id": 1})
    log.warning("newsletter", "slow provider")
    log.error("newsletter", "provider down")

    newsletter = log.recent(source="newsletter")
    assert [entry["message"] for entry in newsletter] == ["provider down", "slow provider"]
    assert log.recent(level="info")[0]["details"] == '{"article_id": 1}'
    assert log.error_count_since(hours=1) == 1


def test_log_service_never_raises(newsdesk, monkeypatch):
    def broken_connect():
        raise RuntimeError("database gone")

    monkeypatch.setattr(newsdesk.db, "connect", broken_connect)
    newsdesk.log_service.error("scheduler", "still fine")
