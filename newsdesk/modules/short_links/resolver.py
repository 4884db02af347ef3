"""
Redirect Resolver
=================

Turns /s/<slug> into a 301 to the article, recording one click event per
hit. Click logging and geo lookup are best effort: the redirect is served
even when either fails.
"""

import re
import logging
from collections import namedtuple
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from newsdesk.core.errors import NotFound, RateLimited
from .registry import UTM_KEYS

logger = logging.getLogger(__name__)

MAX_REFERRER_LENGTH = 500
_REFERRER_STRIP = re.compile(r'[<>\'"]')

VisitContext = namedtuple('VisitContext', ['ip', 'user_agent', 'referrer', 'query'])


def get_client_ip(request):
    """Get client IP address from request"""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    elif request.headers.get('X-Real-IP'):
        return request.headers.get('X-Real-IP').strip()
    else:
        return request.remote_addr


def context_from_request(request):
    return VisitContext(
        ip=get_client_ip(request),
        user_agent=request.headers.get('User-Agent', ''),
        referrer=request.headers.get('Referer'),
        query=request.args,
    )


def sanitize_referrer(referrer):
    """Strip injection characters, cap the length, keep only real http(s) URLs"""
    if not referrer:
        return None

    clean = _REFERRER_STRIP.sub('', referrer)[:MAX_REFERRER_LENGTH]
    try:
        parts = urlsplit(clean)
    except ValueError:
        return None
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        return None
    return clean


def extract_utm_params(query):
    """The five UTM parameters of a query mapping; missing or blank -> None"""
    return {key: (query.get(key) or None) for key in UTM_KEYS}


def merge_query(url, stored_utm=None, visit_utm=None):
    """
    Apply UTM values to url's query string.

    Parameters already on url are kept in order and never overwritten,
    UTM keys included. Stored link values are applied first, then
    visit-time values override same-named stored keys.
    """
    overrides = {}
    for source in (stored_utm or {}, visit_utm or {}):
        for key in UTM_KEYS:
            if source.get(key):
                overrides[key] = source[key]

    if not overrides:
        return url

    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    existing = {k for k, _ in pairs}
    pairs.extend((key, overrides[key]) for key in UTM_KEYS if key in overrides and key not in existing)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), parts.fragment))


class RedirectResolver:

    def __init__(self, registry, recorder, geo_resolver, rate_limiter, log_service=None):
        self.registry = registry
        self.recorder = recorder
        self.geo_resolver = geo_resolver
        self.rate_limiter = rate_limiter
        self.log_service = log_service

    def _geo(self, ip):
        try:
            return self.geo_resolver.lookup(ip)
        except Exception as e:
            logger.warning(f"Geo lookup failed for {ip}: {e}")
            return {'country': None, 'city': None}

    def resolve(self, slug, visit):
        """
        Record the click and return the redirect target for slug.

        Raises:
            RateLimited: the client IP is over the redirect limit
            NotFound: no active link has this slug (nothing is recorded)
        """
        if self.rate_limiter is not None and self.rate_limiter.is_limited(visit.ip):
            raise RateLimited()

        link = self.registry.find_active(slug)
        if link is None:
            raise NotFound('Short link not found')

        referrer = sanitize_referrer(visit.referrer)
        visit_utm = extract_utm_params(visit.query)
        geo = self._geo(visit.ip)

        try:
            self.recorder.record(
                link['id'],
                ip=visit.ip,
                user_agent=(visit.user_agent or '')[:500],
                referrer=referrer,
                country=geo.get('country'),
                city=geo.get('city'),
            )
        except Exception as e:
            logger.error(f"Failed to record click for /s/{slug}: {e}")
            if self.log_service is not None:
                self.log_service.log_error_with_traceback('redirect', e, {'slug': slug})

        stored_utm = {key: link.get(key) for key in UTM_KEYS}
        return merge_query(link['full_url'], stored_utm, visit_utm)
