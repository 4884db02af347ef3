"""
Geo lookup for click analytics.

Resolvers map an IP to {'country': ..., 'city': ...}. Lookups are best effort:
any failure yields nulls and never blocks the caller.
"""

import ipaddress
import logging
import threading
from datetime import datetime, timedelta

import requests

logger = logging.getLogger(__name__)

EMPTY_GEO = {'country': None, 'city': None}


class NullGeoResolver:
    """No provider configured"""

    def lookup(self, ip):
        return dict(EMPTY_GEO)


class IpApiGeoResolver:
    """ip-api.com lookup (free tier, 45 req/min, no key needed) with an in-memory cache"""

    URL = 'http://ip-api.com/json/{ip}?fields=status,message,countryCode,city'

    def __init__(self, timeout=3, cache_hours=24):
        self.timeout = timeout
        self.cache_duration = timedelta(hours=cache_hours)
        self._geo_cache = {}
        self._cache_expiry = {}
        self._lock = threading.Lock()

    @staticmethod
    def _is_private(ip):
        try:
            addr = ipaddress.ip_address(ip)
        except ValueError:
            return True
        return addr.is_private or addr.is_loopback or addr.is_reserved or addr.is_link_local

    def lookup(self, ip):
        if not ip or self._is_private(ip):
            return dict(EMPTY_GEO)

        now = datetime.now()
        with self._lock:
            if ip in self._geo_cache and self._cache_expiry.get(ip, now) > now:
                return dict(self._geo_cache[ip])
            self._geo_cache.pop(ip, None)
            self._cache_expiry.pop(ip, None)

        try:
            response = requests.get(self.URL.format(ip=ip), timeout=self.timeout)
            if response.status_code != 200:
                logger.warning(f"Geo lookup failed for {ip}: HTTP {response.status_code}")
                return dict(EMPTY_GEO)

            geo = response.json()
            if geo.get('status') != 'success':
                logger.warning(f"Geo lookup failed for {ip}: {geo.get('message', 'Unknown error')}")
                return dict(EMPTY_GEO)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Geo lookup failed for {ip}: {e}")
            return dict(EMPTY_GEO)

        geo_data = {'country': geo.get('countryCode') or None, 'city': geo.get('city') or None}
        with self._lock:
            self._geo_cache[ip] = geo_data
            self._cache_expiry[ip] = now + self.cache_duration
        return dict(geo_data)


def create_geo_resolver(provider):
    """Build the resolver named by GEO_PROVIDER ('none' or 'ip-api')"""
    if (provider or 'none').lower() in ('ip-api', 'ipapi'):
        return IpApiGeoResolver()
    return NullGeoResolver()
