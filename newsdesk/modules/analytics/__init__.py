"""
Analytics Module
================

Short-link click log and aggregate queries, plus the pluggable geo
lookup used when recording a click. HTTP routes live with the short links.
"""

from .recorder import ClickRecorder, GROUPINGS
from .geo import NullGeoResolver, IpApiGeoResolver, create_geo_resolver

__all__ = ['ClickRecorder', 'GROUPINGS', 'NullGeoResolver', 'IpApiGeoResolver', 'create_geo_resolver']
