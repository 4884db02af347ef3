"""
Settings Store
==============

Typed view over the site_settings key/value table. Values are stored as
text; the SiteSettings dataclass is the only shape the rest of the code sees.
"""

import logging
import threading
from dataclasses import dataclass, fields, asdict, replace

from newsdesk.core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteSettings:
    newsletter_automation_enabled: bool = False
    site_name: str = 'Newsdesk'
    newsletter_subject_prefix: str = ''

    def to_dict(self):
        return asdict(self)


_FIELD_TYPES = {f.name: f.type for f in fields(SiteSettings)}


def _decode(key, raw):
    """Stored text -> typed value"""
    kind = _FIELD_TYPES[key]
    if kind is bool:
        return str(raw).strip().lower() == 'true'
    return '' if raw is None else str(raw)


def _encode(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _check_type(key, value):
    kind = _FIELD_TYPES[key]
    if kind is bool:
        return isinstance(value, bool)
    return isinstance(value, str)


class SettingsStore:
    """Cached SiteSettings. refresh() rereads the table."""

    def __init__(self, db):
        self.db = db
        self._lock = threading.Lock()
        self._cached = None

    def load(self):
        """Return the cached settings, reading them on first use"""
        if self._cached is None:
            return self.refresh()
        return self._cached

    def refresh(self):
        with self.db.connect() as conn:
            rows = conn.execute('SELECT setting_key, setting_value FROM site_settings').fetchall()

        values = {}
        for row in rows:
            key = row['setting_key']
            if key in _FIELD_TYPES:
                values[key] = _decode(key, row['setting_value'])
            else:
                logger.debug(f"Ignoring unknown site setting '{key}'")

        settings = replace(SiteSettings(), **values)
        with self._lock:
            self._cached = settings
        return settings

    def update(self, changes):
        """
        Validate and persist a partial update.

        Args:
            changes (dict): setting name -> typed value

        Returns:
            SiteSettings: the refreshed settings

        Raises:
            ValidationError: unknown key or wrong value type
        """
        if not isinstance(changes, dict) or not changes:
            raise ValidationError('Settings payload must be a non-empty object')

        unknown = sorted(k for k in changes if k not in _FIELD_TYPES)
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(unknown)}")

        for key, value in changes.items():
            if not _check_type(key, value):
                raise ValidationError(f"Invalid value for setting '{key}'")

        with self.db.connect() as conn:
            for key, value in changes.items():
                conn.execute('''
                    INSERT INTO site_settings (setting_key, setting_value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(setting_key) DO UPDATE SET
                        setting_value = excluded.setting_value,
                        updated_at = CURRENT_TIMESTAMP
                ''', (key, _encode(value)))

        logger.info(f"Site settings updated: {sorted(changes)}")
        return self.refresh()
