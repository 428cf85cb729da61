# services/settings_service.py

import json
import logging

import redis
from flask import current_app, has_app_context

from db.extensions import db
from models.setting import Setting

logger = logging.getLogger(__name__)

CACHE_PREFIX = "settings:"
DEFAULT_CACHE_TTL = 300

# Business tunables and their defaults
DEFAULTS = {
    'search_radius_km': 20,
    'courier_location_freshness_minutes': 30,
    'waiting_timeout_minutes': 10,
    'waiting_fee_per_minute': 100,
    'waiting_free_minutes': 2,
    # Fractions of the order total
    'commission_rate_platform': 0.10,
    'commission_rate_pharmacy': 0.85,
    'commission_rate_courier': 0.05,
}


def _cast(value, value_type):
    if value is None:
        return None
    if value_type == 'integer':
        return int(float(value))
    if value_type == 'float':
        return float(value)
    if value_type == 'boolean':
        return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
    if value_type == 'json':
        return json.loads(value)
    return value


def _serialize(value, value_type):
    if value_type == 'json':
        return json.dumps(value)
    if value_type == 'boolean':
        return '1' if value else '0'
    return str(value)


class SettingsStore:
    """
    Key/value tunables backed by the settings table with a Redis read-through cache.
    Engines receive an instance at construction instead of reading globals.
    """

    def __init__(self, cache=None, ttl=None):
        self._cache = cache
        self._ttl = ttl

    @property
    def cache(self):
        if self._cache is None:
            self._cache = current_app.extensions['redis']
        return self._cache

    @property
    def ttl(self):
        if self._ttl is not None:
            return self._ttl
        if has_app_context():
            return current_app.config.get('SETTINGS_CACHE_TTL', DEFAULT_CACHE_TTL)
        return DEFAULT_CACHE_TTL

    def _cache_get(self, key):
        try:
            cached = self.cache.get(CACHE_PREFIX + key)
        except redis.exceptions.RedisError as e:
            logger.warning(f"⚠️  Settings cache read failed for {key}: {e}")
            return None
        return json.loads(cached) if cached else None

    def _cache_put(self, key, raw_value, value_type):
        try:
            self.cache.set(
                CACHE_PREFIX + key,
                json.dumps({'value': raw_value, 'type': value_type}),
                ex=self.ttl,
            )
        except redis.exceptions.RedisError as e:
            logger.warning(f"⚠️  Settings cache write failed for {key}: {e}")

    def _cache_forget(self, key):
        try:
            self.cache.delete(CACHE_PREFIX + key)
        except redis.exceptions.RedisError as e:
            logger.warning(f"⚠️  Settings cache invalidation failed for {key}: {e}")

    def get(self, key, default=None):
        cached = self._cache_get(key)
        if cached is not None:
            return _cast(cached['value'], cached['type'])

        setting = Setting.query.filter_by(key=key).first()
        if not setting:
            return DEFAULTS.get(key) if default is None else default

        self._cache_put(key, setting.value, setting.type)
        return _cast(setting.value, setting.type)

    def get_int(self, key, default=None):
        value = self.get(key, default)
        return int(float(value)) if value is not None else None

    def get_float(self, key, default=None):
        value = self.get(key, default)
        return float(value) if value is not None else None

    def set(self, key, value, value_type='string'):
        setting = Setting.query.filter_by(key=key).first()
        if not setting:
            setting = Setting(key=key)
            db.session.add(setting)
        setting.value = _serialize(value, value_type)
        setting.type = value_type
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        self._cache_forget(key)
        logger.info(f"Setting {key} updated ({value_type})")
        return setting

    def snapshot(self, keys):
        """Read several tunables in one go so a calculation sees one consistent set."""
        return {key: self.get(key) for key in keys}
