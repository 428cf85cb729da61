# db/extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_mail import Mail
import redis
from redis.connection import ConnectionPool, SSLConnection
import urllib.parse
import logging

db = SQLAlchemy()
migrate = Migrate()
mail = Mail()

logger = logging.getLogger(__name__)

LOCAL_REDIS_URL = 'redis://localhost:6379/0'


def create_redis_pool(redis_url=None, use_tls=False):
    """
    Shared pool for the settings cache. Connections open on first use,
    so an app without a reachable Redis still boots (reads fall back to the DB).
    """
    parsed = urllib.parse.urlparse(redis_url or LOCAL_REDIS_URL)
    pool_kwargs = {
        'host': parsed.hostname or 'localhost',
        'port': parsed.port or 6379,
        'db': int(parsed.path.lstrip('/') or 0),
        'username': parsed.username,
        'password': parsed.password,
        'decode_responses': True,
        'socket_connect_timeout': 2,
        'socket_timeout': 2,
        'health_check_interval': 30,
        'max_connections': 20,
    }

    if use_tls or parsed.scheme == 'rediss':
        pool_kwargs.update({
            'connection_class': SSLConnection,
            'ssl_cert_reqs': None,
            'ssl_check_hostname': False,
        })
        logger.info("✅ Redis pool with SSL/TLS enabled")

    logger.info(f"🔧 Redis pool for settings cache: {pool_kwargs['host']}:{pool_kwargs['port']}")
    return ConnectionPool(**pool_kwargs)


def init_redis(app):
    client = redis.Redis(connection_pool=create_redis_pool(
        app.config.get('REDIS_URL'),
        app.config.get('REDIS_TLS_ENABLED', False),
    ))
    app.extensions['redis'] = client
    return client


def check_redis_health(client):
    try:
        client.ping()
        return True
    except redis.exceptions.RedisError as e:
        logger.error(f"❌ Redis health check failed: {str(e)}")
        return False
