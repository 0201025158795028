"""Redis connection settings for arq workers."""

from urllib.parse import urlparse

from arq.connections import RedisSettings
from libs.common.config import get_settings


def get_redis_settings() -> RedisSettings:
    """Build arq ``RedisSettings`` from ``REDIS_URL``."""
    parsed = urlparse(get_settings().REDIS_URL)
    database = parsed.path.lstrip("/") or "0"

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(database),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
    )
