"""Redis and schedule settings for the payments ARQ worker."""

from typing import Optional
from urllib.parse import urlparse

from arq.connections import RedisSettings
from libs.common.config import Settings, get_settings


def get_redis_settings(settings: Optional[Settings] = None) -> RedisSettings:
    """Build ARQ RedisSettings from REDIS_URL; ``rediss://`` turns on TLS."""
    settings = settings or get_settings()
    parsed = urlparse(settings.REDIS_URL)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
        conn_timeout=settings.REDIS_CONN_TIMEOUT_SECONDS,
        conn_retries=settings.REDIS_CONN_RETRIES,
    )


def sweep_minutes(interval: int) -> set[int]:
    """Minutes of the hour on which a sweep running every ``interval`` minutes fires."""
    if interval < 1 or interval > 60 or 60 % interval:
        raise ValueError(f"Sweep interval must divide 60, got {interval}")
    return set(range(0, 60, interval))
