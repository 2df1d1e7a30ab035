"""
Server configuration.

Settings are read from the environment; a ``.env`` file in the working
directory is loaded first when present.

Environment Variables (.env):
    SERVER_HOST: Host to bind both listeners to (default: 0.0.0.0)
    WS_PORT: WebSocket relay port (default: 8765)
    HTTP_PORT: HTTP API port (default: 8000)
    API_PREFIX: Path prefix of the HTTP API (default: /api/v1)
    PING_INTERVAL: Seconds between keepalive pings (default: 20)
    PING_TIMEOUT: Seconds without a pong before the connection is dropped (default: 60)
    REDIS_URL / USE_REDIS: Enable the Redis chat cache
    LOG_LEVEL: Logging level name (default: INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
# names understood by both logging and uvicorn
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    ws_port: int = 8765
    http_port: int = 8000
    api_prefix: str = "/api/v1"
    ping_interval: float = 20.0
    ping_timeout: float = 60.0
    redis_url: Optional[str] = None
    use_redis: bool = False
    log_level: str = "INFO"


def _number(env: dict, name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def load_settings(env: Optional[dict] = None) -> Settings:
    """Build Settings from ``env`` (defaults to os.environ after load_dotenv)."""
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    redis_url = env.get("REDIS_URL") or None
    log_level = (env.get("LOG_LEVEL") or Settings.log_level).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Invalid value for LOG_LEVEL: {env.get('LOG_LEVEL')!r}")
    prefix = env.get("API_PREFIX", Settings.api_prefix).strip("/")
    return Settings(
        host=env.get("SERVER_HOST", Settings.host),
        ws_port=_number(env, "WS_PORT", Settings.ws_port, int),
        http_port=_number(env, "HTTP_PORT", Settings.http_port, int),
        api_prefix=f"/{prefix}" if prefix else "",
        ping_interval=_number(env, "PING_INTERVAL", Settings.ping_interval, float),
        ping_timeout=_number(env, "PING_TIMEOUT", Settings.ping_timeout, float),
        redis_url=redis_url,
        use_redis=bool(redis_url or env.get("USE_REDIS")),
        log_level=log_level,
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
