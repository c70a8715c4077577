"""Configuration via environment variables (and a local .env file).

CLI flags may override the GitHub token and the Redis server address; every
other setting comes from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    api_base_url: str = "https://api.github.com"
    graphql_url: str = "https://api.github.com/graphql"
    request_timeout: float = 30.0


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0
    key_prefix: str = ""


@dataclass(frozen=True)
class PipelineConfig:
    page_size: int = 100
    backoff_base: float = 0.1
    backoff_max: float = 30.0
    backoff_jitter: float = 0.1
    max_attempts: Optional[int] = None  # None = retry forever


@dataclass(frozen=True)
class SchedulerConfig:
    interval_hours: int = 24
    misfire_grace_time: int = 300


@dataclass(frozen=True)
class KeyIndexConfig:
    github: GitHubConfig
    redis: RedisConfig = field(default_factory=RedisConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    log_level: str = "INFO"


def parse_redis_server(value: str) -> tuple[str, int]:
    """Split a "host:port" address. A bare host gets the default port."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        return port or "localhost", 6379
    if not port.isdigit():
        raise ValueError(f"Invalid REDIS_SERVER port in {value!r}")
    return host or "localhost", int(port)


def _env_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_config(
    redis_server: Optional[str] = None,
    github_token: Optional[str] = None,
) -> KeyIndexConfig:
    """Load configuration from environment variables.

    ``redis_server`` and ``github_token`` take precedence over REDIS_SERVER
    and GITHUB_TOKEN when given.
    """
    load_dotenv()

    token = github_token or os.environ.get("GITHUB_TOKEN", "")
    if not token:
        raise ValueError("GITHUB_TOKEN environment variable is required")

    api_base = os.environ.get("GITHUB_API_BASE_URL", "https://api.github.com").rstrip("/")
    github = GitHubConfig(
        token=token,
        api_base_url=api_base,
        graphql_url=os.environ.get("GITHUB_GRAPHQL_URL", f"{api_base}/graphql"),
        request_timeout=_env_float("GITHUB_REQUEST_TIMEOUT", "30"),
    )

    host, port = parse_redis_server(
        redis_server or os.environ.get("REDIS_SERVER", "localhost:6379")
    )
    redis_cfg = RedisConfig(
        host=host,
        port=port,
        password=os.environ.get("REDIS_PASSWORD", ""),
        db=_env_int("REDIS_DB", "0"),
        key_prefix=os.environ.get("REDIS_KEY_PREFIX", ""),
    )

    page_size = _env_int("KEYINDEX_PAGE_SIZE", "100")
    if not 1 <= page_size <= 100:
        raise ValueError(f"KEYINDEX_PAGE_SIZE must be between 1 and 100, got {page_size}")

    max_attempts: Optional[int] = None
    if os.environ.get("KEYINDEX_MAX_ATTEMPTS"):
        max_attempts = _env_int("KEYINDEX_MAX_ATTEMPTS", "0")
        if max_attempts < 1:
            raise ValueError("KEYINDEX_MAX_ATTEMPTS must be at least 1")

    pipeline = PipelineConfig(
        page_size=page_size,
        backoff_base=_env_float("KEYINDEX_BACKOFF_BASE", "0.1"),
        backoff_max=_env_float("KEYINDEX_BACKOFF_MAX", "30"),
        backoff_jitter=_env_float("KEYINDEX_BACKOFF_JITTER", "0.1"),
        max_attempts=max_attempts,
    )

    scheduler = SchedulerConfig(
        interval_hours=_env_int("KEYINDEX_SCHEDULE_INTERVAL_HOURS", "24"),
        misfire_grace_time=_env_int("KEYINDEX_MISFIRE_GRACE_TIME", "300"),
    )

    return KeyIndexConfig(
        github=github,
        redis=redis_cfg,
        pipeline=pipeline,
        scheduler=scheduler,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
