from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os


def _env_str(name: str, default: str | None = None) -> str:
    """Read ``name`` from the environment; unset without a default is a config error."""
    value = os.getenv(name)
    if value is not None:
        return value
    if default is None:
        raise RuntimeError(f"missing required env var {name}")
    return default


def _env_int(name: str, default: int | None = None) -> int:
    raw = _env_str(name, None if default is None else str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Config:
    # Storage
    sqlite_path: Path

    # Fetching
    http_timeout_seconds: int
    fetch_concurrency: int
    user_agent: str

    # Metrics
    metrics_textfile: str

    # Logging
    log_level: str
    log_file: str


def load_config() -> Config:
    return Config(
        sqlite_path=Path(_env_str("SQLITE_PATH", "data/feeder.db")),
        http_timeout_seconds=_env_int("HTTP_TIMEOUT_SECONDS", 30),
        fetch_concurrency=max(1, _env_int("FETCH_CONCURRENCY", 4)),
        user_agent=_env_str("USER_AGENT", "feeder/0.1 (+rss reader)"),
        metrics_textfile=_env_str("METRICS_TEXTFILE", ""),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        log_file=_env_str("LOG_FILE", ""),
    )
