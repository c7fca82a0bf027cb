from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def redact_detail(detail: str, max_chars: int = 240) -> str:
    detail = detail.strip()
    if len(detail) > max_chars:
        detail = detail[:max_chars] + "…"
    return detail
