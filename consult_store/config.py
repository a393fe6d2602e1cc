"""Store configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class StoreSettings:
    """Resolved configuration for the console stores."""

    page_size: int = 10
    idempotent_statistics: bool = False
    log_level: str = "INFO"
    json_logs: bool = True


def _get_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:  # pragma: no cover - clearly surface misconfiguration
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"Environment variable {name} must be a boolean; got {raw!r}")


@lru_cache(maxsize=1)
def get_store_settings() -> StoreSettings:
    """Return the active settings derived from the environment."""

    page_size = _get_int_env("CONSULT_STORE_PAGE_SIZE")
    if page_size is not None and page_size < 1:
        raise ValueError("CONSULT_STORE_PAGE_SIZE must be at least 1")
    return StoreSettings(
        page_size=page_size or StoreSettings.page_size,
        idempotent_statistics=_get_bool_env("CONSULT_STORE_IDEMPOTENT_STATS", False),
        log_level=(os.getenv("CONSULT_STORE_LOG_LEVEL") or "INFO").upper(),
        json_logs=_get_bool_env("CONSULT_STORE_JSON_LOGS", True),
    )


__all__ = ["StoreSettings", "get_store_settings"]
