"""Load config from RELAY_CONFIG_PATH or return default.

``load_config()`` is memoised with ``functools.lru_cache`` so the file is read
and parsed at most once per process.  Call ``load_config.cache_clear()`` to
force a re-read (useful in tests and when ``RELAY_CONFIG_PATH`` changes at
runtime).
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .schema import RelayConfig, DEFAULT_CONFIG


class _Env(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RELAY_", extra="ignore")
    config_path: Optional[str] = None


_env: Optional[_Env] = None


def _get_env() -> _Env:
    global _env
    if _env is None:
        _env = _Env()
    return _env


@functools.lru_cache(maxsize=1)
def load_config() -> RelayConfig:
    """Load config from RELAY_CONFIG_PATH if set and the file exists; else return DEFAULT_CONFIG.

    Result is cached for the lifetime of the process.  Call
    ``load_config.cache_clear()`` to force a reload.
    """
    path = _get_env().config_path
    if not path or not path.strip():
        return DEFAULT_CONFIG
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        return DEFAULT_CONFIG
    raw = p.read_text(encoding="utf-8")
    data = json.loads(raw)
    # Single-provider shorthand: {"provider": {...}} instead of {"providers": {"local": {...}}}
    if "provider" in data and "providers" not in data:
        data["providers"] = {"local": data.pop("provider")}
    return RelayConfig.model_validate(data)
