"""Environment-driven settings for the client, backend and tool server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ValidationError


DEFAULT_API_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT = 10.0
DEFAULT_PORT = 3000


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got '{raw}'") from None
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got '{raw}'")
    return value


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got '{raw}'") from None


@dataclass(slots=True)
class ReaderSettings:
    """Runtime settings, normally read from ``LANG_READER_*`` variables."""

    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    storage_root: Path = Path(".")
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ReaderSettings":
        """Build settings from the process environment (or a given mapping)."""
        env = os.environ if env is None else env
        log_file = env.get("LANG_READER_LOG_FILE")
        return cls(
            api_url=env.get("LANG_READER_API_URL") or DEFAULT_API_URL,
            timeout=_env_float(env, "LANG_READER_TIMEOUT", DEFAULT_TIMEOUT),
            storage_root=Path(env.get("LANG_READER_STORAGE_ROOT") or ".").expanduser().resolve(),
            log_level=(env.get("LANG_READER_LOG_LEVEL") or "INFO").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
            port=_env_int(env, "PORT", DEFAULT_PORT),
        )
