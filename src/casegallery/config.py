"""Application configuration defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from casegallery.index.scanner import DEFAULT_MAX_WORKERS

LOGGER = logging.getLogger(__name__)


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass(slots=True)
class AppConfig:
    md_root: Path = Path("docs")
    host: str = "127.0.0.1"
    port: int = 3003
    scan_interval_ms: int = 300_000
    rate_limit_window_ms: int = 60_000
    max_requests_per_window: int = 100
    cache_max_age: int = 3600
    allowed_origins: str = "*"
    frame_allowed_origins: str = ""
    admin_token: str = ""
    scan_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            md_root=Path(env.get("MD_ROOT") or defaults.md_root),
            host=env.get("HOST") or defaults.host,
            port=_env_int(env, "PORT", defaults.port),
            scan_interval_ms=_env_int(env, "SCAN_INTERVAL", defaults.scan_interval_ms),
            rate_limit_window_ms=_env_int(env, "RATE_LIMIT_WINDOW", defaults.rate_limit_window_ms),
            max_requests_per_window=_env_int(env, "MAX_REQUESTS", defaults.max_requests_per_window),
            cache_max_age=_env_int(env, "CACHE_MAX_AGE", defaults.cache_max_age),
            allowed_origins=env.get("ALLOWED_ORIGINS", defaults.allowed_origins),
            frame_allowed_origins=env.get("FRAME_ALLOWED_ORIGINS", "").strip(),
            admin_token=env.get("ADMIN_TOKEN", ""),
            scan_workers=_env_int(env, "SCAN_WORKERS", defaults.scan_workers),
        )

    @property
    def scan_interval(self) -> float:
        """Background scan period in seconds."""
        return self.scan_interval_ms / 1000

    def origin_list(self) -> list[str]:
        raw = (self.allowed_origins or "").strip()
        if raw == "*":
            return ["*"]
        return raw.split()

    def resolve_md_root(self, base_dir: Path | None = None) -> Path:
        if Path(self.md_root).is_absolute() or base_dir is None:
            return Path(self.md_root)
        return base_dir / self.md_root
