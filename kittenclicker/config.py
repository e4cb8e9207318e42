"""Ports, paths, stream cadence."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


@dataclass
class ServerConfig:
    server_version: str = "0.1.0"

    # Network
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_all: bool = True
    cors_allowed_origins: list[str] = field(default_factory=list)

    # Persistence
    data_dir: str = os.path.join(_REPO_ROOT, "data")
    data_file: str = "user_data.json"

    # Static pages
    public_dir: str = os.path.join(_REPO_ROOT, "public")

    # Stream
    stream_interval_sec: float = 5.0

    log_level: str = "INFO"

    @property
    def data_path(self) -> str:
        return os.path.join(self.data_dir, self.data_file)

    @staticmethod
    def _parse_bool(v: str | None, default: bool) -> bool:
        if v is None:
            return default
        return v.strip().lower() in ("1", "true", "yes", "on")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        cfg = cls()
        cfg.host = os.environ.get("HOST", cfg.host)
        try:
            cfg.port = int(os.environ.get("PORT", str(cfg.port)))
        except ValueError:
            pass
        cfg.cors_allow_all = cls._parse_bool(os.environ.get("CLICKER_CORS_ALLOW_ALL"), cfg.cors_allow_all)
        origins = os.environ.get("CLICKER_CORS_ORIGINS")
        if origins:
            cfg.cors_allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]

        cfg.data_dir = os.environ.get("CLICKER_DATA_DIR", cfg.data_dir)
        cfg.data_file = os.environ.get("CLICKER_DATA_FILE", cfg.data_file)
        cfg.public_dir = os.environ.get("CLICKER_PUBLIC_DIR", cfg.public_dir)

        if os.environ.get("CLICKER_STREAM_INTERVAL"):
            try:
                interval = float(os.environ["CLICKER_STREAM_INTERVAL"])
                if interval > 0:
                    cfg.stream_interval_sec = interval
            except ValueError:
                pass

        cfg.log_level = os.environ.get("CLICKER_LOG_LEVEL", cfg.log_level).upper()
        return cfg
