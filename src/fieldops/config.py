"""
Runtime configuration.

Values come from the environment, optionally seeded from a ``.env`` file in
the working directory or the data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "FIELDOPS_"


@dataclass
class Settings:
    """Settings for the field operations client."""

    api_url: str = "http://localhost:8000"
    api_token: str = ""
    data_dir: Path = Path("~/.fieldops")
    log_level: str = "INFO"

    request_timeout: float = 30.0
    sync_interval_seconds: int = 300

    # Recovery
    reinit_grace_delay: float = 0.5

    # Seat updates: 1 attempt means no automatic retry
    seat_retry_attempts: int = 1
    seat_retry_base_delay: float = 0.5

    @property
    def session_path(self) -> Path:
        return self.data_dir.expanduser() / "session.json"

    @property
    def preferences_path(self) -> Path:
        return self.data_dir.expanduser() / "preferences.json"

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> Settings:
        """Build settings from ``FIELDOPS_*`` environment variables."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        defaults = cls()

        def get(name: str, default: str) -> str:
            return os.environ.get(f"{ENV_PREFIX}{name}", default)

        return cls(
            api_url=get("API_URL", defaults.api_url).rstrip("/"),
            api_token=get("API_TOKEN", defaults.api_token),
            data_dir=Path(get("DATA_DIR", str(defaults.data_dir))).expanduser(),
            log_level=get("LOG_LEVEL", defaults.log_level).upper(),
            request_timeout=float(get("REQUEST_TIMEOUT", str(defaults.request_timeout))),
            sync_interval_seconds=int(get("SYNC_INTERVAL", str(defaults.sync_interval_seconds))),
            reinit_grace_delay=float(get("REINIT_GRACE_DELAY", str(defaults.reinit_grace_delay))),
            seat_retry_attempts=max(1, int(get("SEAT_RETRY_ATTEMPTS", str(defaults.seat_retry_attempts)))),
            seat_retry_base_delay=float(get("SEAT_RETRY_BASE_DELAY", str(defaults.seat_retry_base_delay))),
        )
