"""Admin client configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_API_URL = "https://nadelauncher-backend-a99d397c.apps.deploypilot.stefankunde.dev"


class AdminSettings(BaseSettings):
    api_url: str = DEFAULT_API_URL
    config_dir: Path = Path.home() / ".nadepro"
    poll_interval_seconds: float = 5.0
    history_page_size: int = 20
    request_timeout_seconds: float = 30.0
    # Share one in-flight refresh between concurrent 401s.
    single_flight_refresh: bool = True
    # Also try GET /admin/sessions/{id} when a watched session drops out of
    # the active and running lists.
    watch_by_id_fallback: bool = False
    login_callback_port: int = 3000
    log_level: str = "WARNING"

    model_config = {"env_prefix": "NADEPRO_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")

    @property
    def credentials_file(self) -> Path:
        return self.config_dir / "credentials.json"


settings = AdminSettings()
