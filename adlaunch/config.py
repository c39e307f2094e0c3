"""ADLAUNCH — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Meta API ──
    meta_api_version: str = "v24.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_account_prefix: str = "act_"

    # ── Database ──
    database_url: str = ""

    # ── Retry (internal API calls only) ──
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 10000

    # ── App ──
    log_level: str = "INFO"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/adlaunch.db"
        return "sqlite:///./adlaunch.db"

    @property
    def meta_graph_url(self) -> str:
        return f"{self.meta_base_url.rstrip('/')}/{self.meta_api_version}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
