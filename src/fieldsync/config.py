from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./fieldsync.db"
    tenant_id: str = ""  # active tenant; empty means signed out and sync is a no-op
    max_retries: int = 3
    success_display_seconds: float = 3.0
    pending_refresh_seconds: int = 10
    remote_mode: str = "mock"  # "mock" or "http"
    remote_base_url: str = ""
    remote_api_token: str = ""
    remote_timeout_seconds: float = 30.0
    mock_item_delay_ms: int = 300
    start_online: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "FIELDSYNC_"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
