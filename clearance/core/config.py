from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Clearance Portal"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./clearance.db"

    # Office registry (YAML). Built-in university offices are used when unset.
    office_registry_path: Optional[str] = None

    # Offices whose officers get read-only oversight across all offices
    oversight_office_ids: str = "student_affairs"

    @property
    def oversight_office_ids_list(self) -> list[str]:
        return [o.strip() for o in self.oversight_office_ids.split(",") if o.strip()]

    # Notifications
    notification_webhook_url: Optional[str] = None
    webhook_timeout: int = 10
    portal_base_url: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    file_logging: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
