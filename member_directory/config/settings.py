from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Auth
    community_password: Optional[str] = None  # Sign-up is disabled when unset
    email_redirect_url: Optional[str] = None  # Where the magic link lands
    session_storage_dir: str = ".member_directory"  # Durable token store + remember-me flag

    # Directory reconciliation after writes
    reload_delay_ms: int = 100
    reload_max_attempts: int = 3

    # App
    app_name: str = "member-directory"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def reload_delay_seconds(self) -> float:
        return max(self.reload_delay_ms, 0) / 1000.0

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
