"""Configuration management for the GlowUp backend."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Supabase Configuration
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    kv_table: str = "kv_store_40db5d3a"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    route_prefix: str = ""
    cors_allow_origins: List[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # Falls back automatically when Supabase credentials are missing
    use_in_memory_backends: bool = False

    # Points awards
    points_write_mode: Literal["optimistic", "last_write_wins"] = "optimistic"
    max_update_retries: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
