"""
Configuration management for MerchantDesk
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "MerchantDesk"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_workers: int = 4

    # Frontend origin(s), comma-separated. Used for CORS and OAuth redirects.
    client_url: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite:///./merchantdesk.db"

    # Authentication
    session_duration_hours: int = 168  # 7 days
    initial_admin_email: str = ""
    initial_admin_password: str = ""
    initial_admin_name: str = "Admin"

    # Google OAuth (user sign-in)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_callback_url: str = "http://localhost:5000/api/auth/google/callback"

    # Google Merchant Center (service account)
    google_service_account_path: str = "./credentials/service_account_key.json"
    # Fallback merchant IDs for account discovery, e.g. "123,456" or "123:456"
    merchant_ids: str = ""
    merchant_page_size: int = 250
    merchant_page_delay_seconds: float = 0.03
    product_cache_ttl_seconds: int = 600  # 10 minutes

    # LLM Configuration
    llm_provider: str = "openai"  # openai | anthropic
    enable_llm_optimization: bool = True
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 1000

    # Background jobs
    enable_scheduler: bool = True
    session_cleanup_interval_minutes: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def allowed_origins(self) -> List[str]:
        origins = [o.strip() for o in self.client_url.split(",")]
        return [o for o in origins if o] or ["http://localhost:5173"]

    @property
    def primary_client_url(self) -> str:
        return self.allowed_origins[0].rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
