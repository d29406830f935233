## app/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

AUTH_TYPE_OAUTH2 = "oauth2"
AUTH_TYPE_HMAC = "hmac"


class Settings(BaseSettings):
    """
    Settings for the application
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    app_name: str = "Mekari eSign Bridge"
    environment: str = "development"
    allowed_cors_urls: str = "*"
    app_base_url: str = "http://localhost:8080"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_username: Optional[str] = None
    redis_password: Optional[str] = None
    redis_db: int = 0

    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_user: str = "esign"
    db_password: str = ""
    db_database: str = "esign"
    db_port: int = 3306

    # Signing provider integration
    mekari_auth_type: str = AUTH_TYPE_OAUTH2
    mekari_base_url: str = "https://sandbox-api.mekari.com/v2/esign/v1"
    mekari_sso_base_url: str = "https://sandbox-account.mekari.com"
    mekari_auth_url: str = "https://sandbox-account.mekari.com"
    mekari_timeout: int = 30
    mekari_oauth2_client_id: str = ""
    mekari_oauth2_client_secret: str = ""
    mekari_hmac_client_id: str = ""
    mekari_hmac_client_secret: str = ""

    refresh_token_age_days: int = 22

    # Local document queue
    document_base_path: str = "./documents"
    document_ready_folder: str = "ready"
    document_progress_folder: str = "progress"
    document_finish_folder: str = "finish"
    document_file_extension: str = ".pdf"

    # NAV (ERP) integration
    nav_enabled: bool = False
    nav_base_url: str = ""
    nav_company: str = ""
    nav_username: str = ""
    nav_password: str = ""
    nav_timeout: int = 30

    @property
    def is_hmac(self) -> bool:
        """
        True when provider calls are signed with HMAC instead of OAuth2
        """
        return (self.mekari_auth_type or "").lower() == AUTH_TYPE_HMAC

    @property
    def is_oauth2(self) -> bool:
        """
        True when provider calls use per-user OAuth2 tokens
        """
        return not self.is_hmac

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def db_url(self) -> str:
        """
        Sync database URL
        """
        if self.database_url:
            return self.database_url
        return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_database}"

    @property
    def redis_url(self) -> str:
        """
        Redis connection URL
        """
        if self.redis_username and self.redis_password:
            return f"redis://{self.redis_username}:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        elif self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}"

    @property
    def celery_broker(self) -> str:
        """
        Celery broker URL
        """
        return f"{self.redis_url}/1"

    @property
    def celery_backend(self) -> str:
        """
        Celery backend URL
        """
        return f"{self.redis_url}/2"

    @property
    def webhook_callback_url(self) -> str:
        return f"{self.app_base_url.rstrip('/')}/webhook/mekari"


settings = Settings()
