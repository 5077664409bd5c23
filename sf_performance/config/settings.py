"""
Service configuration.

Each concern has its own BaseSettings section with an environment
prefix (POSTGRES_, CLASSIFICATION_, UPLOAD_, SECURITY_); Settings nests
them. Values come from the environment or a local .env file and are
loaded once per process through get_settings().
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENTS = ("development", "staging", "production", "testing")


class DatabaseSettings(BaseSettings):
    """Order store connection; DATABASE_URL wins over the POSTGRES_* parts"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", populate_by_name=True)

    host: str = "localhost"
    port: int = 5432
    db: str = Field(default="sales_performance", alias="POSTGRES_DB")
    user: str = "sales"
    password: SecretStr = SecretStr("sales")
    echo: bool = Field(default=False, description="Log every SQL statement")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        secret = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{secret}@{self.host}:{self.port}/{self.db}"


class ClassificationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLASSIFICATION_")

    # 12 is the dashboard policy; 10 is the stricter alternate
    active_ceiling: int = Field(default=12, description="Highest order count still classified as Active")

    @field_validator("active_ceiling")
    @classmethod
    def ceiling_covers_one_order(cls, v: int) -> int:
        if v < 1:
            raise ValueError("active_ceiling must be at least 1")
        return v


class UploadSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="UPLOAD_")

    max_file_size_bytes: int = 10 * 1024 * 1024
    allowed_extensions: List[str] = [".xlsx", ".xlsm", ".csv"]


class SecuritySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    # When off, requests without viewer headers see every agent
    require_scope_headers: bool = False
    cors_origins: List[str] = ["http://localhost:3000"]


class MonitoringSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="json or text")


class Settings(BaseSettings):
    """Top-level settings; one instance per process via get_settings()."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="sf-performance-dashboard", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    version: str = "1.0.0"

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    classification: ClassificationSettings = Field(default_factory=ClassificationSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def known_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ENVIRONMENTS:
            raise ValueError(f"APP_ENV must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
