from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")

    app_name: str = Field(default="Retail POS", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    database_url: str = Field(default="sqlite:///./retail_pos.db", alias="DATABASE_URL")
    currency: str = Field(default="IDR", alias="CURRENCY")
    money_places: int = Field(default=2, alias="MONEY_PLACES")
    tax_type: Literal["exclusive", "inclusive"] = Field(default="exclusive", alias="TAX_TYPE")
    register_allow_negative: bool = Field(default=True, alias="REGISTER_ALLOW_NEGATIVE")
    expiring_soon_days: int = Field(default=30, alias="EXPIRING_SOON_DAYS")
    points_divisor: int = Field(default=100, alias="POINTS_DIVISOR")
    idempotency_ttl: int = Field(default=3600, alias="IDEMPOTENCY_TTL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


settings = Settings()
