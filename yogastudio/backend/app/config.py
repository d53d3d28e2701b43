from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="yoga", alias="POSTGRES_DB")
    postgres_user: str = Field(default="yoga", alias="POSTGRES_USER")
    postgres_password: str = Field(default="yoga", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    payment_provider: str = Field(default="stub", alias="PAYMENT_PROVIDER")
    payment_currency: str = Field(default="EUR", alias="PAYMENT_CURRENCY")
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str = Field(default="whsec_dev", alias="STRIPE_WEBHOOK_SECRET")
    webhook_tolerance_sec: int = Field(default=300, alias="WEBHOOK_TOLERANCE_SEC")
    public_base_url: str = Field(default="http://localhost:3000", alias="PUBLIC_BASE_URL")
    checkout_session_ttl_min: int = Field(default=30, alias="CHECKOUT_SESSION_TTL_MIN")

    default_admin_email: str = Field(default="admin@studio-elan.fr", alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")
    seed_demo_data: bool = Field(default=False, alias="SEED_DEMO_DATA")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
