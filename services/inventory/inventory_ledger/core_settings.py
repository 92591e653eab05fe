from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    SERVICE_NAME: str = "inventory-ledger"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # DATABASE_URL wins over the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "inventory"
    POSTGRES_USER: str = "inventory"
    POSTGRES_PASSWORD: str = "inventory"
    RUN_MIGRATIONS: bool = False

    TENANT_HEADER: str = "X-Tenant-ID"
    ACTOR_HEADER: str = "X-User-ID"

    STRICT_ALLOCATION_COVER: bool = False
    RESERVATION_TTL_MINUTES: int = 1440
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 200

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
