from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Store(Enum):
    sql = "sql"
    strapi = "strapi"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    log_level: str = "INFO"

    store: Store = Store.sql
    db_url: str = "sqlite+aiosqlite:///pantrychef.db"
    strapi_url: str = "http://localhost:1337"
    strapi_api_token: str | None = None

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    unsplash_access_key: str | None = None
    mealdb_url: str = "https://www.themealdb.com/api/json/v1/1"
    http_timeout: float = 20

    free_quota: int = 5
    pro_quota: int = 100
    quota_window_seconds: int = 60 * 60 * 24 * 30

    cache_capacity: int | None = None
    cache_single_flight: bool = False
