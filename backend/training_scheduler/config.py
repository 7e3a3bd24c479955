import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="SCHEDULER_DATABASE_URL")
    database_pool_size: int = Field(10, alias="SCHEDULER_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="SCHEDULER_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="SCHEDULER_DATABASE_ECHO")
    database_telemetry: bool = Field(False, alias="SCHEDULER_DATABASE_TELEMETRY")
    persistence_mode: Literal["database", "memory"] = Field(
        "database",
        alias="SCHEDULER_PERSISTENCE_MODE",
    )
    cycle_policy: Literal["permissive", "strict"] = Field(
        "permissive",
        alias="SCHEDULER_CYCLE_POLICY",
    )

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid scheduler configuration: {exc}") from exc
