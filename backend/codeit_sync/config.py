import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="CODEIT_DATABASE_URL")
    database_pool_size: int = Field(10, alias="CODEIT_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="CODEIT_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="CODEIT_DATABASE_ECHO")

    verification_ttl_minutes: int = Field(15, alias="CODEIT_VERIFICATION_TTL_MINUTES", ge=1)
    verification_code_length: int = Field(8, alias="CODEIT_VERIFICATION_CODE_LENGTH", ge=8, le=32)
    verification_code_prefix: str = Field("", alias="CODEIT_VERIFICATION_CODE_PREFIX")

    sync_timeout_seconds: float = Field(12.0, alias="CODEIT_SYNC_TIMEOUT_SECONDS", gt=0, le=15)
    sweep_interval_hours: float = Field(6.0, alias="CODEIT_SWEEP_INTERVAL_HOURS", gt=0)
    sweep_concurrency: int = Field(20, alias="CODEIT_SWEEP_CONCURRENCY", ge=1)
    sweep_enabled: bool = Field(False, alias="CODEIT_SWEEP_ENABLED")
    demo_mode_enabled: bool = Field(False, alias="CODEIT_DEMO_MODE")

    http_user_agent: str = Field("CodeIt-Sync/0.1 (+https://codeit.dev)", alias="CODEIT_HTTP_USER_AGENT")
    leetcode_graphql_url: str = Field("https://leetcode.com/graphql", alias="CODEIT_LEETCODE_GRAPHQL_URL")
    codeforces_api_url: str = Field("https://codeforces.com/api", alias="CODEIT_CODEFORCES_API_URL")
    codechef_base_url: str = Field("https://www.codechef.com", alias="CODEIT_CODECHEF_BASE_URL")
    github_api_url: str = Field("https://api.github.com", alias="CODEIT_GITHUB_API_URL")
    github_token: Optional[str] = Field(None, alias="GITHUB_TOKEN")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid sync engine configuration: {exc}") from exc
