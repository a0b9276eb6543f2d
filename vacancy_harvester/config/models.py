"""Pydantic models describing harvester settings."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ApiConfig(BaseModel):
    """Remote job-search API endpoint and the fixed search scope."""

    base_url: str = "https://api.hh.ru"
    area: str = "113"
    professional_role: str = "96"
    per_page: int = Field(default=100, ge=1, le=100)
    timeout: float = Field(default=30.0, gt=0)
    user_agent: str = "vacancy-harvester/0.1 (ingest@example.com)"
    # Supplied through BEARER_TOKEN, never written back to disk.
    bearer_token: str = Field(default="", exclude=True, repr=False)

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return value.rstrip("/")

    def search_filters(self) -> dict[str, Any]:
        return {"area": self.area, "professional_role": self.professional_role}


class RetryPolicy(BaseModel):
    """Fixed-delay retry budget shared by detail fetches and store writes."""

    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=10.0, ge=0)
    first_page_attempts: int = Field(default=3, ge=1)


class StoreConfig(BaseModel):
    """MongoDB location and collection names."""

    mongo_uri: str = Field(default="", repr=False)
    database: str = "vacancy_db"
    collection: str = "vacancies"
    server_selection_timeout_ms: int = Field(default=5000, ge=100)


class ScheduleConfig(BaseModel):
    """Daily re-run settings used by the ``schedule`` command."""

    cron: str = "0 3 * * *"
    backfill_days: int = Field(default=30, ge=0)

    @field_validator("cron")
    @classmethod
    def _require_five_fields(cls, value: str) -> str:
        if len(value.split()) != 5:
            raise ValueError("cron expects five space separated fields")
        return value


class HarvestConfig(BaseModel):
    """Complete runtime configuration for one process."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    store: StoreConfig = Field(default_factory=StoreConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    concurrency: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _validate_concurrency(self) -> "HarvestConfig":
        if self.concurrency > 64:
            raise ValueError("concurrency above 64 will trip the API rate limits")
        return self


__all__ = ["ApiConfig", "HarvestConfig", "RetryPolicy", "ScheduleConfig", "StoreConfig"]
