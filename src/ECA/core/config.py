# src/ECA/core/config.py
from __future__ import annotations

import os

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- App ----
    APP_NAME: str = "ECA Back Office API"
    APP_VERSION: str = "0.1.0"

    # ---- DB ----
    # read DATABASE_URL, else ASYNC_DATABASE_URL, else a local sqlite file
    DATABASE_URL: str = (
            os.getenv("DATABASE_URL")
            or os.getenv("ASYNC_DATABASE_URL")
            or "sqlite+aiosqlite:///./eca.db"
    )
    DB_ECHO: bool = False
    TESTING: bool = False

    # ---- Logging ----
    ECA_LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("ECA_LOG_LEVEL", "LOG_LEVEL"))
    ECA_LOG_JSON: bool = False

    # ---- Pagination ----
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # ---- Overdue windows (days) ----
    LATE_THRESHOLD_DAYS: int = 30
    RETARD_THRESHOLD_DAYS: int = 90

    # ---- Reference vocabulary (operator data, looked up by name) ----
    ORDER_COMPLETED_STATUS_NAME: str = "Commande terminée"
    BILL_ISSUED_STATE_NAME: str = "Émise"
    BILL_PAID_STATE_NAME: str = "Payée"

    # ---- Authorization ----
    # Raw env value (CSV); parsed into `staff_roles` by the validator below.
    STAFF_ROLES: str = "admin,staff"
    staff_roles: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("STAFF_ROLES_PARSED_DO_NOT_USE"),
    )

    # ---- Pydantic settings config ----
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def _compute_roles(self) -> "Settings":
        self.staff_roles = frozenset(
            r.strip().lower() for r in self.STAFF_ROLES.split(",") if r.strip()
        )
        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            self.DEFAULT_PAGE_SIZE = self.MAX_PAGE_SIZE
        return self


settings = Settings()
__all__ = ["settings", "Settings"]
