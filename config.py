from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class FaultPolicy(str, Enum):
    abort = "abort"
    skip = "skip"


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Transaction Ledger"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: str = "WARNING"
    log_format: str = "json"  # json or text

    # Fault policies
    missing_amount_policy: FaultPolicy = FaultPolicy.abort
    malformed_record_policy: FaultPolicy = FaultPolicy.abort

    # Business logic settings
    record_locked_amounts: bool = True
    verify_dispute_client: bool = False
    enforce_dispute_states: bool = False

    # Output
    amount_precision: int = 4

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
