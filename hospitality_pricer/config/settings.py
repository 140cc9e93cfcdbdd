import logging
from typing import List, Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hospitality_pricer.models.enums import (
    CurrencyRule,
    MergePolicy,
    PriceMode,
    StageFilter,
)


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Pipeline Behaviour
    base_currency: str = Field(
        "USD", min_length=3, max_length=3, description="Currency all prices convert into."
    )
    price_mode: PriceMode = Field(
        PriceMode.LOWEST_AVAILABLE,
        description="Export every offer or only the cheapest available one.",
    )
    currency_rule: CurrencyRule = Field(
        CurrencyRule.PORTAL,
        description="How an offer's native currency is attributed for the whole run.",
    )
    merge_policy: MergePolicy = Field(
        MergePolicy.LOWEST_PRICE_WINS,
        description="How records for one match from several portals are merged.",
    )
    stage_filter: StageFilter = Field(
        StageFilter.NONE, description="Optional restriction on tournament stage."
    )
    portals: str = Field(
        "us,ca,mx", description="Comma-separated portal codes, in visiting order."
    )

    # Portal Client Configuration
    portal_base_url: HttpUrl = Field(
        "https://fifaworldcup26.hospitality.fifa.com",
        description="Host of the hospitality sales portals.",
    )
    product_code: str = Field("26FWC", description="Product code of the tournament.")
    request_delay_seconds: float = Field(
        0.2,
        ge=0,
        description="Pause before every per-match price request (self-imposed rate limit).",
    )
    request_timeout_seconds: float = Field(60.0, gt=0)

    # Exchange Rates
    rates_url: str = Field(
        "https://api.exchangerate-api.com/v4/latest",
        description="Rate endpoint; the base currency is appended as a path segment.",
    )

    # Export
    output_dir: str = Field("data", description="Directory for JSON/CSV exports.")
    file_prefix: str = Field("fifa_data")

    # Supabase Configuration (optional sink)
    supabase_url: Optional[str] = Field(None, description="URL for the Supabase project.")
    supabase_key: Optional[str] = Field(None, description="Key for the Supabase project.")
    supabase_table: str = Field("hospitality_prices")

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("base_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def portal_codes(self) -> List[str]:
        return [code.strip().lower() for code in self.portals.split(",") if code.strip()]

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
