from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from release_sync.periods.generators import Granularity, normalize_anchor_month
from release_sync.releases.config import ReleaseSyncConfig


class Settings(BaseSettings):
    productboard_api_token: str = Field(default="", validation_alias="PRODUCTBOARD_API_TOKEN")
    productboard_base_url: str = Field(
        default="https://api.productboard.com/v2",
        validation_alias="PRODUCTBOARD_BASE_URL",
    )
    webhook_auth: str = Field(
        default="",
        validation_alias="PB_WEBHOOK_AUTH",
        description="Shared secret Productboard sends in the Authorization header",
    )
    release_group_weekly_id: str = Field(default="", validation_alias="RELEASE_GROUP_WEEKLY_ID")
    release_group_monthly_id: str = Field(default="", validation_alias="RELEASE_GROUP_MONTHLY_ID")
    release_group_quarterly_id: str = Field(default="", validation_alias="RELEASE_GROUP_QUARTERLY_ID")
    release_group_yearly_id: str = Field(default="", validation_alias="RELEASE_GROUP_YEARLY_ID")
    quarter_start_month: int = Field(
        default=1,
        validation_alias="QUARTER_START_MONTH",
        description="First month (1-12) of the fiscal year quarters are aligned to",
    )
    seed_horizon_years: int = Field(default=1, validation_alias="SEED_HORIZON_YEARS")
    yearly_seed_horizon_years: int = Field(default=5, validation_alias="YEARLY_SEED_HORIZON_YEARS")
    http_timeout_seconds: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit one JSON object per log line (production)",
    )
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="Also write logs to this file, rotated at 10 MB and kept 7 days",
    )
    pb_debug: bool = Field(default=False, validation_alias="PB_DEBUG")
    port: int = Field(default=8080, validation_alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("quarter_start_month", mode="before")
    @classmethod
    def validate_quarter_start_month(cls, value: object) -> int:
        """Clamp to 1..12; anything unparsable means January."""
        month = normalize_anchor_month(value)  # type: ignore[arg-type]
        if str(value).strip() != str(month):
            logger.warning(f"QUARTER_START_MONTH '{value}' is not a month number 1-12. Using {month}.")
        return month

    @field_validator("productboard_api_token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        if not value:
            logger.warning(
                "PRODUCTBOARD_API_TOKEN is not set. Calls to the Productboard API will be rejected. "
                "Set it in .env file or environment variables."
            )
        return value

    @field_validator("webhook_auth")
    @classmethod
    def validate_webhook_auth(cls, value: str) -> str:
        if not value:
            logger.warning("PB_WEBHOOK_AUTH is not set. All webhook and admin requests will be rejected.")
        return value

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.pb_debug else self.log_level

    def release_group_ids(self) -> dict[Granularity, str]:
        return {
            Granularity.WEEKLY: self.release_group_weekly_id,
            Granularity.MONTHLY: self.release_group_monthly_id,
            Granularity.QUARTERLY: self.release_group_quarterly_id,
            Granularity.YEARLY: self.release_group_yearly_id,
        }

    def release_config(self) -> ReleaseSyncConfig:
        """Build the explicit configuration passed to the seeder and reconciler."""
        config = ReleaseSyncConfig(
            group_ids={granularity: group_id for granularity, group_id in self.release_group_ids().items() if group_id},
            quarter_anchor_month=self.quarter_start_month,
            horizon_years=self.seed_horizon_years,
            yearly_horizon_years=self.yearly_seed_horizon_years,
        )
        missing = config.missing_groups()
        if missing:
            logger.warning(
                f"Missing release group IDs: {', '.join(str(g) for g in missing)} - these groups will be skipped"
            )
        return config


settings = Settings()
