import json
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    database_url: str = Field(default="sqlite:///./carbon_footprint.db", alias="DATABASE_URL")

    # --- Climatiq ---
    climatiq_api_key: Optional[str] = Field(default=None, alias="CLIMATIQ_API_KEY")
    climatiq_api_url: str = Field(
        default="https://api.climatiq.io/data/v1/estimate", alias="CLIMATIQ_API_URL"
    )
    climatiq_factor_field: str = Field(default="activity_id", alias="CLIMATIQ_FACTOR_FIELD")
    climatiq_region: Optional[str] = Field(default="GB", alias="CLIMATIQ_REGION")
    climatiq_electricity_region: Optional[str] = Field(default=None, alias="CLIMATIQ_ELECTRICITY_REGION")
    climatiq_data_version: Optional[str] = Field(default=None, alias="CLIMATIQ_DATA_VERSION")
    climatiq_timeout: float = Field(default=10.0, alias="CLIMATIQ_TIMEOUT")
    climatiq_commute_factors: Dict[str, Optional[str]] = Field(
        default_factory=dict, alias="CLIMATIQ_COMMUTE_FACTORS"
    )
    climatiq_electricity_factor: Optional[str] = Field(
        default=None, alias="CLIMATIQ_ELECTRICITY_FACTOR"
    )

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator(
        "climatiq_region", "climatiq_electricity_region", "climatiq_data_version", "climatiq_api_key", mode="before"
    )
    @classmethod
    def _blank_to_none(cls, value):
        # An empty variable switches the option off (e.g. CLIMATIQ_REGION= for the legacy API)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("climatiq_commute_factors", mode="before")
    @classmethod
    def _parse_factor_map(cls, value):
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls):
        keys = [
            "DATABASE_URL",
            "CLIMATIQ_API_KEY",
            "CLIMATIQ_API_URL",
            "CLIMATIQ_FACTOR_FIELD",
            "CLIMATIQ_REGION",
            "CLIMATIQ_ELECTRICITY_REGION",
            "CLIMATIQ_DATA_VERSION",
            "CLIMATIQ_TIMEOUT",
            "CLIMATIQ_COMMUTE_FACTORS",
            "CLIMATIQ_ELECTRICITY_FACTOR",
            "CORS_ORIGINS",
            "LOG_LEVEL",
        ]
        # Only pass what is set so the field defaults apply otherwise
        data = {key: os.environ[key] for key in keys if key in os.environ}
        return cls.model_validate(data)


settings = Settings.from_env()
