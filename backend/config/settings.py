"""
Application Settings and Configuration Management

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ml.inference.config import PredictorConfig, RoundingPolicy, SatisfactionScale
from ml.inference.predictor import PREDICTOR_NAMES


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Heat Logger API"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False)

    # API Configuration
    api_prefix: str = "/api/v1"
    backend_port: int = Field(default=8000, validation_alias="BACKEND_PORT")

    # CORS
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:8000",
        ],
        validation_alias="CORS_ORIGINS"
    )

    # Database - PostgreSQL (in-memory store when unset)
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    data_file: Optional[str] = Field(default=None, validation_alias="DATA_FILE")

    # Redis
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")
    redis_password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")
    global_pool_cache_ttl: int = Field(default=60, ge=0, validation_alias="GLOBAL_POOL_CACHE_TTL")

    # Predictor selection
    predictor_version: str = Field(default="kernel", validation_alias="PREDICTOR_VERSION")
    predictor_split_share: float = Field(default=0.5, ge=0.0, le=1.0, validation_alias="PREDICTOR_SPLIT_SHARE")
    user_history_limit: int = Field(default=400, gt=0, validation_alias="USER_HISTORY_LIMIT")
    global_history_limit: int = Field(default=1200, gt=0, validation_alias="GLOBAL_HISTORY_LIMIT")

    # Satisfaction scale
    satisfaction_min: float = Field(default=1.0, validation_alias="SATISFACTION_MIN")
    satisfaction_max: float = Field(default=100.0, validation_alias="SATISFACTION_MAX")
    satisfaction_perfect: float = Field(default=50.0, validation_alias="SATISFACTION_PERFECT")

    # Engine overrides (engine defaults when unset)
    rounding_policy: RoundingPolicy = Field(default=RoundingPolicy.RISK_AVERSE, validation_alias="ROUNDING_POLICY")
    sigma_duration: Optional[float] = Field(default=None, gt=0, validation_alias="SIGMA_DURATION")
    sigma_temperature: Optional[float] = Field(default=None, gt=0, validation_alias="SIGMA_TEMPERATURE")
    recency_half_life_days: Optional[float] = Field(default=None, gt=0, validation_alias="RECENCY_HALF_LIFE_DAYS")
    user_boost: Optional[float] = Field(default=None, ge=0, validation_alias="USER_BOOST")
    anchor_boost: Optional[float] = Field(default=None, ge=0, validation_alias="ANCHOR_BOOST")
    step_cap_fraction: Optional[float] = Field(default=None, gt=0, lt=1, validation_alias="STEP_CAP_FRACTION")
    min_heating_minutes: Optional[float] = Field(default=None, gt=0, validation_alias="MIN_HEATING_MINUTES")
    max_heating_minutes: Optional[float] = Field(default=None, gt=0, validation_alias="MAX_HEATING_MINUTES")
    min_shower_minutes: Optional[float] = Field(default=None, gt=0, validation_alias="MIN_SHOWER_MINUTES")
    max_shower_minutes: Optional[float] = Field(default=None, gt=0, validation_alias="MAX_SHOWER_MINUTES")
    min_ambient_temperature: Optional[float] = Field(default=None, validation_alias="MIN_AMBIENT_TEMPERATURE")
    max_ambient_temperature: Optional[float] = Field(default=None, validation_alias="MAX_AMBIENT_TEMPERATURE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid"""
        allowed = ["development", "staging", "production", "test"]
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("predictor_version")
    @classmethod
    def validate_predictor_version(cls, v: str) -> str:
        """Ensure the predictor strategy exists"""
        v = v.strip().lower()
        if v not in PREDICTOR_NAMES:
            raise ValueError(f"predictor_version must be one of {list(PREDICTOR_NAMES)}")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @model_validator(mode="after")
    def validate_satisfaction_scale(self) -> "Settings":
        """Perfect score must sit inside the scale"""
        if self.satisfaction_min >= self.satisfaction_max:
            raise ValueError("satisfaction_min must be below satisfaction_max")
        if not self.satisfaction_min <= self.satisfaction_perfect <= self.satisfaction_max:
            raise ValueError("satisfaction_perfect must lie within [satisfaction_min, satisfaction_max]")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.environment == "development"

    @property
    def satisfaction_scale(self) -> SatisfactionScale:
        return SatisfactionScale(
            minimum=self.satisfaction_min,
            maximum=self.satisfaction_max,
            perfect=self.satisfaction_perfect,
        )

    def predictor_overrides(self) -> Dict[str, Any]:
        """Engine fields set through the environment"""
        return {
            "sigma_duration": self.sigma_duration,
            "sigma_temperature": self.sigma_temperature,
            "recency_half_life_days": self.recency_half_life_days,
            "user_boost": self.user_boost,
            "anchor_boost": self.anchor_boost,
            "step_cap_fraction": self.step_cap_fraction,
            "min_minutes": self.min_heating_minutes,
            "max_minutes": self.max_heating_minutes,
            "min_duration": self.min_shower_minutes,
            "max_duration": self.max_shower_minutes,
            "min_temperature": self.min_ambient_temperature,
            "max_temperature": self.max_ambient_temperature,
        }

    def predictor_config(self) -> PredictorConfig:
        """Build the engine configuration from these settings."""
        return PredictorConfig(
            scale=self.satisfaction_scale,
            rounding_policy=self.rounding_policy,
        ).with_overrides(**self.predictor_overrides())


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance (FastAPI dependency-injection compatible)."""
    return settings
