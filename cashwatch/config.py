"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Application
    APP_ENV: str = "development"
    API_V1_PREFIX: str = "/api"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Forecast model
    FORECAST_WEEKS: int = 13
    DEFAULT_CASH_POSITION: float = 0.0
    MARKET_FACTOR: float = 1.0
    RELIABILITY_BLEND_WEIGHT: float = 0.5
    DEFAULT_PAYMENT_PROBABILITY: float = 50.0
    PAYMENT_WINDOW_BONUS: float = 20.0
    PAYMENT_WINDOW_DAYS_BEFORE: int = 3
    PAYMENT_WINDOW_DAYS_AFTER: int = 7
    OVERDUE_PENALTY_PER_DAY: float = 2.0
    OVERDUE_PENALTY_CAP: float = 40.0
    TIME_DECAY_RATE: float = 0.95
    MAX_RUNWAY_DAYS: int = 365

    # Data loading
    FETCH_TIMEOUT_SECONDS: float = 10.0

    # Alert defaults (used when a user has no settings row yet)
    DEFAULT_MINIMUM_CASH_BUFFER: float = 25000.0
    DEFAULT_WARNING_THRESHOLD_DAYS: int = 30
    DEFAULT_CRITICAL_THRESHOLD_DAYS: int = 14

    # Monitoring scheduler
    ENABLE_MONITOR_SCHEDULER: bool = False
    MONITOR_INTERVAL_HOURS: int = 24

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]  # Allow all origins in development
        return [self.FRONTEND_URL, "http://localhost:3000"]

    def forecast_parameters(self):
        """Build the immutable parameter set consumed by the forecast engine."""
        from cashwatch.forecast.types import ForecastParameters

        return ForecastParameters(
            weeks=self.FORECAST_WEEKS,
            market_factor=self.MARKET_FACTOR,
            reliability_weight=self.RELIABILITY_BLEND_WEIGHT,
            default_probability=self.DEFAULT_PAYMENT_PROBABILITY,
            payment_window_bonus=self.PAYMENT_WINDOW_BONUS,
            payment_window_days_before=self.PAYMENT_WINDOW_DAYS_BEFORE,
            payment_window_days_after=self.PAYMENT_WINDOW_DAYS_AFTER,
            overdue_penalty_per_day=self.OVERDUE_PENALTY_PER_DAY,
            overdue_penalty_cap=self.OVERDUE_PENALTY_CAP,
            time_decay_rate=self.TIME_DECAY_RATE,
            max_runway_days=self.MAX_RUNWAY_DAYS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()
