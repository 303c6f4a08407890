"""
PURPOSE: Configuration settings for the strategy rule extraction service.

This module uses Pydantic Settings to manage configuration from environment
variables and .env files. All settings are validated and typed.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    PURPOSE: Central configuration class for the strategy service.

    Manages environment-based settings including the persistence database,
    the first-turn defaulting policy and the risk validator thresholds.
    Settings are loaded from environment variables and .env file.
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./strategies.db"

    # Conversation Pipeline Policy
    # Below this share of expected fields the first turn asks questions
    # instead of auto-populating defaults.
    VAGUE_INPUT_THRESHOLD: float = 0.30
    MAX_CLARIFYING_QUESTIONS: int = 3

    # Risk Validator Thresholds
    RISK_PERCENT_WARNING: float = 2.0
    RISK_PERCENT_ERROR: float = 5.0
    MIN_RISK_REWARD: float = 1.5
    MAX_CONTRACTS_WARNING: int = 100
    TRADES_UNTIL_DRAWDOWN_ERROR: int = 3
    TRADES_UNTIL_DRAWDOWN_WARNING: int = 5
    ATR_MULTIPLE_WIDE: float = 3.5
    ATR_MULTIPLE_TIGHT: float = 1.0

    # System Settings
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"
    RATE_LIMIT_ENABLED: bool = True

    def is_production(self) -> bool:
        """
        PURPOSE: Determine whether the app is running in production mode.

        Returns:
            bool: True when APP_ENV indicates production.
        """
        return self.APP_ENV.strip().lower() in {"prod", "production"}

    def is_development(self) -> bool:
        """
        PURPOSE: Determine whether the app is running in development mode.

        Returns:
            bool: True when APP_ENV indicates development or debug is on.
        """
        return self.APP_ENV.strip().lower() in {"dev", "development"} or self.DEBUG

    def cors_origin_list(self) -> list[str]:
        """Split the comma-separated CORS_ORIGINS value."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        """Pydantic model configuration."""

        env_file: str = ".env"
        env_file_encoding: str = "utf-8"
        case_sensitive: bool = True


settings: Settings = Settings()
