"""
Configuration management for the Probo/Polymarket Arbitrage Bot.
Uses Pydantic for validation and type safety.

Every section is frozen once loaded. Command line overrides are applied
by building a new BotConfig rather than mutating an existing one.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.errors import ConfigurationError


_SETTINGS = SettingsConfigDict(
    env_file=".env",
    extra="ignore",
    frozen=True,
    populate_by_name=True,
)


class PolymarketConfig(BaseSettings):
    """Polymarket CLOB and Polygon configuration (venue A)."""

    token_id: str = Field(
        "35192935476060157102953995417579331568794667667550449899073688437267716869794",
        alias="POLYMARKET_TOKEN_ID",
    )

    # Credentials are only required for live trading
    private_key: str = Field("", alias="PRIVATE_KEY")
    api_key: str = Field("", alias="POLYMARKET_API_KEY")
    api_secret: str = Field("", alias="POLYMARKET_API_SECRET")
    api_passphrase: str = Field("", alias="POLYMARKET_PASS_PHRASE")

    clob_api_url: str = Field("https://clob.polymarket.com", alias="CLOB_API_URL")
    rpc_url: str = Field("https://polygon-rpc.com", alias="RPC_URL")
    chain_id: int = Field(137, alias="CHAIN_ID")

    model_config = _SETTINGS


class ProboConfig(BaseSettings):
    """Probo API configuration (venue B)."""

    event_id: int = Field(4031200, alias="PROBO_EVENT_ID")
    auth_token: str = Field("", alias="PROBO_AUTH_TOKEN")
    api_url: str = Field("https://prod.api.probo.in", alias="PROBO_API_URL")

    model_config = _SETTINGS


class ArbitrageConfig(BaseSettings):
    """Opportunity evaluation parameters."""

    # Probo contracts pay 10 INR, Polymarket shares pay 1 USD
    dollar_price_inr: float = Field(85.0, alias="DOLLAR_PRICE_INR", gt=0)
    min_profit_percent: float = Field(5.0, alias="EXPECTED_ARB_PERCENT_MIN")

    model_config = _SETTINGS


class ExecutionConfig(BaseSettings):
    """Order execution and polling configuration."""

    max_retries: int = Field(3, alias="MAX_RETRIES", ge=0)
    retry_delay_ms: int = Field(1000, alias="RETRY_DELAY_MS", ge=0)
    request_throttle_ms: int = Field(500, alias="REQUEST_THROTTLE_MS", ge=0)
    poll_interval_ms: int = Field(5000, alias="POLL_INTERVAL_MS", ge=0)
    max_jitter_ms: int = Field(1000, alias="MAX_JITTER_MS", ge=0)
    fetch_timeout_seconds: float = Field(15.0, alias="FETCH_TIMEOUT_SECONDS", gt=0)
    status_interval_cycles: int = Field(60, alias="STATUS_INTERVAL_CYCLES", ge=1)

    model_config = _SETTINGS


class MonitoringConfig(BaseSettings):
    """Logging configuration."""

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = _SETTINGS

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError("Log level must be one of debug, info, warn, error")
        return level


class DatabaseConfig(BaseSettings):
    """History database configuration."""

    database_path: Path = Field(Path("./data/arb_history.db"), alias="DB_PATH")

    model_config = _SETTINGS


class DevelopmentConfig(BaseSettings):
    """Development and testing configuration."""

    dry_run: bool = Field(False, alias="DRY_RUN")
    debug_mode: bool = Field(False, alias="DEBUG_MODE")

    model_config = _SETTINGS


def _load(section: type, values: Optional[Dict[str, Any]]) -> BaseSettings:
    # Overrides are keyed by field name; pass them by alias so they win over the environment
    kwargs = {}
    for name, value in (values or {}).items():
        field = section.model_fields.get(name)
        kwargs[field.alias if field is not None and field.alias else name] = value
    return section(**kwargs)


class BotConfig:
    """
    Master configuration class that aggregates all config sections.

    Sections can be overridden by passing a dict of field values per
    section, e.g. ``BotConfig(development={"dry_run": True})``.
    """

    def __init__(self, **overrides: Dict[str, Any]):
        self.polymarket = _load(PolymarketConfig, overrides.get("polymarket"))
        self.probo = _load(ProboConfig, overrides.get("probo"))
        self.arbitrage = _load(ArbitrageConfig, overrides.get("arbitrage"))
        self.execution = _load(ExecutionConfig, overrides.get("execution"))
        self.monitoring = _load(MonitoringConfig, overrides.get("monitoring"))
        self.database = _load(DatabaseConfig, overrides.get("database"))
        self.development = _load(DevelopmentConfig, overrides.get("development"))

    @property
    def is_dry_run(self) -> bool:
        return self.development.dry_run

    def missing_credentials(self) -> List[str]:
        """Names of the credentials live trading needs but that are unset."""
        missing = []
        if not self.polymarket.private_key:
            missing.append("PRIVATE_KEY")
        if not self.polymarket.api_key:
            missing.append("POLYMARKET_API_KEY")
        if not self.polymarket.api_secret:
            missing.append("POLYMARKET_API_SECRET")
        if not self.polymarket.api_passphrase:
            missing.append("POLYMARKET_PASS_PHRASE")
        if not self.probo.auth_token:
            missing.append("PROBO_AUTH_TOKEN")
        return missing

    def validate_for_trading(self) -> None:
        """Raise ConfigurationError if live trading credentials are missing."""
        if self.is_dry_run:
            return
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing required credentials for live trading: {', '.join(missing)}"
            )


# Global config instance
_config: Optional[BotConfig] = None


def get_config() -> BotConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BotConfig()
    return _config


def reload_config(**overrides: Dict[str, Any]) -> BotConfig:
    """Force reload configuration from environment, applying overrides."""
    global _config
    _config = BotConfig(**overrides)
    return _config
