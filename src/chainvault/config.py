"""Application configuration using pydantic-settings."""

from functools import lru_cache
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainvault.chains import DEFAULT_EVM_CHAIN_ID, DEFAULT_EVM_NETWORK_NAMES
from chainvault.crypto import DEFAULT_ITERATIONS, MIN_ITERATIONS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Storage
    # ======================
    store_backend: str = Field(default="memory", description="Wallet store: memory or sql")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/chainvault.db",
        description="Database connection URL (sql store only)",
    )

    # ======================
    # Encryption
    # ======================
    kdf_iterations: int = Field(
        default=DEFAULT_ITERATIONS,
        ge=MIN_ITERATIONS,
        description="PBKDF2 iterations for newly encrypted keys",
    )

    # ======================
    # Exchange provider
    # ======================
    exchange_provider: str = Field(default="dryrun", description="Exchange: dryrun or changenow")
    changenow_api_key: str = Field(default="", description="ChangeNOW API key")
    changenow_api_url: str = Field(
        default="https://api.changenow.io/v2", description="ChangeNOW API base URL"
    )
    gateway_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for each exchange call"
    )

    # ======================
    # Reconciliation
    # ======================
    reconcile_interval: int = Field(
        default=60, ge=1, description="Seconds between swap reconciliation passes"
    )

    # ======================
    # EVM chains
    # ======================
    default_evm_chain_id: int = Field(
        default=DEFAULT_EVM_CHAIN_ID, description="Chain id for new Ethereum wallets"
    )
    evm_network_names: dict[int, str] = Field(
        default_factory=lambda: dict(DEFAULT_EVM_NETWORK_NAMES),
        description="EVM chain id to exchange network name",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Get settings dict with sensitive values masked."""
        data = self.model_dump()
        if data.get("changenow_api_key"):
            data["changenow_api_key"] = "***"
        data["database_url"] = _mask_url_password(self.database_url)
        return data


def _mask_url_password(url: str) -> str:
    parts = urlsplit(url)
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
