"""
Configuration management for the sponsored bundle submitter.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bundler.errors import ConfigurationError


class NodeProvider(str, Enum):
    """Supported transports for chain access."""
    HTTP = "http"
    WEBSOCKET = "websocket"


class PlanType(str, Enum):
    """Available action plans."""
    TRANSFER_ERC20 = "transfer_erc20"
    UNSTAKE_AND_TRANSFER_ERC20 = "unstake_and_transfer_erc20"


class BundlerConfig(BaseSettings):
    """
    Configuration settings for the bundle submitter.

    Settings are read from unprefixed environment variables, e.g.
    PRIVATE_KEY_EXECUTOR, PRIVATE_KEY_SPONSOR, FLASHBOTS_RELAY_SIGNING_KEY,
    RECIPIENT and ETHEREUM_RPC_URL.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identities
    private_key_executor: Optional[str] = Field(
        default=None,
        description="Key of the account holding the assets; performs the actions"
    )
    private_key_sponsor: Optional[str] = Field(
        default=None,
        description="Key of the account holding ETH; pays for gas"
    )
    flashbots_relay_signing_key: Optional[str] = Field(
        default=None,
        description="Key used to sign relay requests (reputation identity)"
    )
    recipient: Optional[str] = Field(
        default=None,
        description="Address which will receive the assets"
    )

    # Chain access
    node_provider: NodeProvider = Field(
        default=NodeProvider.HTTP,
        description="Transport used for chain access"
    )
    ethereum_rpc_url: str = Field(
        default="http://localhost:8545",
        description="HTTP JSON-RPC endpoint"
    )
    ethereum_ws_url: Optional[str] = Field(
        default=None,
        description="WebSocket JSON-RPC endpoint (websocket provider only)"
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Block polling interval for the HTTP provider"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single RPC or relay request"
    )

    # Relay
    relay_url: str = Field(
        default="https://relay.flashbots.net",
        description="Private relay endpoint"
    )

    # Submission
    dry_run: bool = Field(
        default=False,
        description="Estimate, assemble and simulate only; never broadcast"
    )
    max_submission_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Stop after this many block attempts (unbounded if unset)"
    )

    # Action plan
    plan: PlanType = Field(
        default=PlanType.TRANSFER_ERC20,
        description="Action plan to submit"
    )
    token_address: Optional[str] = Field(
        default=None,
        description="ERC20 token contract"
    )
    staking_address: Optional[str] = Field(
        default=None,
        description="Staking contract holding the executor's stake"
    )
    staked_balance: Optional[int] = Field(
        default=None,
        ge=0,
        description="Amount to withdraw from the staking contract"
    )
    expected_balance: Optional[int] = Field(
        default=None,
        ge=0,
        description="Token balance expected after the withdrawal"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    def missing_identities(self) -> List[str]:
        """Names of required identity settings that are unset."""
        required = {
            "PRIVATE_KEY_EXECUTOR": self.private_key_executor,
            "PRIVATE_KEY_SPONSOR": self.private_key_sponsor,
            "FLASHBOTS_RELAY_SIGNING_KEY": self.flashbots_relay_signing_key,
            "RECIPIENT": self.recipient,
        }
        return [name for name, value in required.items() if not value]

    def require_identities(self) -> None:
        """
        Check that every identity needed for a run is configured.

        Raises:
            ConfigurationError: If any identity or the recipient is missing
        """
        missing = self.missing_identities()
        if missing:
            raise ConfigurationError(
                f"Must provide {', '.join(missing)} environment variable(s)"
            )

    @property
    def websocket_url(self) -> str:
        """Get the WebSocket endpoint, derived from the HTTP one if unset."""
        if self.ethereum_ws_url:
            return self.ethereum_ws_url
        if self.ethereum_rpc_url.startswith("https://"):
            return "wss://" + self.ethereum_rpc_url[len("https://"):]
        if self.ethereum_rpc_url.startswith("http://"):
            return "ws://" + self.ethereum_rpc_url[len("http://"):]
        return self.ethereum_rpc_url


# Global config instance
_config: Optional[BundlerConfig] = None


def get_config() -> BundlerConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BundlerConfig()
    return _config


def set_config(config: BundlerConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
