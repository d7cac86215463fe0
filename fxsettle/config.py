from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Fall back to the escrow address when no separate verifying contract is configured."""

        super().model_post_init(__context)

        if not self.escrow_verifying_contract:
            object.__setattr__(self, "escrow_verifying_contract", self.escrow_contract_address)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Chain
    chain_id: int = Field(default=11155111, description="EVM chain id used in every EIP-712 domain")
    rpc_url: str = Field(
        default="https://ethereum-sepolia-rpc.publicnode.com",
        description="JSON-RPC endpoint for direct on-chain delivery",
    )

    # Escrow contract
    escrow_contract_address: str = Field(
        default="0x1f91886c7028986ad885ffcee0e40b75c9cd5ac1",
        description="FxEscrow contract address (delivery target and Permit2 spender)",
    )
    escrow_verifying_contract: str = Field(
        default="",
        description="verifyingContract of the FxEscrow EIP-712 domain (defaults to the escrow address)",
    )
    escrow_domain_name: str = Field(default="FxEscrow", description="FxEscrow EIP-712 domain name")
    escrow_domain_version: str = Field(default="1", description="FxEscrow EIP-712 domain version")
    permit2_address: str = Field(
        default="0x000000000022D473030F116dDEE9F6B43aC78BA3",
        description="Canonical Permit2 contract address",
    )

    # Trade service
    stablefx_base_url: str = Field(
        default="https://api-sandbox.circle.com/v1/exchange/stablefx",
        description="Base URL of the quote/trade/presign/signature service",
    )
    stablefx_api_key: str = Field(
        default="",
        description="API key for the trade service",
        validation_alias=AliasChoices("stablefx_api_key", "STABLEFX_API_KEY", "API_KEY"),
    )

    # Custodial wallets
    wallet_api_base_url: str = Field(
        default="https://api-staging.circle.com",
        description="Base URL of the custodial wallet service",
    )
    wallet_api_key: str = Field(default="", description="Custodial wallet service API key")
    entity_secret: str = Field(default="", description="Hex entity secret for custodial wallet calls")
    contract_execution_fee_level: str = Field(
        default="MEDIUM",
        description="Fee level requested for custodial contract executions",
    )

    # Signing retries
    signing_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for signing calls that fail with a transient backend error",
    )
    signing_retry_initial_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Initial backoff delay between signing attempts",
    )

    # Transport
    request_timeout_seconds: Optional[float] = Field(
        default=None,
        description="HTTP timeout override; unset keeps the transport default",
    )

    @property
    def has_stablefx_key(self) -> bool:
        return bool(self.stablefx_api_key)

    @property
    def has_wallet_credentials(self) -> bool:
        return bool(self.wallet_api_key and self.entity_secret)


# Global settings instance
settings = Settings()
