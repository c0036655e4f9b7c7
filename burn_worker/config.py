from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from pathlib import Path
from typing import Any, List, Tuple

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.sweep.errors import ConfigInvalid
from .core.sweep.models import LAMPORTS_PER_SOL
from .providers.jupiter import normalize_base_url


BASE_DIR = Path(__file__).resolve().parents[1]


def sol_to_lamports(amount: Decimal) -> int:
    """Convert a SOL amount to lamports, rounding down."""
    return int((Decimal(amount) * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))


@dataclass(frozen=True)
class SweepConfig:
    """Immutable inputs for one orchestrator run."""

    rpc_url: str
    wallet_address: str
    wallet_secret: str
    target_mint: str
    threshold_lamports: int
    reserve_lamports: int
    safety_fraction: Decimal
    slippage_bps: int
    jupiter_base_url: str
    auth_token: str
    priority_fee_lamports: int = 0
    excluded_mints: Tuple[str, ...] = ()
    swap_concurrency: int = 1
    simulate_before_send: bool = True
    refresh_swap_blockhash: bool = True
    commitment: str = "confirmed"
    request_timeout_s: float = 30.0
    rpc_max_retries: int = 3
    confirm_timeout_s: float = 90.0

    def __repr__(self) -> str:
        # Key material and the auth token never appear in logs
        return (
            f"SweepConfig(wallet_address={self.wallet_address!r}, target_mint={self.target_mint!r}, "
            f"threshold_lamports={self.threshold_lamports}, reserve_lamports={self.reserve_lamports}, "
            f"safety_fraction={self.safety_fraction})"
        )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Solana RPC
    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint",
        validation_alias=AliasChoices("rpc_url", "RPC_URL", "SOLANA_RPC_URL"),
    )
    commitment: str = Field(default="confirmed", description="Commitment level for reads and confirmation")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request network timeout")
    rpc_max_retries: int = Field(default=3, ge=1, le=10, description="Retry count for RPC reads and node rebroadcast")
    confirm_timeout_seconds: float = Field(default=90.0, gt=0, description="Max seconds to wait for confirmation")

    # Treasury wallet
    burn_wallet_public_key: str = Field(default="", description="Treasury wallet address (base58)")
    burn_wallet_secret_key: str = Field(
        default="",
        description="Treasury wallet secret key: JSON array of 64 bytes or base58 string",
    )

    # Sweep policy
    target_mint: str = Field(
        default="",
        description="Mint that all surplus is converted into and burned",
        validation_alias=AliasChoices("target_mint", "TARGET_MINT", "CRYPTOCARDS_MINT"),
    )
    threshold_sol: Decimal = Field(default=Decimal("0.02"), ge=0, description="Minimum SOL balance before a run acts")
    reserve_sol: Decimal = Field(default=Decimal("0.01"), ge=0, description="SOL always left behind for fees and rent")
    safety_fraction: Decimal = Field(
        default=Decimal("0.85"),
        gt=0,
        le=1,
        description="Share of the spendable SOL committed to the swap",
    )
    slippage_bps: int = Field(default=150, ge=0, le=5000, description="Allowed slippage in basis points")
    priority_fee_lamports: int = Field(default=10_000, ge=0, description="Priority fee passed to Jupiter swap builds")
    excluded_mints: str = Field(default="", description="Comma-separated mints never swapped")
    swap_concurrency: int = Field(default=1, ge=1, le=16, description="Token swap legs run in parallel")
    simulate_before_send: bool = Field(default=True, description="Simulate each transaction before submitting")
    refresh_swap_blockhash: bool = Field(default=True, description="Replace Jupiter's blockhash with a fresh one")

    # Jupiter
    jupiter_base_url: str = Field(
        default="https://quote-api.jup.ag/v6",
        validation_alias=AliasChoices("jupiter_base_url", "JUPITER_BASE_URL", "JUPITER_API_URL"),
        description="Base URL for the Jupiter swap API; a bare host gets /v6 appended",
    )

    # Trigger auth
    burn_auth_token: str = Field(default="", description="Shared secret expected in the x-burn-auth header")

    @field_validator("jupiter_base_url")
    @classmethod
    def _versioned_jupiter_url(cls, value: str) -> str:
        return normalize_base_url(value)

    @property
    def excluded_mint_list(self) -> List[str]:
        return [item.strip() for item in self.excluded_mints.split(",") if item.strip()]

    @property
    def threshold_lamports(self) -> int:
        return sol_to_lamports(self.threshold_sol)

    @property
    def reserve_lamports(self) -> int:
        return sol_to_lamports(self.reserve_sol)

    def missing_required(self) -> List[str]:
        required = {
            "BURN_WALLET_PUBLIC_KEY": self.burn_wallet_public_key,
            "BURN_WALLET_SECRET_KEY": self.burn_wallet_secret_key,
            "TARGET_MINT": self.target_mint,
            "BURN_AUTH_TOKEN": self.burn_auth_token,
        }
        return [name for name, value in required.items() if not value]

    def to_sweep_config(self) -> SweepConfig:
        """Validate and freeze the settings for the orchestrator."""
        missing = self.missing_required()
        if missing:
            raise ConfigInvalid(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )
        if self.commitment not in ("processed", "confirmed", "finalized"):
            raise ConfigInvalid(f"Unsupported commitment level: {self.commitment}")

        return SweepConfig(
            rpc_url=self.rpc_url,
            wallet_address=self.burn_wallet_public_key.strip(),
            wallet_secret=self.burn_wallet_secret_key,
            target_mint=self.target_mint.strip(),
            threshold_lamports=self.threshold_lamports,
            reserve_lamports=self.reserve_lamports,
            safety_fraction=self.safety_fraction,
            slippage_bps=self.slippage_bps,
            jupiter_base_url=self.jupiter_base_url,
            auth_token=self.burn_auth_token,
            priority_fee_lamports=self.priority_fee_lamports,
            excluded_mints=tuple(self.excluded_mint_list),
            swap_concurrency=self.swap_concurrency,
            simulate_before_send=self.simulate_before_send,
            refresh_swap_blockhash=self.refresh_swap_blockhash,
            commitment=self.commitment,
            request_timeout_s=self.request_timeout_seconds,
            rpc_max_retries=self.rpc_max_retries,
            confirm_timeout_s=self.confirm_timeout_seconds,
        )


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, reporting validation problems as ConfigInvalid."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigInvalid(f"Invalid configuration: {exc}") from exc


# Global settings instance
settings = Settings()
