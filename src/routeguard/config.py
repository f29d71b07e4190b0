"""Application configuration using pydantic-settings.

Every tunable of the routing engine (timeouts, cache TTLs, slippage policy,
simulation retry behaviour) lives here so deployments and tests can override
it through the environment instead of editing module constants.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    bsc_rpc_url: str = Field(default="https://bsc-dataseed.binance.org", description="BSC RPC URL")
    matic_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    arbitrum_rpc_url: str = Field(
        default="https://arb1.arbitrum.io/rpc", description="Arbitrum One RPC URL"
    )
    avax_rpc_url: str = Field(
        default="https://api.avax.network/ext/bc/C/rpc", description="Avalanche RPC URL"
    )
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")

    # ======================
    # Upstream Providers
    # ======================
    dexscreener_api_url: str = Field(
        default="https://api.dexscreener.com", description="DexScreener pair data API"
    )
    oneinch_api_key: str = Field(default="", description="1inch API key (adapter disabled if empty)")
    thorchain_api_url: str = Field(
        default="https://thornode.ninerealms.com", description="THORChain API URL"
    )
    lifi_api_url: str = Field(default="https://li.quest/v1", description="LI.FI API URL")
    lifi_quote_address: str = Field(
        default="0x0000000000000000000000000000000000000001",
        description="fromAddress used for LI.FI quotes when no sender is known",
    )

    # ======================
    # Timeouts (seconds)
    # ======================
    read_timeout_seconds: float = Field(default=4.0, description="Per-call budget for reads")
    bridge_timeout_seconds: float = Field(default=10.0, description="Per-call budget for bridge quotes")
    request_deadline_seconds: float = Field(default=12.0, description="Budget for one resolution")

    # ======================
    # Liquidity / Routing
    # ======================
    liquidity_cache_ttl_seconds: int = Field(default=300, description="Pair data cache TTL")
    liquidity_cache_max_entries: int = Field(
        default=10_000, ge=1, description="Tokens kept in the pair data cache"
    )
    min_liquidity_usd: Decimal = Field(
        default=Decimal("1000"), description="Edges below this liquidity are not usable"
    )
    route_ttl_seconds: int = Field(default=60, description="Validity period of a produced route")
    routing_worker_limit: int = Field(
        default=6, ge=1, description="Concurrent on-chain verifications per request"
    )
    default_max_hops: int = Field(default=3, ge=1, le=3, description="Maximum swap hops")
    gas_per_hop: int = Field(default=150_000, description="Gas units estimated per swap hop")
    hop_penalty_usd: Decimal = Field(
        default=Decimal("0.10"), description="Score penalty per hop (USD)"
    )

    # ======================
    # Slippage Policy
    # ======================
    slippage_tiers: str = Field(
        default="10000:1000,50000:500,100000:300,500000:150,1000000:100",
        description="Comma-separated max_liquidity_usd:slippage_bps buckets, ascending",
    )
    slippage_floor_bps: int = Field(
        default=50, description="Starting slippage above the last tier"
    )
    default_slippage_bps: int = Field(
        default=50, description="Starting slippage when liquidity is unknown"
    )
    max_auto_slippage_bps: int = Field(default=3050, description="Auto mode cap (30.5%)")
    slippage_multiplier: int = Field(default=2, ge=1, description="Escalation factor")
    max_slippage_attempts: int = Field(default=3, ge=1, description="Auto mode attempt cap")
    gas_tie_break: bool = Field(
        default=False, description="Also prefer lower gas when attempt outputs tie"
    )

    # ======================
    # Simulation
    # ======================
    transient_revert_signature: str = Field(
        default="TRANSFER_FROM_FAILED",
        description="Revert text that marks a not-yet-indexed approval",
    )
    simulation_retries: int = Field(default=3, description="Retries on transient reverts")
    simulation_backoff_seconds: float = Field(default=2.0, description="Fixed retry backoff")
    swap_deadline_minutes: int = Field(default=20, description="Router call deadline")
    fee_on_transfer_tokens: str = Field(
        default="",
        description="Comma-separated chain_id:address tokens known to tax transfers",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def liquidity_tiers(self) -> list[tuple[Decimal, int]]:
        """Parse slippage tiers into (max_liquidity_usd, slippage_bps) pairs."""
        tiers = []
        for chunk in self.slippage_tiers.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            limit, bps = chunk.split(":", 1)
            tiers.append((Decimal(limit.strip()), int(bps.strip())))
        return sorted(tiers, key=lambda t: t[0])

    @property
    def known_fee_on_transfer_tokens(self) -> list[tuple[int, str]]:
        """Parse fee_on_transfer_tokens into (chain_id, address) keys."""
        tokens = []
        for chunk in self.fee_on_transfer_tokens.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            chain_id, address = chunk.split(":", 1)
            tokens.append((int(chain_id.strip()), address.strip().lower()))
        return tokens

    def get_rpc_url(self, chain_id: int) -> str:
        """Get RPC URL for a chain id."""
        rpc_map = {
            1: self.eth_rpc_url,
            56: self.bsc_rpc_url,
            137: self.matic_rpc_url,
            42161: self.arbitrum_rpc_url,
            43114: self.avax_rpc_url,
            8453: self.base_rpc_url,
        }
        return rpc_map.get(chain_id, "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "rpc": {
                str(chain_id): self.get_rpc_url(chain_id)
                for chain_id in (1, 56, 137, 42161, 43114, 8453)
            },
            "upstream": {
                "dexscreener": self.dexscreener_api_url,
                "oneinch_api_key": "***" if self.oneinch_api_key else "(not set)",
                "thorchain": self.thorchain_api_url,
                "lifi": self.lifi_api_url,
            },
            "timeouts": {
                "read": self.read_timeout_seconds,
                "bridge": self.bridge_timeout_seconds,
                "request": self.request_deadline_seconds,
            },
            "slippage": {
                "tiers": self.slippage_tiers,
                "default_bps": self.default_slippage_bps,
                "max_bps": self.max_auto_slippage_bps,
                "attempts": self.max_slippage_attempts,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def optional_decimal(value: Optional[object]) -> Optional[Decimal]:
    """Convert an upstream numeric field into Decimal, None if missing/invalid."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError):
        return None
