"""Chain, intermediary and venue information contracts."""

from typing import Optional

from pydantic import BaseModel, Field


class IntermediaryInfo(BaseModel):
    """A catalog token used as a routing stepping stone."""

    symbol: str
    address: str
    decimals: int
    category: str = Field(..., description="native, stable or bluechip")
    bridgeable: bool = False


class VenueInfo(BaseModel):
    """A registered exchange venue."""

    venue_id: str
    name: str
    router_address: str


class ChainInfo(BaseModel):
    """Information about a supported chain."""

    chain_id: int
    name: str
    symbol: str = Field(..., description="Native asset symbol")
    wrapped_native: str
    explorer_url: Optional[str] = None
    intermediaries: list[IntermediaryInfo] = Field(default_factory=list)
    venues: list[VenueInfo] = Field(default_factory=list)


class ChainListResponse(BaseModel):
    """Response containing supported chains."""

    success: bool = True
    chains: list[ChainInfo] = Field(default_factory=list)
    total: int = 0
    catalog_version: str = ""
    registry_version: str = ""
