"""Chain information service.

Exposes the injected intermediary catalog and exchange registry so clients
can see which chains, intermediaries and venues routing will consider.
"""

from typing import Optional

from routeguard.chains import ExchangeRegistry, IntermediaryCatalog
from routeguard.web.contracts.chains import (
    ChainInfo,
    ChainListResponse,
    IntermediaryInfo,
    VenueInfo,
)


class ChainService:
    """Read-only view over the routing registries."""

    def __init__(
        self,
        catalog: Optional[IntermediaryCatalog] = None,
        registry: Optional[ExchangeRegistry] = None,
    ):
        self.catalog = catalog or IntermediaryCatalog()
        self.registry = registry or ExchangeRegistry()

    def get_chain(self, chain_id: int) -> Optional[ChainInfo]:
        config = self.catalog.chain(chain_id)
        if config is None:
            return None
        return ChainInfo(
            chain_id=config.chain_id,
            name=config.name,
            symbol=config.symbol,
            wrapped_native=config.wrapped_native.lower(),
            explorer_url=config.explorer_url or None,
            intermediaries=[
                IntermediaryInfo(
                    symbol=entry.symbol,
                    address=entry.address.lower(),
                    decimals=entry.decimals,
                    category=entry.category,
                    bridgeable=entry.bridgeable,
                )
                for entry in self.catalog.for_chain(chain_id)
            ],
            venues=[
                VenueInfo(venue_id=v.venue_id, name=v.name, router_address=v.router_address)
                for v in self.registry.venues(chain_id)
            ],
        )

    def get_supported_chains(self) -> ChainListResponse:
        chains = [
            info
            for info in (self.get_chain(chain_id) for chain_id in self.catalog.chain_ids)
            if info is not None
        ]
        return ChainListResponse(
            chains=chains,
            total=len(chains),
            catalog_version=self.catalog.version,
            registry_version=self.registry.version,
        )
