"""Health check endpoints."""

from fastapi import APIRouter

from routeguard import __version__
from routeguard.config import Settings, get_settings
from routeguard.factory import get_registries

router = APIRouter()


def routing_readiness(settings: Settings) -> dict:
    """Which routing chains can verify on-chain and which sources are enabled.

    A chain without an RPC URL can still be listed but no route on it can be
    verified or simulated, so the service reports itself degraded.
    """
    catalog, registry = get_registries()
    chains = {}
    for chain_id in catalog.chain_ids:
        config = catalog.chain(chain_id)
        chains[str(chain_id)] = {
            "name": config.name if config else None,
            "rpc_configured": bool(settings.get_rpc_url(chain_id)),
            "venues": [venue.venue_id for venue in registry.venues(chain_id)],
            "intermediaries": len(catalog.for_chain(chain_id)),
        }
    return {
        "chains": chains,
        "sources": {
            "route_finder": True,
            "oneinch": bool(settings.oneinch_api_key),
            "thorchain": bool(settings.thorchain_api_url),
            "lifi": bool(settings.lifi_api_url),
        },
        "catalog_version": catalog.version,
        "registry_version": registry.version,
    }


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "routeguard"}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with routing readiness and configuration info."""
    settings = get_settings()
    routing = routing_readiness(settings)
    ready = all(chain["rpc_configured"] for chain in routing["chains"].values())
    return {
        "status": "healthy" if ready else "degraded",
        "service": "routeguard",
        "version": __version__,
        "routing": routing,
        "config": settings.get_safe_dict(),
    }
