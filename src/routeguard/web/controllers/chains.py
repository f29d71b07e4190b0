"""Chain and registry information API endpoints."""

from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from routeguard.factory import get_registries
from routeguard.web.contracts.chains import ChainInfo, ChainListResponse
from routeguard.web.services.chain_service import ChainService

router = APIRouter(prefix="/chains", tags=["chains"])


@lru_cache
def get_chain_service() -> ChainService:
    """Chain service over the same registries the engine routes with."""
    catalog, registry = get_registries()
    return ChainService(catalog, registry)


@router.get("/", response_model=ChainListResponse)
async def get_chains(service: ChainService = Depends(get_chain_service)) -> ChainListResponse:
    """Get supported chains with their intermediaries and venues."""
    return service.get_supported_chains()


@router.get("/{chain_id}", response_model=ChainInfo)
async def get_chain(chain_id: int, service: ChainService = Depends(get_chain_service)) -> ChainInfo:
    """Get routing registries for one chain.

    Args:
        chain_id: EVM chain id

    Returns:
        Chain metadata with intermediaries and venues
    """
    chain = service.get_chain(chain_id)
    if not chain:
        raise HTTPException(status_code=404, detail=f"Chain not found: {chain_id}")
    return chain
