from fastapi import APIRouter
from typing import Dict, Any

from ..providers.custodial_wallet import CustodialWalletProvider
from ..providers.rpc import RpcProvider
from ..providers.stablefx import get_stablefx_provider

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    providers = {
        "stablefx": get_stablefx_provider(),
        "custodial_wallet": CustodialWalletProvider(),
        "rpc": RpcProvider(),
    }

    provider_status = {}
    for name, provider in providers.items():
        provider_status[name] = await provider.health_check()

    # Unconfigured providers are not failures; the service runs with any subset
    failing = [
        name for name, status in provider_status.items()
        if status["status"] == "error"
    ]

    return {
        "status": "degraded" if failing else "healthy",
        "providers": provider_status,
        "failing_providers": failing,
    }
