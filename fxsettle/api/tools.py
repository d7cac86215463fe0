from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..config import settings
from ..core.errors import SettlementError
from ..core.settlement import get_maker_net_balances, resolve
from ..core.typed_data import TypedDataEnvelope, extract_envelope, prune_envelope, unused_types
from ..providers import RpcProvider, StableFXProvider
from .errors import to_http_exception
from .workflows import get_stablefx

router = APIRouter()


class ResolveRequest(BaseModel):
    role: str = Field(..., description="taker or maker")
    fundingMode: str = Field("gross", description="gross or net")
    tradeIds: List[Union[int, str]] = Field(..., description="Contract trade ids to fund")


class PruneRequest(BaseModel):
    typedData: Dict[str, Any] = Field(..., description="EIP-712 envelope {domain, types, primaryType, message}")


class NetBalancesRequest(BaseModel):
    tradeIds: List[Union[int, str]] = Field(..., description="Contract trade ids to net")
    contractAddress: Optional[str] = Field(None, description="Escrow contract (default: configured escrow)")


def get_rpc() -> RpcProvider:
    return RpcProvider()


@router.post("/operations/resolve")
async def resolve_operation(request: ResolveRequest) -> Dict[str, Any]:
    """Funding decision table lookup"""
    try:
        operation = resolve(request.role, request.fundingMode, request.tradeIds)
    except SettlementError as exc:
        raise to_http_exception(exc)

    spec = operation.spec
    return {
        "success": True,
        "operation": operation.value,
        "functionSignature": spec.function_signature,
        "selector": spec.selector,
        "abiTypes": list(spec.abi_types),
        "batch": spec.batch,
    }


@router.post("/typed-data/prune")
async def prune_typed_data(request: PruneRequest) -> Dict[str, Any]:
    try:
        envelope = TypedDataEnvelope.from_dict(extract_envelope(request.typedData))
        pruned = prune_envelope(envelope)
    except SettlementError as exc:
        raise to_http_exception(exc)

    return {
        "success": True,
        "typedData": pruned.to_dict(),
        "removedTypes": unused_types(envelope.types, envelope.primary_type),
    }


@router.post("/operations/maker-net-balances")
async def maker_net_balances(
    request: NetBalancesRequest,
    rpc: RpcProvider = Depends(get_rpc),
) -> Dict[str, Any]:
    """What a maker owes or receives per token if these trades are net settled"""
    contract_address = request.contractAddress or settings.escrow_contract_address
    try:
        balances = await get_maker_net_balances(rpc, contract_address, request.tradeIds)
    except SettlementError as exc:
        raise to_http_exception(exc)

    return {
        "success": True,
        "contractAddress": contract_address,
        "tradeIds": [str(t) for t in request.tradeIds],
        "balances": [balance.to_dict() for balance in balances],
    }


@router.get("/trades/{trade_id}")
async def get_trade(
    trade_id: str,
    role: str = Query("taker", description="taker or maker"),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    """Look up a single trade, including its on-chain contractTradeId"""
    try:
        trade = await stablefx.get_trade(trade_id, role)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SettlementError as exc:
        raise to_http_exception(exc)
    return {"success": True, "trade": trade}
