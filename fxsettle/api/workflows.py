"""
Settlement workflow routes.

Each workflow is an in-memory `WorkflowContext`; every step is triggered by
its own request, and the response always carries the full workflow state.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.errors import SettlementError
from ..core.settlement import FundingMode, build_delivery_backend
from ..core.signing import Signer, build_signer
from ..core.workflow import FlowType, WorkflowContext, WorkflowController
from ..providers.custodial_wallet import CustodialWalletProvider
from ..providers.stablefx import StableFXProvider, get_stablefx_provider
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows")


class WorkflowRegistry:
    """In-memory workflow store keyed by workflow id."""

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowContext] = {}

    def create(self, flow_type: FlowType) -> WorkflowContext:
        context = WorkflowContext(flow_type=flow_type)
        self._workflows[context.id] = context
        return context

    def get(self, workflow_id: str) -> Optional[WorkflowContext]:
        return self._workflows.get(workflow_id)

    def clear(self) -> None:
        self._workflows.clear()


_registry = WorkflowRegistry()


def get_registry() -> WorkflowRegistry:
    return _registry


def get_stablefx() -> StableFXProvider:
    return get_stablefx_provider()


def get_custodial_wallet() -> CustodialWalletProvider:
    return CustodialWalletProvider()


# ── Request models ───────────────────────────────────────────────


class CreateWorkflowRequest(BaseModel):
    flowType: FlowType = Field(..., description="taker or maker")


class TradeRequest(BaseModel):
    idempotencyKey: Optional[str] = Field(default=None, description="Defaults to a fresh UUID")


class TradesRequest(BaseModel):
    status: Optional[str] = Field(default=None, description="Trade status filter")
    pageSize: Optional[int] = Field(default=None, ge=1, description="Page size")


class PresignRequest(BaseModel):
    tradeId: Optional[str] = Field(default=None, description="Service trade id; defaults to the trade step's")
    recipientAddress: Optional[str] = Field(default=None, description="Taker recipient address")
    contractTradeId: Optional[str] = Field(default=None, description="On-chain trade id")


class SignerConfig(BaseModel):
    kind: str = Field("custodial", description="custodial or local", pattern="^(custodial|local)$")
    walletId: Optional[str] = Field(default=None, description="Custodial wallet id")
    privateKey: Optional[str] = Field(default=None, description="Local key; omitted means an ephemeral key")


class SignRequest(BaseModel):
    signer: SignerConfig


class DeliveryConfig(BaseModel):
    backend: str = Field("custodial", description="custodial, relayer or chain", pattern="^(custodial|relayer|chain)$")
    walletId: Optional[str] = Field(default=None, description="Wallet submitting custodial contract executions")
    relayerPrivateKey: Optional[str] = Field(default=None, description="Key paying gas for chain delivery")
    waitForReceipt: bool = False


class DeliverRequest(BaseModel):
    signer: SignerConfig
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    fundingMode: FundingMode = FundingMode.GROSS
    tradeIds: Optional[List[Union[int, str]]] = Field(default=None, description="Contract trade ids")
    permit: Optional[Dict[str, Any]] = Field(default=None, description="Already signed Permit2 message")
    permitSignature: Optional[str] = None


# ── Helpers ──────────────────────────────────────────────────────


def _load(registry: WorkflowRegistry, workflow_id: str) -> WorkflowContext:
    context = registry.get(workflow_id)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")
    return context


def _signer(config: SignerConfig, wallet: CustodialWalletProvider) -> Signer:
    try:
        return build_signer(
            config.kind,
            wallet_id=config.walletId,
            private_key=config.privateKey,
            wallet=wallet,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


async def _run_step(context: WorkflowContext, call) -> Dict[str, Any]:
    try:
        result = await call
    except SettlementError as exc:
        raise to_http_exception(exc)
    return {"success": True, "result": result, "workflow": context.to_dict()}


# ── Routes ───────────────────────────────────────────────────────


@router.post("")
async def create_workflow(
    request: CreateWorkflowRequest,
    registry: WorkflowRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    context = registry.create(request.flowType)
    logger.info(f"Created {context.flow_type.value} workflow {context.id}")
    return {"success": True, "workflow": context.to_dict()}


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    return {"success": True, "workflow": _load(registry, workflow_id).to_dict()}


@router.post("/{workflow_id}/quote")
async def create_quote(
    workflow_id: str,
    request: Dict[str, Any],
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    return await _run_step(context, controller.create_quote(request))


@router.post("/{workflow_id}/trade")
async def create_trade(
    workflow_id: str,
    request: TradeRequest,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    return await _run_step(context, controller.create_trade(request.model_dump(exclude_none=True)))


@router.post("/{workflow_id}/trades")
async def get_trades(
    workflow_id: str,
    request: TradesRequest,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    return await _run_step(context, controller.get_trades(status=request.status, page_size=request.pageSize))


@router.post("/{workflow_id}/presign")
async def presign(
    workflow_id: str,
    request: PresignRequest,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    response = await _run_step(
        context,
        controller.presign(
            trade_id=request.tradeId,
            recipient_address=request.recipientAddress,
            contract_trade_id=request.contractTradeId,
        ),
    )
    response["result"] = response["result"].to_dict()
    return response


@router.post("/{workflow_id}/sign")
async def sign(
    workflow_id: str,
    request: SignRequest,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
    wallet: CustodialWalletProvider = Depends(get_custodial_wallet),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    signer = _signer(request.signer, wallet)
    response = await _run_step(context, controller.sign(signer))
    response["result"] = response["result"].to_dict()
    return response


@router.post("/{workflow_id}/register")
async def register(
    workflow_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    return await _run_step(context, controller.register())


@router.post("/{workflow_id}/deliver")
async def deliver(
    workflow_id: str,
    request: DeliverRequest,
    registry: WorkflowRegistry = Depends(get_registry),
    stablefx: StableFXProvider = Depends(get_stablefx),
    wallet: CustodialWalletProvider = Depends(get_custodial_wallet),
) -> Dict[str, Any]:
    context = _load(registry, workflow_id)
    controller = WorkflowController(context, stablefx)
    signer = _signer(request.signer, wallet)
    try:
        backend = build_delivery_backend(
            request.delivery.backend,
            wallet_id=request.delivery.walletId,
            relayer_private_key=request.delivery.relayerPrivateKey,
            wallet=wallet,
            stablefx=stablefx,
            wait_for_receipt=request.delivery.waitForReceipt,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    response = await _run_step(
        context,
        controller.deliver(
            signer,
            backend,
            funding_mode=request.fundingMode,
            trade_ids=request.tradeIds,
            permit=request.permit,
            permit_signature=request.permitSignature,
        ),
    )
    response["result"] = response["result"].to_dict()
    return response
