"""
Settlement Workflow Controller

Drives quote -> trade -> presign -> sign -> register -> deliver for one
workflow. Steps are triggered explicitly and never retried automatically; a
retry is the caller re-entering the step. Entering a step clears every later
step, so a signature can never be delivered against a newer presign.
"""

import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

from ...logging_config import bind_workflow_context
from ...providers.stablefx import StableFXProvider
from ..errors import WorkflowStepError
from ..settlement.abi_params import assemble_delivery
from ..settlement.delivery import DeliveryBackend, DeliveryReceipt, DeliveryRequest
from ..settlement.operations import FundingMode, Role, SettlementOperation
from ..settlement.resolver import normalize_trade_ids, parse_funding_mode, resolve
from ..signing.base import SignatureResult, Signer
from ..typed_data import (
    StructureFamily,
    TypedDataEnvelope,
    envelope_family,
    extract_envelope,
    validate_envelope,
    validate_message,
)
from .models import FlowType, WorkflowContext, WorkflowStep

T = TypeVar("T")

# Context attributes produced by each step; cleared when the step is re-entered
# or invalidated.
STEP_OUTPUTS: Dict[WorkflowStep, tuple] = {
    WorkflowStep.QUOTE: ("quote_id",),
    WorkflowStep.TRADE: ("trade_id", "contract_trade_id"),
    WorkflowStep.GET_TRADES: (),
    WorkflowStep.PRESIGN: ("role", "recipient_address", "envelope"),
    WorkflowStep.SIGN: ("signature",),
    WorkflowStep.REGISTER: ("registration",),
    WorkflowStep.DELIVER: ("operation", "funding_mode", "permit_envelope", "permit_signature", "delivery"),
    WorkflowStep.COMPLETE: (),
}


def _response_id(response: Any) -> Optional[str]:
    if not isinstance(response, Mapping):
        return None
    if response.get("id") is not None:
        return str(response["id"])
    data = response.get("data")
    if isinstance(data, Mapping) and data.get("id") is not None:
        return str(data["id"])
    return None


def _contract_trade_id(response: Any) -> Optional[str]:
    """On-chain trade id, which differs from the service's trade id."""
    if not isinstance(response, Mapping):
        return None
    for source in (response, response.get("data")):
        if isinstance(source, Mapping) and source.get("contractTradeId") is not None:
            return str(source["contractTradeId"])
    return None


class WorkflowController:
    """
    Runs settlement steps against a `WorkflowContext`.

    Before a step runs:
    - every earlier step must be neither loading nor failed
    - the step's required inputs must be present in the context
    - every later step's state and outputs are cleared
    """

    def __init__(
        self,
        context: WorkflowContext,
        stablefx: StableFXProvider,
        logger: Optional[logging.Logger] = None,
    ):
        self.context = context
        self.stablefx = stablefx
        self.logger = logger or logging.getLogger(__name__)

    # ── Step plumbing ────────────────────────────────────────────

    def _check_order(self, step: WorkflowStep) -> None:
        flow = self.context.flow_steps
        if step not in flow:
            raise WorkflowStepError(step.value, f"not part of the {self.context.flow_type.value} flow")

        state = self.context.step(step)
        if state.loading:
            raise WorkflowStepError(step.value, "step is already running")

        for earlier in flow[: flow.index(step)]:
            earlier_state = self.context.step(earlier)
            if earlier_state.loading:
                raise WorkflowStepError(step.value, f"earlier step {earlier.value} is still running")
            if earlier_state.error is not None:
                raise WorkflowStepError(step.value, f"earlier step {earlier.value} failed")

    def _require(self, step: WorkflowStep, value: Any, what: str) -> Any:
        if value is None or value == "":
            raise WorkflowStepError(step.value, f"{what} is required")
        return value

    def _invalidate_from(self, step: WorkflowStep) -> None:
        flow = self.context.flow_steps
        index = flow.index(step)
        for name in STEP_OUTPUTS[step]:
            setattr(self.context, name, None)
        for later in flow[index + 1:]:
            self.context.step(later).clear()
            for name in STEP_OUTPUTS[later]:
                setattr(self.context, name, None)

    def _advance(self, step: WorkflowStep) -> None:
        flow = self.context.flow_steps
        self.context.current_step = flow[min(flow.index(step) + 1, len(flow) - 1)]
        if self.context.current_step is WorkflowStep.COMPLETE:
            self.context.step(WorkflowStep.COMPLETE).succeed({"completedAfter": step.value})

    async def _run(
        self,
        step: WorkflowStep,
        action: Callable[[], Awaitable[T]],
        to_response: Callable[[T], Any] = lambda result: result,
    ) -> T:
        state = self.context.step(step)
        bind_workflow_context(self.context.id, self.context.flow_type.value, step.value)
        self._invalidate_from(step)
        self.context.current_step = step
        state.start()
        try:
            result = await action()
        except Exception as e:
            state.fail(e)
            self.logger.warning(f"Workflow step {step.value} failed: {e}")
            raise

        state.succeed(to_response(result))
        self._advance(step)
        self.logger.info(f"Workflow step {step.value} completed")
        return result

    # ── Taker: quote and trade ───────────────────────────────────

    async def create_quote(self, request: Dict[str, Any]) -> Dict[str, Any]:
        self._check_order(WorkflowStep.QUOTE)

        async def action() -> Dict[str, Any]:
            response = await self.stablefx.create_quote(request)
            quote_id = _response_id(response)
            if not quote_id:
                raise WorkflowStepError(WorkflowStep.QUOTE.value, "quote response carried no id")
            self.context.quote_id = quote_id
            return response

        return await self._run(WorkflowStep.QUOTE, action)

    async def create_trade(self, request: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        step = WorkflowStep.TRADE
        self._check_order(step)
        quote_id = self._require(step, self.context.quote_id, "quote id from the quote step")
        payload = {"idempotencyKey": str(uuid.uuid4()), **(request or {}), "quoteId": quote_id}

        async def action() -> Dict[str, Any]:
            response = await self.stablefx.create_trade(payload)
            trade_id = _response_id(response)
            if not trade_id:
                raise WorkflowStepError(step.value, "trade response carried no id")
            self.context.trade_id = trade_id
            self.context.contract_trade_id = _contract_trade_id(response)
            return response

        return await self._run(step, action)

    # ── Maker: pick up trades ────────────────────────────────────

    async def get_trades(
        self,
        status: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Any:
        self._check_order(WorkflowStep.GET_TRADES)
        return await self._run(
            WorkflowStep.GET_TRADES,
            lambda: self.stablefx.list_trades(Role.MAKER.value, status=status, page_size=page_size),
        )

    # ── Presign, sign, register ──────────────────────────────────

    async def presign(
        self,
        trade_id: Optional[str] = None,
        recipient_address: Optional[str] = None,
        contract_trade_id: Optional[str] = None,
    ) -> TypedDataEnvelope:
        """Fetch and validate the trade-details typed data for this workflow's role.

        `contract_trade_id` is the on-chain id used at delivery; takers usually
        get it from the trade response.
        """
        step = WorkflowStep.PRESIGN
        self._check_order(step)
        role = Role.TAKER if self.context.flow_type is FlowType.TAKER else Role.MAKER
        trade_id = self._require(step, trade_id or self.context.trade_id, "trade id")
        if role is Role.TAKER:
            self._require(step, recipient_address, "recipient address")

        async def action() -> TypedDataEnvelope:
            response = await self.stablefx.get_trade_presign(
                role.value,
                str(trade_id),
                recipient_address=recipient_address if role is Role.TAKER else None,
            )
            envelope = validate_envelope(extract_envelope(response))
            expected = StructureFamily.TAKER_DETAILS if role is Role.TAKER else StructureFamily.MAKER_DETAILS
            if envelope_family(envelope) is not expected:
                raise WorkflowStepError(
                    step.value,
                    f"presign returned {envelope.primary_type}, expected {expected.value}",
                )
            self.context.trade_id = str(trade_id)
            self.context.role = role
            self.context.recipient_address = recipient_address if role is Role.TAKER else None
            self.context.envelope = envelope
            on_chain_id = contract_trade_id or _contract_trade_id(response)
            trade_state = self.context.steps.get(WorkflowStep.TRADE)
            if not on_chain_id and trade_state is not None and _response_id(trade_state.response) == str(trade_id):
                on_chain_id = _contract_trade_id(trade_state.response)
            # An on-chain id is only kept when it belongs to the trade being presigned
            self.context.contract_trade_id = str(on_chain_id) if on_chain_id else None
            return envelope

        return await self._run(step, action, lambda envelope: envelope.to_dict())

    async def sign(self, signer: Signer) -> SignatureResult:
        step = WorkflowStep.SIGN
        self._check_order(step)
        envelope = self._require(step, self.context.envelope, "typed data from the presign step")

        async def action() -> SignatureResult:
            result = await signer.sign(envelope)
            self.context.signature = result
            return result

        return await self._run(step, action, lambda result: result.to_dict())

    async def register(self) -> Dict[str, Any]:
        """Register the signature; `details` is the signed message verbatim."""
        step = WorkflowStep.REGISTER
        self._check_order(step)
        signature = self._require(step, self.context.signature, "signature from the sign step")
        envelope = self._require(step, self.context.envelope, "typed data from the presign step")
        trade_id = self._require(step, self.context.trade_id, "trade id")
        role = self._require(step, self.context.role, "role")

        async def action() -> Dict[str, Any]:
            response = await self.stablefx.register_signature(
                trade_id,
                role.value,
                signature.signer_address,
                envelope.to_dict()["message"],
                signature.signature,
            )
            self.context.registration = response
            return response

        return await self._run(step, action)

    # ── Deliver ──────────────────────────────────────────────────

    async def deliver(
        self,
        signer: Signer,
        backend: DeliveryBackend,
        funding_mode: Union[FundingMode, str] = FundingMode.GROSS,
        trade_ids: Optional[Sequence[Any]] = None,
        permit: Optional[Mapping[str, Any]] = None,
        permit_signature: Optional[str] = None,
    ) -> DeliveryReceipt:
        """Resolve the operation, obtain and sign the permit, assemble and submit.

        `permit` and `permit_signature` supply an already signed Permit2
        message; otherwise the funding presign service provides the typed data
        and `signer` signs it. Contract rejections propagate unchanged and the
        earlier steps' state is left intact.
        """
        step = WorkflowStep.DELIVER
        self._check_order(step)
        self._require(step, self.context.registration, "registration from the register step")
        role = self._require(step, self.context.role, "role")
        if (permit is None) != (permit_signature is None):
            raise WorkflowStepError(step.value, "permit and permit signature must be supplied together")

        ids: List[Any] = list(trade_ids) if trade_ids else [
            self._require(step, self.context.contract_trade_id, "contract trade id")
        ]

        async def action() -> DeliveryReceipt:
            operation = resolve(role, funding_mode, ids)
            parsed_ids = normalize_trade_ids(ids)
            mode = parse_funding_mode(funding_mode)
            self.context.operation = operation
            self.context.funding_mode = mode

            if permit is None:
                message, signature = await self._obtain_permit(operation, role, mode, parsed_ids, signer)
            else:
                family = (
                    StructureFamily.PERMIT_BATCH_TRANSFER_FROM if operation.batch
                    else StructureFamily.PERMIT_TRANSFER_FROM
                )
                message = validate_message(family, permit, witness_required="witness" in permit)
                signature = permit_signature

            call = assemble_delivery(
                operation,
                parsed_ids,
                message,
                signature,
                native_integers=backend.native_integers,
            )
            receipt = await backend.deliver(
                DeliveryRequest(
                    operation=operation,
                    role=role,
                    funding_mode=mode,
                    trade_ids=parsed_ids,
                    permit=message,
                    permit_signature=signature,
                    call=call,
                )
            )
            self.context.delivery = receipt
            return receipt

        return await self._run(step, action, lambda receipt: receipt.to_dict())

    async def _obtain_permit(
        self,
        operation: SettlementOperation,
        role: Role,
        mode: FundingMode,
        trade_ids: List[int],
        signer: Signer,
    ) -> tuple:
        response = await self.stablefx.get_funding_presign(role.value, mode.value, trade_ids)
        envelope = validate_envelope(extract_envelope(response))
        family = envelope_family(envelope)
        if not family.is_permit:
            raise WorkflowStepError(
                WorkflowStep.DELIVER.value,
                f"funding presign returned {envelope.primary_type}, expected a Permit2 structure",
            )
        if family.is_batch != operation.batch:
            raise WorkflowStepError(
                WorkflowStep.DELIVER.value,
                f"{operation.value} needs a {'batch' if operation.batch else 'single'} permit, "
                f"got {envelope.primary_type}",
            )

        result = await signer.sign(envelope)
        self.context.permit_envelope = envelope
        self.context.permit_signature = result
        return envelope.to_dict()["message"], result.signature
