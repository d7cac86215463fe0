"""
Settlement Workflow Models

Steps, per-step state and the explicit context threaded through a settlement
workflow.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..errors import SettlementError
from ..settlement.delivery import DeliveryReceipt
from ..settlement.operations import FundingMode, Role, SettlementOperation
from ..signing.base import SignatureResult
from ..typed_data import TypedDataEnvelope


class WorkflowStep(str, Enum):
    """Steps of a settlement workflow."""

    QUOTE = "quote"
    TRADE = "trade"
    GET_TRADES = "getTrades"
    PRESIGN = "presign"
    SIGN = "sign"
    REGISTER = "register"
    DELIVER = "deliver"
    COMPLETE = "complete"


class FlowType(str, Enum):
    """Takers create quotes and trades; makers pick up existing trades."""

    TAKER = "taker"
    MAKER = "maker"


FLOW_STEPS: Dict[FlowType, List[WorkflowStep]] = {
    FlowType.TAKER: [
        WorkflowStep.QUOTE,
        WorkflowStep.TRADE,
        WorkflowStep.PRESIGN,
        WorkflowStep.SIGN,
        WorkflowStep.REGISTER,
        WorkflowStep.DELIVER,
        WorkflowStep.COMPLETE,
    ],
    FlowType.MAKER: [
        WorkflowStep.GET_TRADES,
        WorkflowStep.PRESIGN,
        WorkflowStep.SIGN,
        WorkflowStep.REGISTER,
        WorkflowStep.DELIVER,
        WorkflowStep.COMPLETE,
    ],
}


@dataclass
class StepState:
    """The `{response, loading, error}` triple kept for every step."""

    response: Optional[Any] = None
    loading: bool = False
    error: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        if self.loading:
            return "loading"
        if self.error is not None:
            return "error"
        if self.response is not None:
            return "done"
        return "idle"

    def start(self) -> None:
        self.response = None
        self.error = None
        self.loading = True
        self.updated_at = datetime.now(timezone.utc)

    def succeed(self, response: Any) -> None:
        self.response = response
        self.error = None
        self.loading = False
        self.updated_at = datetime.now(timezone.utc)

    def fail(self, error: Exception) -> None:
        if isinstance(error, SettlementError):
            self.error = error.to_dict()
        else:
            self.error = {"error": type(error).__name__, "message": str(error)}
        self.loading = False
        self.updated_at = datetime.now(timezone.utc)

    def clear(self) -> None:
        self.response = None
        self.error = None
        self.loading = False
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "response": self.response,
            "loading": self.loading,
            "error": self.error,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class WorkflowContext:
    """
    Everything one settlement workflow knows.

    Signers and delivery backends are never stored here; they are passed to
    the controller per call.
    """

    id: str = field(default_factory=lambda: str(uuid4()))
    flow_type: FlowType = FlowType.TAKER
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    steps: Dict[WorkflowStep, StepState] = field(default_factory=dict)
    current_step: Optional[WorkflowStep] = None

    # Threaded identifiers
    quote_id: Optional[str] = None
    trade_id: Optional[str] = None
    contract_trade_id: Optional[str] = None
    role: Optional[Role] = None
    recipient_address: Optional[str] = None

    # Signed artifacts
    envelope: Optional[TypedDataEnvelope] = None
    signature: Optional[SignatureResult] = None
    registration: Optional[Dict[str, Any]] = None

    # Delivery
    operation: Optional[SettlementOperation] = None
    funding_mode: Optional[FundingMode] = None
    permit_envelope: Optional[TypedDataEnvelope] = None
    permit_signature: Optional[SignatureResult] = None
    delivery: Optional[DeliveryReceipt] = None

    def __post_init__(self) -> None:
        for step in self.flow_steps:
            self.steps.setdefault(step, StepState())
        if self.current_step is None:
            self.current_step = self.flow_steps[0]

    @property
    def flow_steps(self) -> List[WorkflowStep]:
        return FLOW_STEPS[self.flow_type]

    @property
    def is_complete(self) -> bool:
        return self.current_step is WorkflowStep.COMPLETE

    def step(self, step: WorkflowStep) -> StepState:
        return self.steps[step]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "flowType": self.flow_type.value,
            "createdAt": self.created_at.isoformat(),
            "currentStep": self.current_step.value if self.current_step else None,
            "steps": {step.value: state.to_dict() for step, state in self.steps.items()},
            "quoteId": self.quote_id,
            "tradeId": self.trade_id,
            "contractTradeId": self.contract_trade_id,
            "role": self.role.value if self.role else None,
            "recipientAddress": self.recipient_address,
            "typedData": self.envelope.to_dict() if self.envelope else None,
            "signature": self.signature.to_dict() if self.signature else None,
            "registration": self.registration,
            "operation": self.operation.value if self.operation else None,
            "fundingMode": self.funding_mode.value if self.funding_mode else None,
            "permit": self.permit_envelope.to_dict() if self.permit_envelope else None,
            "permitSignature": self.permit_signature.to_dict() if self.permit_signature else None,
            "delivery": self.delivery.to_dict() if self.delivery else None,
        }
