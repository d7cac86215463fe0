"""
Settlement operations and the FxEscrow functions they bind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from eth_utils import keccak


class Role(str, Enum):
    TAKER = "taker"
    MAKER = "maker"


class FundingMode(str, Enum):
    GROSS = "gross"
    NET = "net"


class Cardinality(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class SettlementOperation(str, Enum):
    """The five escrow funding calls."""

    TAKER_DELIVER = "takerDeliver"
    TAKER_BATCH_DELIVER = "takerBatchDeliver"
    MAKER_DELIVER = "makerDeliver"
    MAKER_BATCH_DELIVER = "makerBatchDeliver"
    MAKER_NET_DELIVER = "makerNetDeliver"

    @property
    def spec(self) -> "OperationSpec":
        return OPERATION_SPECS[self]

    @property
    def function_signature(self) -> str:
        return self.spec.function_signature

    @property
    def role(self) -> Role:
        return self.spec.role

    @property
    def batch(self) -> bool:
        """True when the call takes `uint256[]` trade ids and a batch permit."""
        return self.spec.batch


# Permit2 struct layouts as the contract ABI sees them; spender and witness are
# not part of the calldata.
PERMIT_TUPLE = "((address,uint256),uint256,uint256)"
PERMIT_BATCH_TUPLE = "((address,uint256)[],uint256,uint256)"


@dataclass(frozen=True)
class OperationSpec:
    function_name: str
    abi_types: Tuple[str, ...]
    role: Optional[Role] = None
    batch: bool = False
    output_types: Tuple[str, ...] = ()

    @property
    def function_signature(self) -> str:
        return f"{self.function_name}({','.join(self.abi_types)})"

    @property
    def selector(self) -> str:
        return selector_from_signature(self.function_signature)


OPERATION_SPECS: Dict[SettlementOperation, OperationSpec] = {
    SettlementOperation.TAKER_DELIVER: OperationSpec(
        "takerDeliver", ("uint256", PERMIT_TUPLE, "bytes"), Role.TAKER, False
    ),
    SettlementOperation.TAKER_BATCH_DELIVER: OperationSpec(
        "takerBatchDeliver", ("uint256[]", PERMIT_BATCH_TUPLE, "bytes"), Role.TAKER, True
    ),
    SettlementOperation.MAKER_DELIVER: OperationSpec(
        "makerDeliver", ("uint256", PERMIT_TUPLE, "bytes"), Role.MAKER, False
    ),
    SettlementOperation.MAKER_BATCH_DELIVER: OperationSpec(
        "makerBatchDeliver", ("uint256[]", PERMIT_BATCH_TUPLE, "bytes"), Role.MAKER, True
    ),
    SettlementOperation.MAKER_NET_DELIVER: OperationSpec(
        "makerNetDeliver", ("uint256[]", PERMIT_BATCH_TUPLE, "bytes"), Role.MAKER, True
    ),
}

TAKER_DETAILS_TUPLE = "((bytes32,address,address,uint256,uint256,uint256),address,uint256,uint256,uint256)"
MAKER_DETAILS_TUPLE = "(uint256,uint256,uint256)"

RECORD_TRADE = OperationSpec(
    "recordTrade",
    ("address", TAKER_DETAILS_TUPLE, "bytes", "address", MAKER_DETAILS_TUPLE, "bytes"),
)
BREACH = OperationSpec("breach", ("uint256",))

# Read-only: per-token amounts a maker owes (negative) or receives (positive)
# when the given trades are net settled.
MAKER_NET_BALANCES = OperationSpec(
    "getMakerNetBalances", ("uint256[]",), Role.MAKER, True, output_types=("address[]", "int256[]")
)


def selector_from_signature(signature: str) -> str:
    selector = keccak(text=signature)[:4].hex()
    return f"0x{selector}"
