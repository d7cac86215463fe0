"""
Canonical EIP-712 type tables.

Field order mirrors the on-chain struct declarations; struct hashing is
order-sensitive, so these tables are constants and never inferred.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

TypeField = Dict[str, str]
TypeTable = Dict[str, List[TypeField]]

EIP712_DOMAIN = "EIP712Domain"


def _fields(*pairs: tuple) -> List[TypeField]:
    return [{"name": name, "type": type_} for name, type_ in pairs]


CONSIDERATION_FIELDS = _fields(
    ("quoteId", "bytes32"),
    ("base", "address"),
    ("quote", "address"),
    ("baseAmount", "uint256"),
    ("quoteAmount", "uint256"),
    ("maturity", "uint256"),
)

TAKER_DETAILS_FIELDS = _fields(
    ("consideration", "Consideration"),
    ("recipient", "address"),
    ("fee", "uint256"),
    ("nonce", "uint256"),
    ("deadline", "uint256"),
)

# No recipient: the maker leg pays into the escrow only.
MAKER_DETAILS_FIELDS = _fields(
    ("consideration", "Consideration"),
    ("fee", "uint256"),
    ("nonce", "uint256"),
    ("deadline", "uint256"),
)

TOKEN_PERMISSIONS_FIELDS = _fields(
    ("token", "address"),
    ("amount", "uint256"),
)

PERMIT_TRANSFER_FROM_FIELDS = _fields(
    ("permitted", "TokenPermissions"),
    ("spender", "address"),
    ("nonce", "uint256"),
    ("deadline", "uint256"),
)

PERMIT_BATCH_TRANSFER_FROM_FIELDS = _fields(
    ("permitted", "TokenPermissions[]"),
    ("spender", "address"),
    ("nonce", "uint256"),
    ("deadline", "uint256"),
)

PERMIT_WITNESS_TRANSFER_FROM_FIELDS = PERMIT_TRANSFER_FROM_FIELDS + _fields(
    ("witness", "SingleTradeWitness"),
)

PERMIT_BATCH_WITNESS_TRANSFER_FROM_FIELDS = PERMIT_BATCH_TRANSFER_FROM_FIELDS + _fields(
    ("witness", "BatchTradeWitness"),
)

SINGLE_TRADE_WITNESS_FIELDS = _fields(("id", "uint256"))
BATCH_TRADE_WITNESS_FIELDS = _fields(("ids", "uint256[]"))

# Every struct this service knows how to build or validate.
CANONICAL_TYPES: TypeTable = {
    "Consideration": CONSIDERATION_FIELDS,
    "TakerDetails": TAKER_DETAILS_FIELDS,
    "MakerDetails": MAKER_DETAILS_FIELDS,
    "TokenPermissions": TOKEN_PERMISSIONS_FIELDS,
    "PermitTransferFrom": PERMIT_TRANSFER_FROM_FIELDS,
    "PermitBatchTransferFrom": PERMIT_BATCH_TRANSFER_FROM_FIELDS,
    "PermitWitnessTransferFrom": PERMIT_WITNESS_TRANSFER_FROM_FIELDS,
    "PermitBatchWitnessTransferFrom": PERMIT_BATCH_WITNESS_TRANSFER_FROM_FIELDS,
    "SingleTradeWitness": SINGLE_TRADE_WITNESS_FIELDS,
    "BatchTradeWitness": BATCH_TRADE_WITNESS_FIELDS,
}


class StructureFamily(str, Enum):
    """The four typed-data shapes the settlement flow signs."""

    TAKER_DETAILS = "takerDetails"
    MAKER_DETAILS = "makerDetails"
    PERMIT_TRANSFER_FROM = "permitTransferFrom"
    PERMIT_BATCH_TRANSFER_FROM = "permitBatchTransferFrom"

    @property
    def is_permit(self) -> bool:
        return self in (StructureFamily.PERMIT_TRANSFER_FROM, StructureFamily.PERMIT_BATCH_TRANSFER_FROM)

    @property
    def is_batch(self) -> bool:
        return self is StructureFamily.PERMIT_BATCH_TRANSFER_FROM


PRIMARY_TYPE_FAMILIES: Dict[str, StructureFamily] = {
    "TakerDetails": StructureFamily.TAKER_DETAILS,
    "MakerDetails": StructureFamily.MAKER_DETAILS,
    "PermitTransferFrom": StructureFamily.PERMIT_TRANSFER_FROM,
    "PermitWitnessTransferFrom": StructureFamily.PERMIT_TRANSFER_FROM,
    "PermitBatchTransferFrom": StructureFamily.PERMIT_BATCH_TRANSFER_FROM,
    "PermitBatchWitnessTransferFrom": StructureFamily.PERMIT_BATCH_TRANSFER_FROM,
}

WITNESS_PRIMARY_TYPES = frozenset({"PermitWitnessTransferFrom", "PermitBatchWitnessTransferFrom"})
