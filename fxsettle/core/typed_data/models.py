"""
Typed-data envelope and per-family message schemas.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Mapping, Optional

from eth_utils import is_address
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from ..encoding import is_hex_string, to_decimal_string
from ..errors import IncompleteTypedData, InvalidTypedData
from .schemas import TypeTable


def check_type_table(types: Any) -> None:
    """Require `types` to map each struct name to a list of field objects.

    Raises:
        InvalidTypedData: naming the first malformed entry
    """
    if not isinstance(types, Mapping):
        raise InvalidTypedData("types must be an object", path="types")
    for name, fields in types.items():
        if not isinstance(fields, (list, tuple)):
            raise InvalidTypedData(f"{name} must be a list of fields", path=f"types.{name}")
        for index, f in enumerate(fields):
            if not isinstance(f, Mapping):
                raise InvalidTypedData(
                    f"Field {index} of {name} must be an object",
                    path=f"types.{name}[{index}]",
                )


@dataclass
class TypedDataEnvelope:
    """An EIP-712 `{domain, types, primaryType, message}` object."""

    domain: Dict[str, Any]
    types: TypeTable
    primary_type: str
    message: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": copy.deepcopy(self.domain),
            "types": copy.deepcopy(self.types),
            "primaryType": self.primary_type,
            "message": copy.deepcopy(self.message),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TypedDataEnvelope":
        if not isinstance(data, Mapping):
            raise InvalidTypedData("Typed data must be a JSON object")
        for key in ("domain", "types", "primaryType", "message"):
            if key not in data or data[key] is None:
                raise IncompleteTypedData(key)
        if not isinstance(data["domain"], Mapping):
            raise InvalidTypedData("domain must be an object", path="domain")
        if not isinstance(data["message"], Mapping):
            raise InvalidTypedData("message must be an object", path="message")
        check_type_table(data["types"])
        return cls(
            domain=dict(data["domain"]),
            types={name: [dict(f) for f in fields] for name, fields in data["types"].items()},
            primary_type=str(data["primaryType"]),
            message=copy.deepcopy(dict(data["message"])),
        )


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def _uint256(value: Any) -> str:
    if isinstance(value, float):
        raise ValueError("floating-point numbers are not accepted for uint256 fields")
    try:
        return to_decimal_string(value)
    except TypeError as exc:
        raise ValueError(str(exc)) from exc


def _address(value: Any) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"{value!r} is not an address")
    return value


def _bytes32(value: Any) -> str:
    if not is_hex_string(value, 32):
        raise ValueError(f"{value!r} is not a 0x-prefixed 32-byte hex string")
    return value


Uint256 = Annotated[str, BeforeValidator(_uint256)]
Address = Annotated[str, BeforeValidator(_address)]
Bytes32 = Annotated[str, BeforeValidator(_bytes32)]


class _Message(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Trade details
# ---------------------------------------------------------------------------

class ConsiderationMessage(_Message):
    quoteId: Bytes32
    base: Address
    quote: Address
    baseAmount: Uint256
    quoteAmount: Uint256
    maturity: Uint256


class TakerDetailsMessage(_Message):
    consideration: ConsiderationMessage
    recipient: Address
    fee: Uint256
    nonce: Uint256
    deadline: Uint256


class MakerDetailsMessage(_Message):
    consideration: ConsiderationMessage
    fee: Uint256
    nonce: Uint256
    deadline: Uint256


# ---------------------------------------------------------------------------
# Permit2
# ---------------------------------------------------------------------------

class TokenPermissionsMessage(_Message):
    token: Address
    amount: Uint256


class SingleTradeWitnessMessage(_Message):
    id: Uint256


class BatchTradeWitnessMessage(_Message):
    ids: List[Uint256] = Field(min_length=1)


class PermitTransferFromMessage(_Message):
    permitted: TokenPermissionsMessage
    spender: Address
    nonce: Uint256
    deadline: Uint256
    witness: Optional[SingleTradeWitnessMessage] = None


class PermitBatchTransferFromMessage(_Message):
    permitted: List[TokenPermissionsMessage]
    spender: Address
    nonce: Uint256
    deadline: Uint256
    witness: Optional[BatchTradeWitnessMessage] = None

    @field_validator("permitted")
    @classmethod
    def _permitted_not_empty(cls, value: List[TokenPermissionsMessage]) -> List[TokenPermissionsMessage]:
        if not value:
            raise ValueError("permitted must contain at least one token permission")
        return value
