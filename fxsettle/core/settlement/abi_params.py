"""
ABI parameter assembly.

Turns signed permits and trade details into the positional parameter trees
the escrow functions take. Pure transforms: no I/O, no signing.

Numeric rule: with `native_integers=False` (JSON transports) every uint256 in
a struct is emitted as a decimal string. Trade ids are emitted as ints while
they fit in 2**53 - 1 and as decimal strings beyond it. With
`native_integers=True` every number is a Python int. Addresses, bytes32 and
signatures are passed through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..encoding import is_safe_integer, parse_uint256
from ..errors import AbiAssemblyError
from .operations import BREACH, RECORD_TRADE, OperationSpec, SettlementOperation

Numeric = Union[int, str]

_MISSING = object()


@dataclass
class ContractCall:
    """A fully assembled escrow function call."""

    function_name: str
    function_signature: str
    abi_types: Tuple[str, ...]
    parameters: List[Any]
    operation: Optional[SettlementOperation] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_spec(
        cls,
        spec: OperationSpec,
        parameters: List[Any],
        operation: Optional[SettlementOperation] = None,
    ) -> "ContractCall":
        return cls(
            function_name=spec.function_name,
            function_signature=spec.function_signature,
            abi_types=spec.abi_types,
            parameters=parameters,
            operation=operation,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "functionName": self.function_name,
            "abiFunctionSignature": self.function_signature,
            "abiParameters": self.parameters,
            "operation": self.operation.value if self.operation else None,
        }


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------

def _get(source: Any, key: str, path: str) -> Any:
    value = source.get(key, _MISSING) if isinstance(source, Mapping) else _MISSING
    if value is _MISSING or value is None or value == "":
        raise AbiAssemblyError(path)
    return value


def _uint(value: Any, path: str, native_integers: bool) -> Numeric:
    try:
        number = parse_uint256(value)
    except (TypeError, ValueError) as exc:
        raise AbiAssemblyError(path, f"Invalid uint256 at {path}: {exc}") from None
    return number if native_integers else str(number)


def _field_uint(source: Any, key: str, path: str, native_integers: bool) -> Numeric:
    return _uint(_get(source, key, path), path, native_integers)


def trade_id_param(value: Any, path: str = "tradeId", native_integers: bool = False) -> Numeric:
    """A trade id as a contract argument: int when JSON-safe or native, else a string."""
    if value is None or value == "":
        raise AbiAssemblyError(path)
    try:
        number = parse_uint256(value)
    except (TypeError, ValueError) as exc:
        raise AbiAssemblyError(path, f"Invalid trade id at {path}: {exc}") from None
    if native_integers or is_safe_integer(number):
        return number
    return str(number)


# ---------------------------------------------------------------------------
# Permits
# ---------------------------------------------------------------------------

def _token_permission(entry: Any, path: str, native_integers: bool) -> List[Any]:
    if not isinstance(entry, Mapping):
        raise AbiAssemblyError(path, f"Expected a token permission object at {path}")
    return [
        _get(entry, "token", f"{path}.token"),
        _field_uint(entry, "amount", f"{path}.amount", native_integers),
    ]


def assemble_permit(
    permit: Mapping[str, Any],
    *,
    batch: bool,
    native_integers: bool = False,
) -> List[Any]:
    """Permit tuple: `[[token, amount], nonce, deadline]` or `[[[token, amount], ...], nonce, deadline]`.

    `spender` and `witness` are part of the signed message only and are dropped.
    """
    if not isinstance(permit, Mapping):
        raise AbiAssemblyError("permit", "Permit must be an object")
    permitted = _get(permit, "permitted", "permit.permitted")

    if batch:
        if not isinstance(permitted, (list, tuple)):
            raise AbiAssemblyError("permit.permitted", "Batch permit expects a list of token permissions")
        if not permitted:
            raise AbiAssemblyError("permit.permitted[0]")
        permitted_param: Any = [
            _token_permission(entry, f"permit.permitted[{i}]", native_integers)
            for i, entry in enumerate(permitted)
        ]
    else:
        if isinstance(permitted, (list, tuple)):
            raise AbiAssemblyError("permit.permitted", "Single permit expects one token permission, not a list")
        permitted_param = _token_permission(permitted, "permit.permitted", native_integers)

    return [
        permitted_param,
        _field_uint(permit, "nonce", "permit.nonce", native_integers),
        _field_uint(permit, "deadline", "permit.deadline", native_integers),
    ]


def assemble_delivery(
    operation: SettlementOperation,
    trade_ids: Sequence[Any],
    permit: Mapping[str, Any],
    signature: str,
    *,
    native_integers: bool = False,
) -> ContractCall:
    """Parameters for one of the five funding calls: `[tradeId(s), permit, signature]`."""
    if isinstance(trade_ids, (str, bytes)) or not trade_ids:
        raise AbiAssemblyError("tradeIds")
    trade_ids = list(trade_ids)

    if operation.batch:
        ids_param: Any = [
            trade_id_param(t, f"tradeIds[{i}]", native_integers) for i, t in enumerate(trade_ids)
        ]
    else:
        if len(trade_ids) != 1:
            raise AbiAssemblyError("tradeIds", f"{operation.value} takes exactly one trade id")
        ids_param = trade_id_param(trade_ids[0], "tradeIds[0]", native_integers)

    if not signature:
        raise AbiAssemblyError("signature")

    parameters = [
        ids_param,
        assemble_permit(permit, batch=operation.batch, native_integers=native_integers),
        signature,
    ]
    return ContractCall.for_spec(operation.spec, parameters, operation)


# ---------------------------------------------------------------------------
# Trade details
# ---------------------------------------------------------------------------

def assemble_consideration(consideration: Any, native_integers: bool = False, path: str = "consideration") -> List[Any]:
    if not isinstance(consideration, Mapping):
        raise AbiAssemblyError(path)
    return [
        _get(consideration, "quoteId", f"{path}.quoteId"),
        _get(consideration, "base", f"{path}.base"),
        _get(consideration, "quote", f"{path}.quote"),
        _field_uint(consideration, "baseAmount", f"{path}.baseAmount", native_integers),
        _field_uint(consideration, "quoteAmount", f"{path}.quoteAmount", native_integers),
        _field_uint(consideration, "maturity", f"{path}.maturity", native_integers),
    ]


def assemble_taker_details(details: Mapping[str, Any], native_integers: bool = False) -> List[Any]:
    """`[consideration, recipient, fee, nonce, deadline]`"""
    return [
        assemble_consideration(_get(details, "consideration", "takerDetails.consideration"),
                               native_integers, "takerDetails.consideration"),
        _get(details, "recipient", "takerDetails.recipient"),
        _field_uint(details, "fee", "takerDetails.fee", native_integers),
        _field_uint(details, "nonce", "takerDetails.nonce", native_integers),
        _field_uint(details, "deadline", "takerDetails.deadline", native_integers),
    ]


def assemble_maker_details(details: Mapping[str, Any], native_integers: bool = False) -> List[Any]:
    """`[fee, nonce, deadline]`; the consideration stays in the signed message only."""
    return [
        _field_uint(details, "fee", "makerDetails.fee", native_integers),
        _field_uint(details, "nonce", "makerDetails.nonce", native_integers),
        _field_uint(details, "deadline", "makerDetails.deadline", native_integers),
    ]


def assemble_record_trade(
    taker: str,
    taker_details: Mapping[str, Any],
    taker_signature: str,
    maker: str,
    maker_details: Mapping[str, Any],
    maker_signature: str,
    *,
    native_integers: bool = False,
) -> ContractCall:
    for path, value in (
        ("taker", taker),
        ("takerSignature", taker_signature),
        ("maker", maker),
        ("makerSignature", maker_signature),
    ):
        if not value:
            raise AbiAssemblyError(path)

    parameters = [
        taker,
        assemble_taker_details(taker_details, native_integers),
        taker_signature,
        maker,
        assemble_maker_details(maker_details, native_integers),
        maker_signature,
    ]
    return ContractCall.for_spec(RECORD_TRADE, parameters)


def assemble_breach(trade_id: Any, *, native_integers: bool = False) -> ContractCall:
    return ContractCall.for_spec(BREACH, [trade_id_param(trade_id, "tradeId", native_integers)])
