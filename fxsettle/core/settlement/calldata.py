"""
Calldata encoding for assembled contract calls.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import encode
from eth_abi.grammar import TupleType, parse
from eth_utils import to_bytes, to_canonical_address

from ..encoding import parse_uint256
from ..errors import AbiAssemblyError
from .abi_params import ContractCall
from .operations import selector_from_signature


def _to_abi_value(abi_type: Any, value: Any, path: str) -> Any:
    if abi_type.is_array:
        if not isinstance(value, (list, tuple)):
            raise AbiAssemblyError(path, f"Expected an array at {path}")
        item_type = abi_type.item_type
        return [_to_abi_value(item_type, item, f"{path}[{i}]") for i, item in enumerate(value)]

    if isinstance(abi_type, TupleType):
        components = abi_type.components
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise AbiAssemblyError(path, f"Expected a {len(components)}-element tuple at {path}")
        return tuple(
            _to_abi_value(component, item, f"{path}[{i}]")
            for i, (component, item) in enumerate(zip(components, value))
        )

    try:
        if abi_type.base in ("uint", "int"):
            if abi_type.base == "int" and isinstance(value, int) and not isinstance(value, bool):
                return value
            return parse_uint256(value)
        if abi_type.base == "address":
            return to_canonical_address(value)
        if abi_type.base == "bytes":
            return to_bytes(hexstr=value) if isinstance(value, str) else bytes(value)
    except (TypeError, ValueError) as exc:
        raise AbiAssemblyError(path, f"Cannot encode {abi_type.to_type_str()} at {path}: {exc}") from None
    return value


def encode_parameters(abi_types: Sequence[str], parameters: Sequence[Any]) -> bytes:
    """ABI-encode JSON-style parameters (decimal strings, hex strings) for `abi_types`."""
    if len(abi_types) != len(parameters):
        raise AbiAssemblyError("parameters", f"Expected {len(abi_types)} parameters, got {len(parameters)}")
    values = [
        _to_abi_value(parse(type_str), value, f"parameters[{i}]")
        for i, (type_str, value) in enumerate(zip(abi_types, parameters))
    ]
    return encode(list(abi_types), values)


def encode_call(call: ContractCall) -> str:
    """0x-prefixed calldata: 4-byte selector followed by the encoded arguments."""
    selector = selector_from_signature(call.function_signature)
    return selector + encode_parameters(call.abi_types, call.parameters).hex()
