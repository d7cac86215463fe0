"""
Local-key EIP-712 signer.

The key is held as a string on the signer and only materialized into an
`Account` for the duration of one `sign` call.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Union

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import to_bytes, to_hex

from ..encoding import parse_uint256
from ..errors import InvalidPrivateKey, InvalidTypedData
from ..typed_data import TypedDataEnvelope, prune_envelope
from .base import SignatureResult, Signer

logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_INT_TYPE_RE = re.compile(r"^u?int(\d*)$")
_FIXED_BYTES_RE = re.compile(r"^bytes([1-9]|[12][0-9]|3[0-2])$")
_ARRAY_RE = re.compile(r"^(.*)\[(\d*)\]$")


def normalize_private_key(private_key: str) -> str:
    if not isinstance(private_key, str) or not _PRIVATE_KEY_RE.match(private_key.strip()):
        raise InvalidPrivateKey("Private key must be 32 bytes of hex")
    key = private_key.strip()
    if not key.startswith("0x"):
        key = f"0x{key}"
    if int(key, 16) == 0:
        raise InvalidPrivateKey("Private key must not be zero")
    return key


def _coerce_value(type_name: str, value: Any, types: Mapping[str, List[Dict[str, str]]], path: str) -> Any:
    array = _ARRAY_RE.match(type_name)
    if array:
        if not isinstance(value, (list, tuple)):
            raise InvalidTypedData(f"{path} must be an array", path=path)
        inner = array.group(1)
        return [_coerce_value(inner, item, types, f"{path}[{i}]") for i, item in enumerate(value)]

    if type_name in types:
        if not isinstance(value, Mapping):
            raise InvalidTypedData(f"{path} must be an object", path=path)
        return _coerce_struct(type_name, value, types, path)

    if _INT_TYPE_RE.match(type_name):
        if type_name.startswith("int") and isinstance(value, int) and not isinstance(value, bool):
            return value
        try:
            return parse_uint256(value)
        except (TypeError, ValueError) as exc:
            raise InvalidTypedData(f"{path}: {exc}", path=path) from None

    if (type_name == "bytes" or _FIXED_BYTES_RE.match(type_name)) and isinstance(value, str):
        return to_bytes(hexstr=value)

    return value


def _coerce_struct(name: str, message: Mapping[str, Any], types: Mapping[str, List[Dict[str, str]]], path: str) -> Dict[str, Any]:
    coerced: Dict[str, Any] = {}
    for f in types[name]:
        field_path = f"{path}.{f['name']}"
        if f["name"] not in message:
            raise InvalidTypedData(f"{field_path} is missing", path=field_path)
        coerced[f["name"]] = _coerce_value(f["type"], message[f["name"]], types, field_path)
    return coerced


def signable_message(envelope: TypedDataEnvelope) -> SignableMessage:
    """EIP-191 version 0x01 message for a pruned envelope.

    Decimal-string integers and hex byte strings are converted to the native
    values the hashing code expects; the envelope itself is not modified.
    """
    pruned = prune_envelope(envelope)
    domain = dict(pruned.domain)
    if "chainId" in domain:
        domain["chainId"] = parse_uint256(domain["chainId"])
    message = _coerce_struct(pruned.primary_type, pruned.message, pruned.types, "message")
    return encode_typed_data(
        full_message={
            "domain": domain,
            "types": pruned.types,
            "primaryType": pruned.primary_type,
            "message": message,
        }
    )


def recover_signer(envelope: TypedDataEnvelope, signature: Union[str, bytes]) -> str:
    """Checksummed address that produced `signature` over `envelope`."""
    return Account.recover_message(signable_message(envelope), signature=signature)


class LocalKeySigner(Signer):
    """Signs with a caller-supplied or freshly generated private key."""

    kind = "local"

    def __init__(self, private_key: str):
        self._private_key = normalize_private_key(private_key)
        self.address = Account.from_key(self._private_key).address

    @classmethod
    def generate(cls) -> "LocalKeySigner":
        """Signer over a new ephemeral key."""
        account = Account.create()
        return cls(to_hex(account.key))

    def __repr__(self) -> str:
        return f"LocalKeySigner(address={self.address!r})"

    async def sign(self, envelope: TypedDataEnvelope) -> SignatureResult:
        message = signable_message(envelope)
        account = Account.from_key(self._private_key)
        signed = account.sign_message(message)
        del account
        logger.info(f"Signed {envelope.primary_type} locally as {self.address}")
        return SignatureResult(signature=to_hex(signed.signature), signer_address=self.address)

