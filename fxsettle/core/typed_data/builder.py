"""
Typed-data builder for the four settlement structure families.

Every envelope leaves this module pruned, with its message validated against
the family schema and every uint256 normalized to a decimal string.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type, Union

from pydantic import ValidationError

from ...config import Settings, settings as default_settings
from ..errors import IncompleteTypedData, InvalidTypedData, TypeSchemaConflict
from .models import (
    MakerDetailsMessage,
    PermitBatchTransferFromMessage,
    PermitTransferFromMessage,
    TakerDetailsMessage,
    TypedDataEnvelope,
    _Message,
)
from .pruner import prune_types
from .schemas import (
    CANONICAL_TYPES,
    EIP712_DOMAIN,
    PRIMARY_TYPE_FAMILIES,
    WITNESS_PRIMARY_TYPES,
    StructureFamily,
    TypeTable,
)

logger = logging.getLogger(__name__)

FAMILY_MESSAGE_MODELS: Dict[StructureFamily, Type[_Message]] = {
    StructureFamily.TAKER_DETAILS: TakerDetailsMessage,
    StructureFamily.MAKER_DETAILS: MakerDetailsMessage,
    StructureFamily.PERMIT_TRANSFER_FROM: PermitTransferFromMessage,
    StructureFamily.PERMIT_BATCH_TRANSFER_FROM: PermitBatchTransferFromMessage,
}


def merge_types(*tables: Mapping[str, Sequence[Mapping[str, str]]]) -> TypeTable:
    """Union of several type tables.

    Raises:
        TypeSchemaConflict: the same name is declared with two different layouts
    """
    merged: TypeTable = {}
    for table in tables:
        for name, fields in table.items():
            layout = [{"name": f["name"], "type": f["type"]} for f in fields]
            if name in merged and merged[name] != layout:
                raise TypeSchemaConflict(name, expected=merged[name], actual=layout)
            merged[name] = layout
    return merged


def family_for(primary_type: str) -> StructureFamily:
    try:
        return PRIMARY_TYPE_FAMILIES[primary_type]
    except KeyError:
        raise InvalidTypedData(
            f"Unsupported primaryType {primary_type!r}",
            path="primaryType",
        ) from None


def _error_path(loc: Iterable[Any], prefix: str) -> str:
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def validate_message(
    family: StructureFamily,
    message: Mapping[str, Any],
    *,
    witness_required: bool = False,
) -> Dict[str, Any]:
    """Validate and normalize a message for `family`.

    Raises:
        IncompleteTypedData: a required field is missing
        InvalidTypedData: a field is malformed or unexpected
    """
    model = FAMILY_MESSAGE_MODELS[family]
    try:
        parsed = model.model_validate(dict(message))
    except ValidationError as exc:
        errors = exc.errors()
        for error in errors:
            if error["type"] == "missing":
                raise IncompleteTypedData(_error_path(error["loc"], "message")) from None
        first = errors[0]
        raise InvalidTypedData(
            f"{_error_path(first['loc'], 'message')}: {first['msg']}",
            path=_error_path(first["loc"], "message"),
        ) from None

    normalized = parsed.to_message()
    if witness_required and "witness" not in normalized:
        raise IncompleteTypedData("message.witness")
    if not witness_required and "witness" in normalized:
        raise InvalidTypedData("witness is only valid for witness permit types", path="message.witness")
    return normalized


def _check_against_canonical(types: Mapping[str, Sequence[Mapping[str, str]]]) -> None:
    for name, fields in types.items():
        if name not in CANONICAL_TYPES:
            continue
        layout = [{"name": f.get("name"), "type": f.get("type")} for f in fields]
        if layout != CANONICAL_TYPES[name]:
            raise TypeSchemaConflict(name, expected=CANONICAL_TYPES[name], actual=layout)


def validate_envelope(envelope: Union[TypedDataEnvelope, Mapping[str, Any]]) -> TypedDataEnvelope:
    """Validate an externally produced envelope and return its pruned, normalized form.

    Raises:
        InvalidTypedData: unknown primaryType or malformed message values
        TypeSchemaConflict: a known struct is declared with a different layout
        IncompleteTypedData: a required message field is missing
    """
    if not isinstance(envelope, TypedDataEnvelope):
        envelope = TypedDataEnvelope.from_dict(envelope)

    family = family_for(envelope.primary_type)
    pruned = prune_types(envelope.types, envelope.primary_type)
    _check_against_canonical(pruned)

    # The pruned closure must be exactly the canonical closure of the primary type.
    expected = prune_types(CANONICAL_TYPES, envelope.primary_type)
    for name in expected:
        if name not in pruned:
            raise IncompleteTypedData(f"types.{name}")

    message = validate_message(
        family,
        envelope.message,
        witness_required=envelope.primary_type in WITNESS_PRIMARY_TYPES,
    )
    domain = {k: v for k, v in envelope.domain.items() if v is not None}
    return TypedDataEnvelope(
        domain=domain,
        types=pruned,
        primary_type=envelope.primary_type,
        message=message,
    )


def extract_envelope(payload: Any) -> Any:
    """Unwrap a presign response that may nest the envelope under `typedData`."""
    if isinstance(payload, Mapping) and isinstance(payload.get("typedData"), Mapping):
        return payload["typedData"]
    return payload


def envelope_family(envelope: TypedDataEnvelope) -> StructureFamily:
    return family_for(envelope.primary_type)


class TypedDataBuilder:
    """
    Builds EIP-712 envelopes for trade details and Permit2 authorizations.

    The FxEscrow domain carries name, version, chainId and verifyingContract;
    the Permit2 domain has no version, matching the deployed Permit2 contract.
    """

    def __init__(
        self,
        chain_id: int,
        escrow_verifying_contract: str,
        permit2_address: str,
        escrow_spender: Optional[str] = None,
        escrow_name: str = "FxEscrow",
        escrow_version: str = "1",
    ):
        self.chain_id = chain_id
        self.escrow_verifying_contract = escrow_verifying_contract
        self.permit2_address = permit2_address
        self.escrow_spender = escrow_spender or escrow_verifying_contract
        self.escrow_name = escrow_name
        self.escrow_version = escrow_version

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "TypedDataBuilder":
        config = config or default_settings
        return cls(
            chain_id=config.chain_id,
            escrow_verifying_contract=config.escrow_verifying_contract or config.escrow_contract_address,
            permit2_address=config.permit2_address,
            escrow_spender=config.escrow_contract_address,
            escrow_name=config.escrow_domain_name,
            escrow_version=config.escrow_domain_version,
        )

    # ── Domains ──────────────────────────────────────────────────

    def escrow_domain(self) -> Dict[str, Any]:
        return {
            "name": self.escrow_name,
            "version": self.escrow_version,
            "chainId": self.chain_id,
            "verifyingContract": self.escrow_verifying_contract,
        }

    def permit2_domain(self) -> Dict[str, Any]:
        return {
            "name": "Permit2",
            "chainId": self.chain_id,
            "verifyingContract": self.permit2_address,
        }

    # ── Trade details ────────────────────────────────────────────

    def taker_details(
        self,
        consideration: Mapping[str, Any],
        recipient: str,
        fee: Any,
        nonce: Any,
        deadline: Any,
    ) -> TypedDataEnvelope:
        """TakerDetails envelope; the consideration is embedded as a nested struct."""
        message = {
            "consideration": dict(consideration) if consideration is not None else None,
            "recipient": recipient,
            "fee": fee,
            "nonce": nonce,
            "deadline": deadline,
        }
        return self._build("TakerDetails", self.escrow_domain(), message)

    def maker_details(
        self,
        consideration: Mapping[str, Any],
        fee: Any,
        nonce: Any,
        deadline: Any,
    ) -> TypedDataEnvelope:
        message = {
            "consideration": dict(consideration) if consideration is not None else None,
            "fee": fee,
            "nonce": nonce,
            "deadline": deadline,
        }
        return self._build("MakerDetails", self.escrow_domain(), message)

    # ── Permit2 ──────────────────────────────────────────────────

    def permit_transfer_from(
        self,
        token: str,
        amount: Any,
        nonce: Any,
        deadline: Any,
        spender: Optional[str] = None,
        witness_trade_id: Any = None,
    ) -> TypedDataEnvelope:
        """Single-token Permit2 authorization, optionally bound to one trade id."""
        message: Dict[str, Any] = {
            "permitted": {"token": token, "amount": amount},
            "spender": spender or self.escrow_spender,
            "nonce": nonce,
            "deadline": deadline,
        }
        primary_type = "PermitTransferFrom"
        if witness_trade_id is not None:
            message["witness"] = {"id": witness_trade_id}
            primary_type = "PermitWitnessTransferFrom"
        return self._build(primary_type, self.permit2_domain(), message)

    def permit_batch_transfer_from(
        self,
        permitted: Sequence[Mapping[str, Any]],
        nonce: Any,
        deadline: Any,
        spender: Optional[str] = None,
        witness_trade_ids: Optional[Sequence[Any]] = None,
    ) -> TypedDataEnvelope:
        """Multi-token Permit2 authorization; `permitted` must not be empty."""
        message: Dict[str, Any] = {
            "permitted": [dict(p) for p in permitted],
            "spender": spender or self.escrow_spender,
            "nonce": nonce,
            "deadline": deadline,
        }
        primary_type = "PermitBatchTransferFrom"
        if witness_trade_ids is not None:
            message["witness"] = {"ids": list(witness_trade_ids)}
            primary_type = "PermitBatchWitnessTransferFrom"
        return self._build(primary_type, self.permit2_domain(), message)

    # ── Internals ────────────────────────────────────────────────

    def _build(self, primary_type: str, domain: Dict[str, Any], message: Dict[str, Any]) -> TypedDataEnvelope:
        family = family_for(primary_type)
        # Absent optional inputs are passed as None; treat them as missing fields.
        cleaned = _drop_none(message)
        normalized = validate_message(
            family,
            cleaned,
            witness_required=primary_type in WITNESS_PRIMARY_TYPES,
        )
        types = prune_types(CANONICAL_TYPES, primary_type)
        logger.debug(f"Built {primary_type} typed data with types {list(types)}")
        return TypedDataEnvelope(
            domain=domain,
            types=types,
            primary_type=primary_type,
            message=normalized,
        )


def _drop_none(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def domain_types(domain: Mapping[str, Any]) -> List[Dict[str, str]]:
    """The EIP712Domain declaration matching the keys present in `domain`.

    Only for callers that must display or transmit a full envelope; signed
    envelopes never include it.
    """
    order = [
        ("name", "string"),
        ("version", "string"),
        ("chainId", "uint256"),
        ("verifyingContract", "address"),
        ("salt", "bytes32"),
    ]
    return [{"name": name, "type": type_} for name, type_ in order if name in domain]


__all__ = [
    "EIP712_DOMAIN",
    "TypedDataBuilder",
    "domain_types",
    "envelope_family",
    "extract_envelope",
    "family_for",
    "merge_types",
    "validate_envelope",
    "validate_message",
]
