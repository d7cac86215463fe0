"""
Tests for type-graph pruning.
"""

import pytest

from fxsettle.core.errors import InvalidTypedData
from fxsettle.core.typed_data import (
    CANONICAL_TYPES,
    EIP712_DOMAIN,
    TypedDataEnvelope,
    base_type,
    prune_envelope,
    prune_types,
    unused_types,
)

DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


@pytest.fixture
def bloated_types():
    """Everything the service knows plus the domain declaration."""
    return {EIP712_DOMAIN: DOMAIN_FIELDS, **CANONICAL_TYPES}


# =============================================================================
# Closure
# =============================================================================

class TestPruneTypes:
    """Tests for prune_types."""

    def test_taker_details_keeps_nested_consideration(self, bloated_types):
        pruned = prune_types(bloated_types, "TakerDetails")
        assert list(pruned) == ["Consideration", "TakerDetails"]

    def test_maker_details_closure(self, bloated_types):
        pruned = prune_types(bloated_types, "MakerDetails")
        assert set(pruned) == {"Consideration", "MakerDetails"}

    def test_array_reference_is_followed(self, bloated_types):
        pruned = prune_types(bloated_types, "PermitBatchTransferFrom")
        assert set(pruned) == {"TokenPermissions", "PermitBatchTransferFrom"}

    def test_witness_closure(self, bloated_types):
        pruned = prune_types(bloated_types, "PermitBatchWitnessTransferFrom")
        assert set(pruned) == {"TokenPermissions", "BatchTradeWitness", "PermitBatchWitnessTransferFrom"}

    def test_domain_declaration_is_dropped(self, bloated_types):
        for primary in ("TakerDetails", "PermitTransferFrom"):
            assert EIP712_DOMAIN not in prune_types(bloated_types, primary)

    def test_idempotent(self, bloated_types):
        once = prune_types(bloated_types, "PermitWitnessTransferFrom")
        assert prune_types(once, "PermitWitnessTransferFrom") == once

    def test_field_order_preserved(self, bloated_types):
        pruned = prune_types(bloated_types, "TakerDetails")
        assert [f["name"] for f in pruned["TakerDetails"]] == [
            "consideration", "recipient", "fee", "nonce", "deadline",
        ]

    def test_input_is_not_mutated(self, bloated_types):
        before = {name: [dict(f) for f in fields] for name, fields in bloated_types.items()}
        prune_types(bloated_types, "TakerDetails")
        assert bloated_types == before

    def test_undeclared_primary_type(self, bloated_types):
        with pytest.raises(InvalidTypedData) as exc_info:
            prune_types(bloated_types, "Mail")
        assert exc_info.value.path == "primaryType"

    def test_domain_cannot_be_primary(self, bloated_types):
        with pytest.raises(InvalidTypedData):
            prune_types(bloated_types, EIP712_DOMAIN)

    def test_field_without_type_is_rejected(self):
        types = {"Broken": [{"name": "x"}]}
        with pytest.raises(InvalidTypedData) as exc_info:
            prune_types(types, "Broken")
        assert exc_info.value.path == "types.Broken[0]"

    @pytest.mark.parametrize("types, path", [
        ({"Broken": 5}, "types.Broken"),
        ({"Broken": "uint256 x"}, "types.Broken"),
        ({"Broken": ["notadict"]}, "types.Broken[0]"),
    ])
    def test_malformed_declaration_is_rejected(self, types, path):
        with pytest.raises(InvalidTypedData) as exc_info:
            prune_types(types, "Broken")
        assert exc_info.value.path == path

    def test_unknown_scalar_types_are_leaves(self):
        types = {"Mail": [{"name": "contents", "type": "string"}, {"name": "tags", "type": "bytes32[2]"}]}
        assert prune_types(types, "Mail") == types


class TestHelpers:
    """Tests for base_type, unused_types and prune_envelope."""

    def test_base_type_strips_array_suffixes(self):
        assert base_type("TokenPermissions[]") == "TokenPermissions"
        assert base_type("uint256[2][]") == "uint256"
        assert base_type("address") == "address"

    def test_unused_types(self, bloated_types):
        unused = unused_types(bloated_types, "PermitTransferFrom")
        assert EIP712_DOMAIN in unused
        assert "Consideration" in unused
        assert "TokenPermissions" not in unused
        assert "PermitTransferFrom" not in unused

    def test_prune_envelope_returns_copy(self, bloated_types):
        envelope = TypedDataEnvelope(
            domain={"name": "Permit2", "chainId": 1},
            types=bloated_types,
            primary_type="PermitTransferFrom",
            message={"nonce": "1"},
        )
        pruned = prune_envelope(envelope)

        assert set(pruned.types) == {"TokenPermissions", "PermitTransferFrom"}
        assert pruned.message == envelope.message
        assert EIP712_DOMAIN in envelope.types


class TestEnvelopeFromDict:
    """Tests for TypedDataEnvelope.from_dict on malformed input."""

    def _payload(self, **overrides):
        payload = {
            "domain": {"name": "Permit2", "chainId": 1},
            "types": {"TakerDetails": [{"name": "fee", "type": "uint256"}]},
            "primaryType": "TakerDetails",
            "message": {"fee": "1"},
        }
        payload.update(overrides)
        return payload

    @pytest.mark.parametrize("types, path", [
        ({"TakerDetails": ["notadict"]}, "types.TakerDetails[0]"),
        ({"TakerDetails": 5}, "types.TakerDetails"),
        ([], "types"),
    ])
    def test_malformed_types(self, types, path):
        with pytest.raises(InvalidTypedData) as exc_info:
            TypedDataEnvelope.from_dict(self._payload(types=types))
        assert exc_info.value.path == path

    def test_domain_must_be_object(self):
        with pytest.raises(InvalidTypedData) as exc_info:
            TypedDataEnvelope.from_dict(self._payload(domain=["Permit2"]))
        assert exc_info.value.path == "domain"
