"""
EIP-712 Typed Data

Canonical type tables, envelope construction, validation and pruning for the
trade-detail and Permit2 structures signed during settlement.
"""

from .builder import (
    TypedDataBuilder,
    domain_types,
    envelope_family,
    extract_envelope,
    family_for,
    merge_types,
    validate_envelope,
    validate_message,
)
from .models import TypedDataEnvelope
from .pruner import base_type, prune_envelope, prune_types, unused_types
from .schemas import (
    CANONICAL_TYPES,
    EIP712_DOMAIN,
    WITNESS_PRIMARY_TYPES,
    StructureFamily,
)


__all__ = [
    # Builder
    "TypedDataBuilder",
    "domain_types",
    "envelope_family",
    "extract_envelope",
    "family_for",
    "merge_types",
    "validate_envelope",
    "validate_message",
    # Envelope
    "TypedDataEnvelope",
    # Pruning
    "base_type",
    "prune_envelope",
    "prune_types",
    "unused_types",
    # Schemas
    "CANONICAL_TYPES",
    "EIP712_DOMAIN",
    "WITNESS_PRIMARY_TYPES",
    "StructureFamily",
]
