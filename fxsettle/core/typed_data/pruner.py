"""
Type-graph pruning for EIP-712 envelopes.

Strict signers hash every declared struct or refuse envelopes that carry
unused declarations, so the signed `types` must be exactly the closure of
the primary type. `EIP712Domain` is always dropped: the signing primitive
derives the domain separator from `domain` itself.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Dict, List, Mapping, Sequence

from ..errors import InvalidTypedData
from .models import TypedDataEnvelope, check_type_table
from .schemas import EIP712_DOMAIN, TypeField, TypeTable

_ARRAY_SUFFIX = re.compile(r"(\[\d*\])+$")


def base_type(type_name: str) -> str:
    """Strip array suffixes: `TokenPermissions[]` -> `TokenPermissions`."""
    return _ARRAY_SUFFIX.sub("", type_name)


def referenced_types(fields: Sequence[Mapping[str, str]], types: Mapping[str, object]) -> List[str]:
    """Struct names referenced by `fields` that are declared in `types`, in field order."""
    refs: List[str] = []
    for f in fields:
        if not isinstance(f, Mapping):
            continue
        name = base_type(str(f.get("type", "")))
        if name in types and name not in refs:
            refs.append(name)
    return refs


def prune_types(types: Mapping[str, Sequence[Mapping[str, str]]], primary_type: str) -> TypeTable:
    """Return the minimal type map reachable from `primary_type`.

    Breadth-first walk over field types; scalar and array-of-scalar ABI types
    are leaves. Declaration order of the input map is preserved.

    Raises:
        InvalidTypedData: `primary_type` is not declared in `types`, or a
            declaration is not a list of field objects
    """
    check_type_table(types)
    if primary_type == EIP712_DOMAIN or primary_type not in types:
        raise InvalidTypedData(
            f"primaryType {primary_type!r} is not declared in types",
            path="primaryType",
        )

    reachable = {primary_type}
    queue = deque([primary_type])
    while queue:
        current = queue.popleft()
        for ref in referenced_types(types[current], types):
            if ref == EIP712_DOMAIN or ref in reachable:
                continue
            reachable.add(ref)
            queue.append(ref)

    pruned: Dict[str, List[TypeField]] = {}
    for name, fields in types.items():
        if name not in reachable:
            continue
        copied: List[TypeField] = []
        for index, f in enumerate(fields):
            if not isinstance(f, Mapping) or "name" not in f or "type" not in f:
                raise InvalidTypedData(
                    f"Field {index} of {name} needs a name and a type",
                    path=f"types.{name}[{index}]",
                )
            copied.append({"name": f["name"], "type": f["type"]})
        pruned[name] = copied
    return pruned


def prune_envelope(envelope: TypedDataEnvelope) -> TypedDataEnvelope:
    """Copy of `envelope` whose `types` holds only the primary type's closure."""
    return TypedDataEnvelope(
        domain=dict(envelope.domain),
        types=prune_types(envelope.types, envelope.primary_type),
        primary_type=envelope.primary_type,
        message=envelope.to_dict()["message"],
    )


def unused_types(types: Mapping[str, object], primary_type: str) -> List[str]:
    """Names that `prune_types` would discard."""
    kept = prune_types(types, primary_type)  # type: ignore[arg-type]
    return [name for name in types if name not in kept]
