"""
Signer contract shared by the custodial and local-key backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from ..typed_data import TypedDataEnvelope


@dataclass(frozen=True)
class SignatureResult:
    """A 65-byte ECDSA signature and the address that produced it."""

    signature: str
    signer_address: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "signerAddress": self.signer_address,
        }


class Signer(ABC):
    """Signs a pruned EIP-712 envelope."""

    kind: str

    @abstractmethod
    async def sign(self, envelope: TypedDataEnvelope) -> SignatureResult:
        """Sign `envelope` and return `{signature, signerAddress}`.

        Raises:
            SigningBackendUnavailable: transient backend failure, safe to re-sign
            InvalidPrivateKey: the key cannot sign
            EnvelopeRejected: the backend refused the envelope
        """
        pass
