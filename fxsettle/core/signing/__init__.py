"""
Signer Adapter

Custodial and local-key EIP-712 signers behind one `Signer` contract.
"""

from .base import SignatureResult, Signer
from .factory import SIGNER_KINDS, build_signer
from .local import LocalKeySigner, recover_signer, signable_message
from .remote import RemoteSigner
from .retry import RetryingSigner

__all__ = [
    "SignatureResult",
    "Signer",
    "SIGNER_KINDS",
    "build_signer",
    "LocalKeySigner",
    "recover_signer",
    "signable_message",
    "RemoteSigner",
    "RetryingSigner",
]
