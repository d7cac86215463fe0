"""
Signer selection.

The backend is chosen by an explicit `kind`; callers never inspect signer
types at runtime.
"""

from __future__ import annotations

from typing import Optional

from ...config import Settings, settings as default_settings
from ...providers.custodial_wallet import CustodialWalletProvider
from .base import Signer
from .local import LocalKeySigner
from .remote import RemoteSigner
from .retry import RetryingSigner

SIGNER_KINDS = ("custodial", "local")


def build_signer(
    kind: str,
    *,
    wallet_id: Optional[str] = None,
    private_key: Optional[str] = None,
    wallet: Optional[CustodialWalletProvider] = None,
    config: Optional[Settings] = None,
    retry: bool = True,
) -> Signer:
    """Build a signer of the requested kind.

    Args:
        kind: "custodial" (requires `wallet_id`) or "local" (uses
            `private_key`, or a fresh ephemeral key when omitted)
        retry: wrap the signer in `RetryingSigner` using the configured limits
    """
    config = config or default_settings

    if kind == "custodial":
        if not wallet_id:
            raise ValueError("wallet_id is required for the custodial signer")
        signer: Signer = RemoteSigner(wallet or CustodialWalletProvider(), wallet_id)
    elif kind == "local":
        signer = LocalKeySigner(private_key) if private_key else LocalKeySigner.generate()
    else:
        raise ValueError(f"Unknown signer kind {kind!r}; expected one of {SIGNER_KINDS}")

    if not retry or config.signing_max_attempts <= 1:
        return signer
    return RetryingSigner(
        signer,
        max_attempts=config.signing_max_attempts,
        initial_delay_seconds=config.signing_retry_initial_delay_seconds,
    )
