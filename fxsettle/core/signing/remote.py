"""
Custodial remote signer.

The envelope is pruned before serialization because the signing service
enforces canonical form; the private key never leaves the service.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from ...providers.base import response_detail
from ...providers.custodial_wallet import CustodialWalletError, CustodialWalletProvider
from ..errors import EnvelopeRejected, InvalidTypedData, SigningBackendUnavailable
from ..typed_data import TypedDataEnvelope, prune_envelope
from .base import SignatureResult, Signer

logger = logging.getLogger(__name__)


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


class RemoteSigner(Signer):
    """Signs through the custodial wallet service's typed-data endpoint."""

    kind = "custodial"

    def __init__(
        self,
        wallet: CustodialWalletProvider,
        wallet_id: str,
        signer_address: Optional[str] = None,
    ):
        self.wallet = wallet
        self.wallet_id = wallet_id
        self._signer_address = signer_address

    def __repr__(self) -> str:
        return f"RemoteSigner(wallet_id={self.wallet_id!r})"

    async def signer_address(self) -> str:
        """Address of the custodial wallet, looked up once."""
        if self._signer_address is None:
            payload = await self._guard(self.wallet.get_wallet(self.wallet_id))
            wallet = _unwrap(payload).get("wallet") or {}
            address = wallet.get("address")
            if not address:
                raise EnvelopeRejected(
                    f"Wallet {self.wallet_id} has no address",
                    detail=payload,
                    provider=self.wallet.name,
                )
            self._signer_address = address
        return self._signer_address

    async def sign(self, envelope: TypedDataEnvelope) -> SignatureResult:
        pruned = prune_envelope(envelope)
        data = json.dumps(pruned.to_dict(), separators=(",", ":"))
        if not pruned.types or not pruned.message:
            raise InvalidTypedData("Refusing to sign an empty envelope")

        address = await self.signer_address()
        payload = await self._guard(self.wallet.sign_typed_data(self.wallet_id, data))
        signature = _unwrap(payload).get("signature")
        if not signature:
            raise EnvelopeRejected(
                "Signing service returned no signature",
                detail=payload,
                provider=self.wallet.name,
            )

        logger.info(f"Signed {pruned.primary_type} with custodial wallet {self.wallet_id}")
        return SignatureResult(signature=signature, signer_address=address)

    async def _guard(self, call):
        """Await a wallet call, mapping transport failures onto signing errors."""
        try:
            return await call
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = response_detail(exc.response)
            if status >= 500 or status == 429:
                raise SigningBackendUnavailable(
                    f"Signing service returned HTTP {status}",
                    provider=self.wallet.name,
                ) from exc
            raise EnvelopeRejected(
                f"Signing service rejected the request with HTTP {status}",
                status_code=status,
                detail=detail,
                provider=self.wallet.name,
            ) from exc
        except httpx.RequestError as exc:
            raise SigningBackendUnavailable(
                f"Signing service unreachable: {exc}",
                provider=self.wallet.name,
            ) from exc
        except CustodialWalletError as exc:
            raise EnvelopeRejected(str(exc), provider=self.wallet.name) from exc
