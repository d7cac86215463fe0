"""
Async client for the custodial developer-wallet API.

Mutating calls carry a fresh `entitySecretCiphertext`: the hex entity secret
encrypted with RSA-OAEP (SHA-256) under the service's entity public key.
The public key is fetched once and cached; the ciphertext is regenerated for
every request because the service rejects reused ciphertexts.
"""

from __future__ import annotations

import base64
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from ..config import settings
from .base import HttpProvider

logger = logging.getLogger(__name__)


class CustodialWalletError(Exception):
    """Custodial wallet client misconfiguration."""
    pass


class CustodialWalletProvider(HttpProvider):
    name = "custodial_wallet"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        entity_secret: Optional[str] = None,
        entity_public_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url or settings.wallet_api_base_url,
            timeout_s=timeout_s if timeout_s is not None else settings.request_timeout_seconds,
            transport=transport,
        )
        self._api_key = api_key if api_key is not None else settings.wallet_api_key
        self._entity_secret = entity_secret if entity_secret is not None else settings.entity_secret
        self._public_key_pem = entity_public_key

    def __repr__(self) -> str:
        return f"CustodialWalletProvider(base_url={self.base_url!r})"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["authorization"] = f"Bearer {self._api_key}"
        return headers

    async def ready(self) -> bool:
        return bool(self._api_key and self._entity_secret)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Wallet API key or entity secret not configured"}
        try:
            await self.get_entity_public_key()
            return {"status": "healthy"}
        except (httpx.HTTPError, CustodialWalletError) as exc:
            return {"status": "error", "reason": str(exc)}

    # ── Entity secret ────────────────────────────────────────────

    async def get_entity_public_key(self) -> str:
        if self._public_key_pem is None:
            resp = await self._request("GET", "/v1/w3s/config/entity/publicKey")
            pem = (resp.json().get("data") or {}).get("publicKey")
            if not pem:
                raise CustodialWalletError("Entity public key missing from response")
            self._public_key_pem = pem
        return self._public_key_pem

    async def entity_secret_ciphertext(self) -> str:
        if not self._entity_secret:
            raise CustodialWalletError("Entity secret is not configured")
        try:
            secret = bytes.fromhex(self._entity_secret.removeprefix("0x"))
        except ValueError:
            raise CustodialWalletError("Entity secret must be hex") from None

        pem = await self.get_entity_public_key()
        public_key = serialization.load_pem_public_key(pem.encode())
        encrypted = public_key.encrypt(
            secret,
            padding.OAEP(
                mgf=padding.MGF1(algorithm=hashes.SHA256()),
                algorithm=hashes.SHA256(),
                label=None,
            ),
        )
        return base64.b64encode(encrypted).decode()

    # ── Wallets ──────────────────────────────────────────────────

    async def get_wallet(self, wallet_id: str) -> Dict[str, Any]:
        resp = await self._request("GET", f"/v1/w3s/wallets/{wallet_id}")
        return resp.json()

    async def sign_typed_data(self, wallet_id: str, data: str) -> Dict[str, Any]:
        """Sign a JSON-serialized EIP-712 envelope with a custodial wallet."""
        payload = {
            "walletId": wallet_id,
            "data": data,
            "entitySecretCiphertext": await self.entity_secret_ciphertext(),
        }
        resp = await self._request("POST", "/v1/w3s/developer/sign/typedData", json=payload)
        return resp.json()

    # ── Transactions ─────────────────────────────────────────────

    async def execute_contract(
        self,
        wallet_id: str,
        contract_address: str,
        abi_function_signature: str,
        abi_parameters: List[Any],
        *,
        ref_id: Optional[str] = None,
        fee_level: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "idempotencyKey": idempotency_key or str(uuid.uuid4()),
            "walletId": wallet_id,
            "contractAddress": contract_address,
            "abiFunctionSignature": abi_function_signature,
            "abiParameters": abi_parameters,
            "feeLevel": fee_level or settings.contract_execution_fee_level,
            "entitySecretCiphertext": await self.entity_secret_ciphertext(),
        }
        if ref_id:
            payload["refId"] = ref_id
        logger.info(f"Submitting {abi_function_signature.split('(')[0]} to {contract_address} from wallet {wallet_id}")
        resp = await self._request("POST", "/v1/w3s/developer/transactions/contractExecution", json=payload)
        return resp.json()

    async def get_transaction(self, tx_id: str) -> Dict[str, Any]:
        resp = await self._request("GET", f"/v1/w3s/transactions/{tx_id}")
        return resp.json()
