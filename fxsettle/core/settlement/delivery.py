"""
Delivery backends.

A backend submits an assembled funding call and reports what the submission
service or chain answered. Rejections are surfaced verbatim as
`ContractRejection`; the backend never retries or reinterprets them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from eth_account import Account
from eth_utils import to_checksum_address, to_hex

from ...config import Settings, settings as default_settings
from ...providers.base import response_detail
from ...providers.custodial_wallet import CustodialWalletError, CustodialWalletProvider
from ...providers.rpc import JsonRpcError, RpcProvider
from ...providers.stablefx import StableFXProvider
from ..errors import ContractRejection, ServiceRequestError, ServiceUnavailable
from ..signing.local import normalize_private_key
from .abi_params import ContractCall
from .calldata import encode_call
from .operations import FundingMode, Role, SettlementOperation

logger = logging.getLogger(__name__)


@dataclass
class DeliveryRequest:
    operation: SettlementOperation
    role: Role
    funding_mode: FundingMode
    trade_ids: List[int]
    permit: Dict[str, Any]
    permit_signature: str
    call: ContractCall


@dataclass
class DeliveryReceipt:
    backend: str
    operation: SettlementOperation
    transaction_id: Optional[str] = None
    tx_hash: Optional[str] = None
    state: str = "submitted"
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "operation": self.operation.value,
            "transactionId": self.transaction_id,
            "txHash": self.tx_hash,
            "state": self.state,
            "raw": self.raw,
        }


class DeliveryBackend(ABC):
    """Submits funding calls to the escrow."""

    name: str
    # Whether the transport takes native big integers; JSON transports do not.
    native_integers: bool = False

    @abstractmethod
    async def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        """Submit the call.

        Raises:
            ContractRejection: the contract or submission service refused it
            ServiceUnavailable: the service could not be reached
        """
        pass

    def _reject_http(self, exc: httpx.HTTPStatusError, service: str) -> Exception:
        status = exc.response.status_code
        if status >= 500:
            return ServiceUnavailable(service, f"{service} returned HTTP {status}", status_code=status)
        return ContractRejection(
            response_detail(exc.response),
            message=f"Delivery rejected with HTTP {status}",
            backend=self.name,
            status_code=status,
        )


def _data(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload if isinstance(payload, dict) else {}


# Custodial wallet transaction states
SETTLED_TRANSACTION_STATES = frozenset({"CONFIRMED", "COMPLETE"})
FAILED_TRANSACTION_STATES = frozenset({"FAILED", "CANCELLED", "DENIED"})


class CustodialContractBackend(DeliveryBackend):
    """Executes the escrow call from a custodial wallet."""

    name = "custodial"
    native_integers = False

    def __init__(
        self,
        wallet: CustodialWalletProvider,
        wallet_id: str,
        contract_address: Optional[str] = None,
        fee_level: Optional[str] = None,
        wait_for_receipt: bool = False,
        receipt_timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ):
        self.wallet = wallet
        self.wallet_id = wallet_id
        self.contract_address = contract_address or default_settings.escrow_contract_address
        self.fee_level = fee_level
        self.wait_for_receipt = wait_for_receipt
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds

    async def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        call = request.call
        try:
            payload = await self.wallet.execute_contract(
                self.wallet_id,
                self.contract_address,
                call.function_signature,
                call.parameters,
                ref_id=f"{call.function_name}:{','.join(str(t) for t in request.trade_ids)}",
                fee_level=self.fee_level,
            )
        except httpx.HTTPStatusError as exc:
            raise self._reject_http(exc, self.wallet.name) from exc
        except httpx.RequestError as exc:
            raise ServiceUnavailable(self.wallet.name, f"Wallet service unreachable: {exc}") from exc
        except CustodialWalletError as exc:
            raise ServiceUnavailable(self.wallet.name, str(exc)) from exc

        data = _data(payload)
        transaction_id = data.get("id")
        if self.wait_for_receipt and transaction_id:
            data = await self._wait_for_final_state(transaction_id, call.function_name) or data
        return DeliveryReceipt(
            backend=self.name,
            operation=request.operation,
            transaction_id=transaction_id,
            tx_hash=data.get("txHash"),
            state=data.get("state") or "submitted",
            raw=payload if isinstance(payload, dict) else {"response": payload},
        )

    async def _wait_for_final_state(self, transaction_id: str, function_name: str) -> Optional[Dict[str, Any]]:
        """Poll the wallet service until the transaction settles; None on timeout."""
        deadline = time.monotonic() + self.receipt_timeout_seconds
        while True:
            try:
                payload = await self.wallet.get_transaction(transaction_id)
            except (httpx.HTTPError, CustodialWalletError) as exc:
                raise ServiceUnavailable(self.wallet.name, f"Transaction lookup failed: {exc}") from exc
            transaction = _data(payload)
            if isinstance(transaction.get("transaction"), dict):
                transaction = transaction["transaction"]
            state = transaction.get("state")
            if state in FAILED_TRANSACTION_STATES:
                raise ContractRejection(
                    transaction,
                    message=f"{function_name} ended in state {state}",
                    backend=self.name,
                    tx_hash=transaction.get("txHash"),
                )
            if state in SETTLED_TRANSACTION_STATES:
                return transaction
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(self.poll_interval_seconds)


class RelayerFundingBackend(DeliveryBackend):
    """Hands the signed permit to the trade service, which relays the funding call."""

    name = "relayer"
    native_integers = False

    def __init__(self, stablefx: StableFXProvider):
        self.stablefx = stablefx

    async def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        funding_mode = request.funding_mode.value if request.role is Role.MAKER else None
        try:
            payload = await self.stablefx.fund(
                request.role.value,
                request.permit,
                request.permit_signature,
                funding_mode=funding_mode,
            )
        except ServiceRequestError as exc:
            raise ContractRejection(
                exc.detail,
                message=f"Funding rejected with HTTP {exc.status_code}",
                backend=self.name,
                status_code=exc.status_code,
            ) from exc

        data = _data(payload)
        return DeliveryReceipt(
            backend=self.name,
            operation=request.operation,
            transaction_id=data.get("id"),
            tx_hash=data.get("txHash") or data.get("transactionHash"),
            state=data.get("status") or data.get("state") or "submitted",
            raw=payload if isinstance(payload, dict) else {"response": payload},
        )


class ChainDeliveryBackend(DeliveryBackend):
    """Signs and broadcasts the escrow call from a relayer key over JSON-RPC."""

    name = "chain"
    native_integers = True

    def __init__(
        self,
        rpc: RpcProvider,
        private_key: str,
        contract_address: Optional[str] = None,
        chain_id: Optional[int] = None,
        gas_limit: Optional[int] = None,
        wait_for_receipt: bool = False,
        receipt_timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ):
        self.rpc = rpc
        self._private_key = normalize_private_key(private_key)
        self.sender = Account.from_key(self._private_key).address
        self.contract_address = contract_address or default_settings.escrow_contract_address
        self.chain_id = chain_id if chain_id is not None else default_settings.chain_id
        self.gas_limit = gas_limit
        self.wait_for_receipt = wait_for_receipt
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds

    def __repr__(self) -> str:
        return f"ChainDeliveryBackend(sender={self.sender!r})"

    async def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        data = encode_call(request.call)
        to = to_checksum_address(self.contract_address)

        try:
            nonce = await self.rpc.get_transaction_count(self.sender)
            gas_price = await self.rpc.gas_price()
            gas = self.gas_limit or await self.rpc.estimate_gas(
                {"from": self.sender, "to": to, "data": data}
            )
            tx = {
                "nonce": nonce,
                "gasPrice": gas_price,
                "gas": gas,
                "to": to,
                "value": 0,
                "data": data,
                "chainId": self.chain_id,
            }
            signed = Account.sign_transaction(tx, self._private_key)
            tx_hash = await self.rpc.send_raw_transaction(to_hex(signed.raw_transaction))
        except JsonRpcError as exc:
            raise ContractRejection(
                exc.to_dict(),
                message=f"Node rejected {request.call.function_name}: {exc.message}",
                backend=self.name,
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(self.rpc.name, f"RPC node unavailable: {exc}") from exc

        logger.info(f"Broadcast {request.call.function_name} as {tx_hash}")
        receipt: Optional[Dict[str, Any]] = None
        state = "submitted"
        if self.wait_for_receipt:
            receipt = await self._wait_for_receipt(tx_hash)
            if receipt is None:
                state = "pending"
            elif receipt.get("status") == "0x1":
                state = "confirmed"
            else:
                raise ContractRejection(
                    receipt,
                    message=f"{request.call.function_name} reverted",
                    backend=self.name,
                    tx_hash=tx_hash,
                )

        return DeliveryReceipt(
            backend=self.name,
            operation=request.operation,
            transaction_id=tx_hash,
            tx_hash=tx_hash,
            state=state,
            raw={"receipt": receipt} if receipt else {},
        )

    async def _wait_for_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        deadline = time.monotonic() + self.receipt_timeout_seconds
        while True:
            try:
                receipt = await self.rpc.get_transaction_receipt(tx_hash)
            except (httpx.HTTPError, JsonRpcError) as exc:
                raise ServiceUnavailable(self.rpc.name, f"Receipt lookup failed: {exc}") from exc
            if receipt:
                return receipt
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(self.poll_interval_seconds)


DELIVERY_BACKENDS = ("custodial", "relayer", "chain")


def build_delivery_backend(
    name: str,
    *,
    wallet_id: Optional[str] = None,
    relayer_private_key: Optional[str] = None,
    wallet: Optional[CustodialWalletProvider] = None,
    stablefx: Optional[StableFXProvider] = None,
    rpc: Optional[RpcProvider] = None,
    wait_for_receipt: bool = False,
    config: Optional[Settings] = None,
) -> DeliveryBackend:
    """Build the delivery backend registered under `name`."""
    config = config or default_settings

    if name == "custodial":
        if not wallet_id:
            raise ValueError("wallet_id is required for custodial delivery")
        return CustodialContractBackend(
            wallet or CustodialWalletProvider(),
            wallet_id,
            contract_address=config.escrow_contract_address,
            fee_level=config.contract_execution_fee_level,
            wait_for_receipt=wait_for_receipt,
        )
    if name == "relayer":
        return RelayerFundingBackend(stablefx or StableFXProvider())
    if name == "chain":
        if not relayer_private_key:
            raise ValueError("relayer_private_key is required for chain delivery")
        return ChainDeliveryBackend(
            rpc or RpcProvider(config.rpc_url),
            relayer_private_key,
            contract_address=config.escrow_contract_address,
            chain_id=config.chain_id,
            wait_for_receipt=wait_for_receipt,
        )
    raise ValueError(f"Unknown delivery backend {name!r}; expected one of {DELIVERY_BACKENDS}")
