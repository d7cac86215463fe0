"""
EVM JSON-RPC Provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config import settings
from .base import Provider


class JsonRpcError(Exception):
    """JSON-RPC error object returned by the node, kept verbatim."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_payload(cls, error: Any) -> "JsonRpcError":
        if isinstance(error, dict):
            return cls(error.get("code"), str(error.get("message", "")), error.get("data"))
        return cls(None, str(error))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class RpcProvider(Provider):
    name = "rpc"

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url or settings.rpc_url
        self.timeout_s = timeout_s if timeout_s is not None else settings.request_timeout_seconds
        self._transport = transport
        self._request_id = 0

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "RPC URL not configured"}
        try:
            chain_id = await self.chain_id()
            return {"status": "healthy", "chainId": chain_id}
        except (httpx.HTTPError, JsonRpcError) as exc:
            return {"status": "error", "reason": str(exc)}

    async def chain_id(self) -> int:
        return int(await self._rpc_call("eth_chainId", []), 16)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self._rpc_call("eth_getTransactionCount", [address, block]), 16)

    async def gas_price(self) -> int:
        return int(await self._rpc_call("eth_gasPrice", []), 16)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return int(await self._rpc_call("eth_estimateGas", [tx]), 16)

    async def call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        return await self._rpc_call("eth_call", [tx, block])

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self._rpc_call("eth_sendRawTransaction", [raw_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getTransactionReceipt", [tx_hash])

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        kwargs: Dict[str, Any] = {}
        if self.timeout_s is not None:
            kwargs["timeout"] = self.timeout_s
        if self._transport is not None:
            kwargs["transport"] = self._transport

        async with httpx.AsyncClient(**kwargs) as client:
            response = await client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
            )
            response.raise_for_status()
            payload = response.json()

        if "error" in payload:
            raise JsonRpcError.from_payload(payload["error"])
        return payload.get("result")
