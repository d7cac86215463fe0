"""
StableFX trade service client.

Covers quotes, trades, presign data, signature registration and relayed
funding. HTTP error bodies are surfaced verbatim as `ServiceRequestError`;
connection failures and 5xx responses become `ServiceUnavailable`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.errors import ServiceRequestError, ServiceUnavailable
from .base import HttpProvider, response_detail

logger = logging.getLogger(__name__)

ROLES = ("taker", "maker")
FUNDING_MODES = ("gross", "net")


def _role(value: str) -> str:
    role = value.lower()
    if role not in ROLES:
        raise ValueError(f"type must be one of {ROLES}, got {value!r}")
    return role


class StableFXProvider(HttpProvider):
    name = "stablefx"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url or settings.stablefx_base_url,
            timeout_s=timeout_s if timeout_s is not None else settings.request_timeout_seconds,
            transport=transport,
        )
        self._api_key = api_key if api_key is not None else settings.stablefx_api_key

    def __repr__(self) -> str:
        return f"StableFXProvider(base_url={self.base_url!r})"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["authorization"] = f"Bearer {self._api_key}"
        return headers

    async def ready(self) -> bool:
        return bool(self._api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "StableFX API key not configured"}
        return {"status": "configured", "baseUrl": self.base_url}

    async def _call(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._request(method, path, json=json, params=params)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = response_detail(exc.response)
            logger.warning(f"StableFX {method} {path} failed with HTTP {status}")
            if status >= 500:
                raise ServiceUnavailable(self.name, f"StableFX returned HTTP {status}", status_code=status) from exc
            raise ServiceRequestError(self.name, status, detail) from exc
        except httpx.RequestError as exc:
            logger.warning(f"StableFX {method} {path} unreachable: {exc}")
            raise ServiceUnavailable(self.name, f"StableFX unreachable: {exc}") from exc
        if not resp.content:
            return {}
        return resp.json()

    # ── Quotes and trades ────────────────────────────────────────

    async def create_quote(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("POST", "quotes", json=request)

    async def create_trade(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Create a trade from a quote. The response carries the trade `id`."""
        return await self._call("POST", "trades", json=request)

    async def list_trades(
        self,
        role: str,
        *,
        status: Optional[str] = None,
        page_size: Optional[int] = None,
        from_: Optional[str] = None,
        to: Optional[str] = None,
    ) -> Any:
        params = {
            "type": _role(role),
            "status": status,
            "pageSize": page_size,
            "from": from_,
            "to": to,
        }
        return await self._call("GET", "trades", params=params)

    async def get_trade(self, trade_id: str, role: str) -> Dict[str, Any]:
        return await self._call("GET", f"trades/{trade_id}", params={"type": _role(role)})

    # ── Presign ──────────────────────────────────────────────────

    async def get_trade_presign(
        self,
        role: str,
        trade_id: str,
        recipient_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Typed data for a trade's TakerDetails or MakerDetails."""
        params = {"recipientAddress": recipient_address} if recipient_address else None
        return await self._call("GET", f"signatures/presign/{_role(role)}/{trade_id}", params=params)

    async def get_funding_presign(
        self,
        role: str,
        funding_mode: str,
        trade_ids: Sequence[Any],
    ) -> Dict[str, Any]:
        """Permit2 typed data funding `trade_ids`."""
        if funding_mode not in FUNDING_MODES:
            raise ValueError(f"fundingMode must be one of {FUNDING_MODES}, got {funding_mode!r}")
        payload = {
            "contractTradeIds": [str(t) for t in trade_ids],
            "type": _role(role),
            "fundingMode": funding_mode,
        }
        return await self._call("POST", "signatures/funding/presign", json=payload)

    # ── Signatures and funding ───────────────────────────────────

    async def register_signature(
        self,
        trade_id: str,
        role: str,
        address: str,
        details: Dict[str, Any],
        signature: str,
    ) -> Dict[str, Any]:
        payload = {
            "tradeId": trade_id,
            "type": _role(role),
            "address": address,
            "details": details,
            "signature": signature,
        }
        return await self._call("POST", "signatures", json=payload)

    async def fund(
        self,
        role: str,
        permit2: Dict[str, Any],
        signature: str,
        funding_mode: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": _role(role),
            "signature": signature,
            "permit2": permit2,
        }
        if funding_mode:
            payload["fundingMode"] = funding_mode
        return await self._call("POST", "fund", json=payload)


_stablefx_provider: Optional[StableFXProvider] = None


def get_stablefx_provider() -> StableFXProvider:
    global _stablefx_provider
    if _stablefx_provider is None:
        _stablefx_provider = StableFXProvider()
    return _stablefx_provider


__all__: List[str] = ["StableFXProvider", "get_stablefx_provider"]
