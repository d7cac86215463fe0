"""Shared fixtures for the settlement tests."""

import json
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest

from fxsettle.core.typed_data import TypedDataBuilder

CHAIN_ID = 11155111
ESCROW = "0x1f91886c7028986ad885ffcee0e40b75c9cd5ac1"
PERMIT2 = "0x000000000022D473030F116dDEE9F6B43aC78BA3"
USDC = "0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"
EURC = "0x08210f9170f89ab7658f0b5e3ff39b0e03c594d4"
RECIPIENT = "0x" + "12" * 20
QUOTE_ID = "0x" + "ab" * 32

# Hardhat account #0
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
def builder() -> TypedDataBuilder:
    return TypedDataBuilder(
        chain_id=CHAIN_ID,
        escrow_verifying_contract=ESCROW,
        permit2_address=PERMIT2,
    )


@pytest.fixture
def consideration() -> Dict[str, Any]:
    return {
        "quoteId": QUOTE_ID,
        "base": USDC,
        "quote": EURC,
        "baseAmount": 1000000,
        "quoteAmount": "920000",
        "maturity": 1999999999,
    }


@pytest.fixture
def taker_envelope(builder, consideration):
    return builder.taker_details(consideration, RECIPIENT, fee=1000, nonce=1, deadline=1999999999)


@pytest.fixture
def maker_envelope(builder, consideration):
    return builder.maker_details(consideration, fee=500, nonce=2, deadline=1999999999)


class RecordingTransport:
    """`httpx.MockTransport` handler that records requests and answers from a route table.

    Routes map `(METHOD, path suffix)` to either a response or a callable
    taking the request.
    """

    def __init__(self, routes: Dict[Tuple[str, str], Any]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for (method, suffix), answer in self.routes.items():
            if request.method == method and request.url.path.endswith(suffix):
                if callable(answer):
                    answer = answer(request)
                if isinstance(answer, httpx.Response):
                    return answer
                return httpx.Response(200, json=answer)
        return httpx.Response(404, json={"message": f"no route for {request.method} {request.url.path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self, suffix: str) -> List[Dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path.endswith(suffix) and r.content
        ]


@pytest.fixture
def recording_transport() -> Callable[[Dict[Tuple[str, str], Any]], RecordingTransport]:
    return RecordingTransport
