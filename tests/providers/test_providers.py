"""
Tests for the trade service, custodial wallet and JSON-RPC clients.
"""

import json

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from fxsettle.core.errors import ServiceRequestError, ServiceUnavailable
from fxsettle.providers import CustodialWalletProvider, JsonRpcError, RpcProvider, StableFXProvider


def _stablefx(transport, api_key="TEST_KEY"):
    return StableFXProvider(base_url="https://fx.test/v1/exchange/stablefx", api_key=api_key, transport=transport)


# =============================================================================
# StableFX
# =============================================================================

class TestStableFXProvider:
    """Tests for StableFXProvider request shapes and error mapping."""

    @pytest.mark.asyncio
    async def test_create_trade(self, recording_transport):
        transport = recording_transport({("POST", "/stablefx/trades"): {"id": "trade-1", "contractTradeId": "42"}})
        provider = _stablefx(transport.transport())

        response = await provider.create_trade({"idempotencyKey": "k", "quoteId": "q-1"})

        assert response["id"] == "trade-1"
        request = transport.requests[0]
        assert request.headers["authorization"] == "Bearer TEST_KEY"
        assert json.loads(request.content) == {"idempotencyKey": "k", "quoteId": "q-1"}

    @pytest.mark.asyncio
    async def test_list_trades_drops_empty_params(self, recording_transport):
        transport = recording_transport({("GET", "/stablefx/trades"): {"data": []}})
        await _stablefx(transport.transport()).list_trades("Maker", status="confirmed")

        params = dict(transport.requests[0].url.params)
        assert params == {"type": "maker", "status": "confirmed"}

    @pytest.mark.asyncio
    async def test_trade_presign_path(self, recording_transport):
        transport = recording_transport({("GET", "/signatures/presign/taker/trade-1"): {"typedData": {}}})
        await _stablefx(transport.transport()).get_trade_presign("taker", "trade-1", recipient_address="0xabc")

        assert transport.requests[0].url.params["recipientAddress"] == "0xabc"

    @pytest.mark.asyncio
    async def test_funding_presign_payload(self, recording_transport):
        transport = recording_transport({("POST", "/signatures/funding/presign"): {"typedData": {}}})
        await _stablefx(transport.transport()).get_funding_presign("maker", "net", [1, 2])

        assert transport.bodies("/signatures/funding/presign")[0] == {
            "contractTradeIds": ["1", "2"],
            "type": "maker",
            "fundingMode": "net",
        }

    @pytest.mark.asyncio
    async def test_register_signature_payload(self, recording_transport):
        transport = recording_transport({("POST", "/stablefx/signatures"): {}})
        await _stablefx(transport.transport()).register_signature(
            "trade-1", "taker", "0xabc", {"fee": "1"}, "0xsig",
        )
        assert transport.bodies("/signatures")[0] == {
            "tradeId": "trade-1",
            "type": "taker",
            "address": "0xabc",
            "details": {"fee": "1"},
            "signature": "0xsig",
        }

    @pytest.mark.asyncio
    async def test_fund_sends_mode_only_when_given(self, recording_transport):
        transport = recording_transport({("POST", "/stablefx/fund"): {"status": "pending"}})
        provider = _stablefx(transport.transport())
        await provider.fund("taker", {"nonce": "1"}, "0xsig")
        await provider.fund("maker", {"nonce": "1"}, "0xsig", funding_mode="net")

        taker_body, maker_body = transport.bodies("/fund")
        assert "fundingMode" not in taker_body
        assert maker_body["fundingMode"] == "net"

    @pytest.mark.asyncio
    async def test_error_body_passed_through(self, recording_transport):
        detail = {"code": 2, "message": "Quote expired"}
        transport = recording_transport({("POST", "/stablefx/trades"): httpx.Response(400, json=detail)})

        with pytest.raises(ServiceRequestError) as exc_info:
            await _stablefx(transport.transport()).create_trade({"quoteId": "q"})
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == detail

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, recording_transport):
        transport = recording_transport({("POST", "/stablefx/quotes"): httpx.Response(502, text="bad gateway")})

        with pytest.raises(ServiceUnavailable) as exc_info:
            await _stablefx(transport.transport()).create_quote({})
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ServiceUnavailable):
            await _stablefx(httpx.MockTransport(handler)).create_quote({})

    @pytest.mark.asyncio
    async def test_get_trade_path(self, recording_transport):
        transport = recording_transport({("GET", "/stablefx/trades/trade-1"): {"id": "trade-1", "status": "confirmed"}})
        trade = await _stablefx(transport.transport()).get_trade("trade-1", "Taker")

        assert trade["status"] == "confirmed"
        assert transport.requests[0].url.params["type"] == "taker"

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            await _stablefx(None).get_trade("t", "relayer")

    @pytest.mark.asyncio
    async def test_health_check_without_key(self):
        assert (await _stablefx(None, api_key="").health_check())["status"] == "disabled"


# =============================================================================
# Custodial wallet
# =============================================================================

class TestCustodialWalletProvider:
    """Tests for entity-secret handling and contract execution."""

    @pytest.fixture
    def public_pem(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    @pytest.mark.asyncio
    async def test_public_key_fetched_once(self, public_pem, recording_transport):
        transport = recording_transport({
            ("GET", "/config/entity/publicKey"): {"data": {"publicKey": public_pem}},
            ("POST", "/sign/typedData"): {"data": {"signature": "0x01"}},
        })
        wallet = CustodialWalletProvider(
            base_url="https://wallets.test", api_key="k", entity_secret="cd" * 32,
            transport=transport.transport(),
        )
        await wallet.sign_typed_data("w", "{}")
        await wallet.sign_typed_data("w", "{}")

        assert len([r for r in transport.requests if r.method == "GET"]) == 1
        first, second = transport.bodies("/sign/typedData")
        assert first["entitySecretCiphertext"] != second["entitySecretCiphertext"]

    @pytest.mark.asyncio
    async def test_execute_contract_payload(self, public_pem, recording_transport):
        transport = recording_transport({
            ("POST", "/transactions/contractExecution"): {"data": {"id": "tx-1", "state": "INITIATED"}},
        })
        wallet = CustodialWalletProvider(
            base_url="https://wallets.test", api_key="k", entity_secret="cd" * 32,
            entity_public_key=public_pem, transport=transport.transport(),
        )
        await wallet.execute_contract(
            "w-1", "0xescrow", "breach(uint256)", ["12"], ref_id="breach:12", fee_level="HIGH",
        )

        body = transport.bodies("/contractExecution")[0]
        assert body["walletId"] == "w-1"
        assert body["contractAddress"] == "0xescrow"
        assert body["abiFunctionSignature"] == "breach(uint256)"
        assert body["abiParameters"] == ["12"]
        assert body["feeLevel"] == "HIGH"
        assert body["refId"] == "breach:12"
        assert body["idempotencyKey"]

    @pytest.mark.asyncio
    async def test_get_transaction_path(self, recording_transport):
        transport = recording_transport({
            ("GET", "/v1/w3s/transactions/tx-1"): {"data": {"transaction": {"id": "tx-1", "state": "CONFIRMED"}}},
        })
        wallet = CustodialWalletProvider(base_url="https://wallets.test", api_key="k", transport=transport.transport())

        payload = await wallet.get_transaction("tx-1")
        assert payload["data"]["transaction"]["state"] == "CONFIRMED"

    @pytest.mark.asyncio
    async def test_health_check_disabled_without_credentials(self):
        wallet = CustodialWalletProvider(base_url="https://wallets.test", api_key="", entity_secret="")
        assert (await wallet.health_check())["status"] == "disabled"


# =============================================================================
# JSON-RPC
# =============================================================================

class TestRpcProvider:
    """Tests for the JSON-RPC client."""

    @pytest.mark.asyncio
    async def test_hex_results_are_parsed(self):
        def handler(request):
            payload = json.loads(request.content)
            results = {"eth_chainId": "0xaa36a7", "eth_gasPrice": "0x3b9aca00"}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": results[payload["method"]]})

        rpc = RpcProvider("https://rpc.test", transport=httpx.MockTransport(handler))
        assert await rpc.chain_id() == 11155111
        assert await rpc.gas_price() == 1_000_000_000

    @pytest.mark.asyncio
    async def test_error_object_kept_verbatim(self):
        error = {"code": 3, "message": "execution reverted", "data": "0x08c379a0"}

        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": error})

        rpc = RpcProvider("https://rpc.test", transport=httpx.MockTransport(handler))
        with pytest.raises(JsonRpcError) as exc_info:
            await rpc.send_raw_transaction("0x00")
        assert exc_info.value.to_dict() == error

    @pytest.mark.asyncio
    async def test_health_check_reports_errors(self):
        def handler(request):
            return httpx.Response(503, text="down")

        rpc = RpcProvider("https://rpc.test", transport=httpx.MockTransport(handler))
        assert (await rpc.health_check())["status"] == "error"
