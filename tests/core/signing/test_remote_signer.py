"""
Tests for the custodial remote signer, the retry wrapper and signer selection.
"""

import base64
import json
from unittest.mock import AsyncMock

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from fxsettle.config import Settings
from fxsettle.core.errors import EnvelopeRejected, InvalidTypedData, SigningBackendUnavailable
from fxsettle.core.signing import (
    LocalKeySigner,
    RemoteSigner,
    RetryingSigner,
    SignatureResult,
    build_signer,
)
from fxsettle.core.typed_data import EIP712_DOMAIN
from fxsettle.providers.custodial_wallet import CustodialWalletProvider

from conftest import TEST_ADDRESS, TEST_PRIVATE_KEY

ENTITY_SECRET = "ab" * 32
REMOTE_SIGNATURE = "0x" + "11" * 65


@pytest.fixture(scope="module")
def entity_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def entity_public_pem(entity_key):
    return entity_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture
def wallet_routes():
    return {
        ("GET", "/v1/w3s/wallets/wallet-1"): {"data": {"wallet": {"id": "wallet-1", "address": TEST_ADDRESS}}},
        ("POST", "/v1/w3s/developer/sign/typedData"): {"data": {"signature": REMOTE_SIGNATURE}},
    }


def _wallet(entity_public_pem, transport):
    return CustodialWalletProvider(
        base_url="https://wallets.test",
        api_key="TEST_API_KEY",
        entity_secret=ENTITY_SECRET,
        entity_public_key=entity_public_pem,
        transport=transport,
    )


# =============================================================================
# RemoteSigner
# =============================================================================

class TestRemoteSigner:
    """Tests for RemoteSigner over a mock wallet service."""

    @pytest.mark.asyncio
    async def test_signs_pruned_envelope(self, taker_envelope, entity_key, entity_public_pem,
                                         wallet_routes, recording_transport):
        transport = recording_transport(wallet_routes)
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")

        result = await signer.sign(taker_envelope)

        assert result == SignatureResult(signature=REMOTE_SIGNATURE, signer_address=TEST_ADDRESS)
        body = transport.bodies("/sign/typedData")[0]
        assert body["walletId"] == "wallet-1"
        sent = json.loads(body["data"])
        assert EIP712_DOMAIN not in sent["types"]
        assert sent["primaryType"] == "TakerDetails"
        assert sent["message"] == taker_envelope.message

        secret = entity_key.decrypt(
            base64.b64decode(body["entitySecretCiphertext"]),
            padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA256()), algorithm=hashes.SHA256(), label=None),
        )
        assert secret.hex() == ENTITY_SECRET

    @pytest.mark.asyncio
    async def test_bearer_auth(self, taker_envelope, entity_public_pem, wallet_routes, recording_transport):
        transport = recording_transport(wallet_routes)
        await RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1").sign(taker_envelope)
        assert all(r.headers["authorization"] == "Bearer TEST_API_KEY" for r in transport.requests)

    @pytest.mark.asyncio
    async def test_address_is_looked_up_once(self, taker_envelope, entity_public_pem,
                                             wallet_routes, recording_transport):
        transport = recording_transport(wallet_routes)
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")
        await signer.sign(taker_envelope)
        await signer.sign(taker_envelope)

        lookups = [r for r in transport.requests if r.method == "GET"]
        assert len(lookups) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 503, 429])
    async def test_transient_status_is_retryable(self, status, taker_envelope, entity_public_pem,
                                                 wallet_routes, recording_transport):
        wallet_routes[("POST", "/v1/w3s/developer/sign/typedData")] = httpx.Response(status, json={"code": status})
        transport = recording_transport(wallet_routes)
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")

        with pytest.raises(SigningBackendUnavailable) as exc_info:
            await signer.sign(taker_envelope)
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_rejection_carries_detail(self, taker_envelope, entity_public_pem,
                                            wallet_routes, recording_transport):
        detail = {"code": 156004, "message": "Invalid typed data"}
        wallet_routes[("POST", "/v1/w3s/developer/sign/typedData")] = httpx.Response(400, json=detail)
        transport = recording_transport(wallet_routes)
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")

        with pytest.raises(EnvelopeRejected) as exc_info:
            await signer.sign(taker_envelope)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == detail

    @pytest.mark.asyncio
    async def test_network_error_is_retryable(self, taker_envelope, entity_public_pem):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        signer = RemoteSigner(
            _wallet(entity_public_pem, httpx.MockTransport(handler)),
            "wallet-1",
            signer_address=TEST_ADDRESS,
        )
        with pytest.raises(SigningBackendUnavailable):
            await signer.sign(taker_envelope)

    @pytest.mark.asyncio
    async def test_missing_signature_in_response(self, taker_envelope, entity_public_pem,
                                                 wallet_routes, recording_transport):
        wallet_routes[("POST", "/v1/w3s/developer/sign/typedData")] = {"data": {}}
        transport = recording_transport(wallet_routes)
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")

        with pytest.raises(EnvelopeRejected):
            await signer.sign(taker_envelope)

    @pytest.mark.asyncio
    async def test_empty_envelope_is_refused(self, taker_envelope, entity_public_pem, recording_transport):
        transport = recording_transport({})
        signer = RemoteSigner(_wallet(entity_public_pem, transport.transport()), "wallet-1")
        taker_envelope.message = {}

        with pytest.raises(InvalidTypedData):
            await signer.sign(taker_envelope)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_entity_secret(self, taker_envelope, entity_public_pem):
        wallet = CustodialWalletProvider(
            base_url="https://wallets.test",
            api_key="k",
            entity_secret="",
            entity_public_key=entity_public_pem,
        )
        signer = RemoteSigner(wallet, "wallet-1", signer_address=TEST_ADDRESS)
        with pytest.raises(EnvelopeRejected):
            await signer.sign(taker_envelope)


# =============================================================================
# RetryingSigner
# =============================================================================

class TestRetryingSigner:
    """Tests for bounded signing retries."""

    @pytest.fixture
    def result(self):
        return SignatureResult(signature="0x01", signer_address=TEST_ADDRESS)

    def _inner(self, side_effect):
        inner = AsyncMock()
        inner.kind = "custodial"
        inner.sign = AsyncMock(side_effect=side_effect)
        return inner

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, taker_envelope, result):
        inner = self._inner([SigningBackendUnavailable(), SigningBackendUnavailable(), result])
        signer = RetryingSigner(inner, max_attempts=3, initial_delay_seconds=0)

        assert await signer.sign(taker_envelope) == result
        assert inner.sign.await_count == 3

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self, taker_envelope):
        last = SigningBackendUnavailable("still down")
        inner = self._inner([SigningBackendUnavailable(), last])
        signer = RetryingSigner(inner, max_attempts=2, initial_delay_seconds=0)

        with pytest.raises(SigningBackendUnavailable) as exc_info:
            await signer.sign(taker_envelope)
        assert exc_info.value is last

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self, taker_envelope):
        inner = self._inner(EnvelopeRejected(status_code=400))
        signer = RetryingSigner(inner, max_attempts=5, initial_delay_seconds=0)

        with pytest.raises(EnvelopeRejected):
            await signer.sign(taker_envelope)
        assert inner.sign.await_count == 1

    def test_delay_is_exponential_and_capped(self):
        signer = RetryingSigner(self._inner([]), initial_delay_seconds=1.0, max_delay_seconds=5.0)
        assert [signer.get_delay(a) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_kind_is_forwarded(self):
        assert RetryingSigner(self._inner([])).kind == "custodial"

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryingSigner(self._inner([]), max_attempts=0)


# =============================================================================
# build_signer
# =============================================================================

class TestBuildSigner:
    """Tests for signer selection."""

    def test_local_with_key(self):
        signer = build_signer("local", private_key=TEST_PRIVATE_KEY, retry=False)
        assert isinstance(signer, LocalKeySigner)
        assert signer.address == TEST_ADDRESS

    def test_local_without_key_is_ephemeral(self):
        signer = build_signer("local", retry=False)
        assert isinstance(signer, LocalKeySigner)

    def test_custodial_wrapped_in_retry(self, entity_public_pem):
        wallet = _wallet(entity_public_pem, None)
        signer = build_signer("custodial", wallet_id="wallet-1", wallet=wallet,
                              config=Settings(signing_max_attempts=4))
        assert isinstance(signer, RetryingSigner)
        assert signer.max_attempts == 4
        assert isinstance(signer.inner, RemoteSigner)

    def test_single_attempt_is_not_wrapped(self):
        signer = build_signer("local", config=Settings(signing_max_attempts=1))
        assert isinstance(signer, LocalKeySigner)

    def test_custodial_requires_wallet_id(self):
        with pytest.raises(ValueError):
            build_signer("custodial")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_signer("hsm")
