"""
Tests for settings, error mapping, numeric helpers and the CLI.
"""

import json

import pytest

import cli
from fxsettle.api.errors import status_for
from fxsettle.config import Settings
from fxsettle.core.encoding import is_hex_string, parse_uint256, to_decimal_string
from fxsettle.core.errors import (
    AbiAssemblyError,
    ContractRejection,
    EnvelopeRejected,
    InvalidPrivateKey,
    ServiceUnavailable,
    SigningBackendUnavailable,
)

from conftest import TEST_ADDRESS, TEST_PRIVATE_KEY


class TestSettings:
    """Tests for Settings."""

    def test_verifying_contract_defaults_to_escrow(self):
        config = Settings(escrow_contract_address="0x" + "aa" * 20, escrow_verifying_contract="")
        assert config.escrow_verifying_contract == "0x" + "aa" * 20

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CHAIN_ID", "1")
        monkeypatch.setenv("API_KEY", "from-env")
        config = Settings()

        assert config.chain_id == 1
        assert config.stablefx_api_key == "from-env"
        assert config.has_stablefx_key

    def test_wallet_credentials(self):
        assert not Settings(wallet_api_key="k", entity_secret="").has_wallet_credentials
        assert Settings(wallet_api_key="k", entity_secret="ab").has_wallet_credentials


class TestErrors:
    """Tests for error classification and HTTP mapping."""

    def test_status_mapping(self):
        assert status_for(AbiAssemblyError("permit.nonce")) == 422
        assert status_for(InvalidPrivateKey()) == 401
        assert status_for(SigningBackendUnavailable()) == 503
        assert status_for(ServiceUnavailable("stablefx")) == 503
        assert status_for(ContractRejection({"message": "reverted"})) == 502
        assert status_for(EnvelopeRejected(status_code=400)) == 502

    def test_to_dict(self):
        payload = AbiAssemblyError("permit.permitted[1].amount").to_dict()
        assert payload["error"] == "AbiAssemblyError"
        assert payload["category"] == "validation"
        assert payload["details"] == {"path": "permit.permitted[1].amount"}


class TestEncoding:
    """Tests for the numeric helpers."""

    def test_parse_uint256(self):
        assert parse_uint256("0x10") == 16
        assert parse_uint256(" 42 ") == 42
        assert to_decimal_string(2**255) == str(2**255)

    @pytest.mark.parametrize("value", [-1, 2**256, "1e6", "", True, 1.0])
    def test_rejects(self, value):
        with pytest.raises((TypeError, ValueError)):
            parse_uint256(value)

    def test_is_hex_string(self):
        assert is_hex_string("0x" + "00" * 32, 32)
        assert not is_hex_string("0x123")
        assert not is_hex_string("1234")


class TestCli:
    """Tests for the command-line entry points."""

    @pytest.fixture
    def envelope_file(self, tmp_path, taker_envelope):
        path = tmp_path / "typed-data.json"
        payload = taker_envelope.to_dict()
        payload["types"]["EIP712Domain"] = [{"name": "name", "type": "string"}]
        path.write_text(json.dumps({"typedData": payload}))
        return str(path)

    @pytest.mark.asyncio
    async def test_resolve(self, capsys):
        assert await cli.main(["resolve", "maker", "net", "1", "2"]) == 0
        out = capsys.readouterr().out
        assert "makerNetDeliver" in out

    @pytest.mark.asyncio
    async def test_resolve_invalid(self, capsys):
        assert await cli.main(["resolve", "taker", "net", "1"]) == 1
        assert "InvalidFundingModeCombination" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_prune(self, capsys, envelope_file):
        assert await cli.main(["prune", envelope_file]) == 0
        printed = json.loads(capsys.readouterr().out)
        assert "EIP712Domain" not in printed["types"]

    @pytest.mark.asyncio
    async def test_sign(self, capsys, monkeypatch, envelope_file):
        monkeypatch.setenv(cli.PRIVATE_KEY_ENV, TEST_PRIVATE_KEY)
        assert await cli.main(["sign", envelope_file]) == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["signerAddress"] == TEST_ADDRESS

    @pytest.mark.asyncio
    async def test_sign_without_key(self, capsys, monkeypatch, envelope_file):
        monkeypatch.delenv(cli.PRIVATE_KEY_ENV, raising=False)
        assert await cli.main(["sign", envelope_file]) == 1


class TestLogging:
    """Tests for the logging processors."""

    def test_redacts_signing_secrets(self):
        from fxsettle.logging_config import redact_secrets

        event = redact_secrets(None, "info", {"event": "deliver", "relayer_private_key": "0xac09", "tradeId": 42})
        assert event == {"event": "deliver", "relayer_private_key": "***", "tradeId": 42}


class TestPackaging:
    """Tests for the project metadata."""

    def test_metadata_does_not_publish_design_documents(self):
        tomllib = pytest.importorskip("tomllib")
        from pathlib import Path

        pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
        project = tomllib.loads(pyproject.read_text())["project"]

        assert "readme" not in project
        assert project["scripts"]["fxsettle"] == "cli:run"
