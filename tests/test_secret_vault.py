"""
Tests for secret encoding and the secret vault.
"""

import httpx
import pytest
from unittest.mock import patch, AsyncMock
from cryptography.fernet import Fernet

from adpulse.config import Settings
from adpulse.crypto import PREFIX, decode_secret, encode_secret, reset_fernet
from adpulse.errors import CredentialError, DecodeError
from adpulse.schemas import IntegrationSecret, SecretStatus, SecretType
from adpulse.services.secret_vault import SecretVault, mask


@pytest.fixture
def fernet_settings():
    reset_fernet()
    settings = Settings(encryption_key=Fernet.generate_key().decode())
    with patch("adpulse.crypto.get_settings", return_value=settings):
        yield settings
    reset_fernet()


def test_encode_decode_without_key():
    reset_fernet()
    encoded = encode_secret("EAAB-token")
    assert encoded.startswith(PREFIX)
    assert "EAAB-token" not in encoded
    assert decode_secret(encoded) == "EAAB-token"


def test_encode_decode_with_fernet_key(fernet_settings):
    encoded = encode_secret("EAAB-token")
    assert encoded.startswith(PREFIX)
    assert decode_secret(encoded) == "EAAB-token"


@pytest.mark.parametrize("value", ["plaintext-token", "enc:%%%not-base64%%%", ""])
def test_decode_rejects_malformed_values(value):
    reset_fernet()
    with pytest.raises(DecodeError):
        decode_secret(value)


def test_mask_shows_last_four():
    assert mask("abcdefgh1234") == "********1234"
    assert mask("abc") == "***"
    assert mask("") == ""


@pytest.mark.anyio
async def test_store_replaces_prior_secret_and_resets_status(repo):
    vault = SecretVault(repo)
    await vault.store(SecretType.FACEBOOK, "first")
    await vault.mark(SecretType.FACEBOOK, SecretStatus.VALID)
    await vault.store(SecretType.FACEBOOK, "second")

    facebook = [s for s in repo.secrets if s.type == SecretType.FACEBOOK]
    assert len(facebook) == 1
    assert facebook[0].status == SecretStatus.UNTESTED
    assert vault.reveal(facebook[0]) == "second"


@pytest.mark.anyio
async def test_store_rejects_empty_secret(repo):
    with pytest.raises(CredentialError):
        await SecretVault(repo).store(SecretType.AI, "   ")


def test_reveal_returns_empty_for_undecodable_value(repo):
    vault = SecretVault(repo)
    bad = IntegrationSecret(type=SecretType.FACEBOOK, value="not-encoded")
    assert vault.reveal(bad) == ""
    assert vault.reveal(None) == ""


def _me_transport(status_code: int, body: dict) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(status_code, json=body)))


@pytest.mark.anyio
async def test_test_facebook_marks_valid(repo):
    async with _me_transport(200, {"id": "1", "name": "Owner"}) as http:
        vault = SecretVault(repo, http_client=http)
        await vault.store(SecretType.FACEBOOK, "token")
        result = await vault.test_facebook()

    assert result["status"] == "connected"
    secret = vault.get(SecretType.FACEBOOK)
    assert secret.status == SecretStatus.VALID
    assert secret.last_tested_at is not None


@pytest.mark.anyio
async def test_test_facebook_marks_invalid_and_raises(repo):
    async with _me_transport(400, {"error": {"message": "Invalid OAuth access token."}}) as http:
        vault = SecretVault(repo, http_client=http)
        await vault.store(SecretType.FACEBOOK, "token")
        with pytest.raises(CredentialError, match="Invalid OAuth"):
            await vault.test_facebook()

    assert vault.get(SecretType.FACEBOOK).status == SecretStatus.INVALID


@pytest.mark.anyio
async def test_test_ai_uses_stored_key(repo):
    vault = SecretVault(repo)
    await vault.store(SecretType.AI, "sk-test")
    with patch(
        "adpulse.services.ai_service.test_connection",
        new_callable=AsyncMock,
        return_value={"status": "connected"},
    ) as mock_test:
        await vault.test_ai()

    mock_test.assert_awaited_once_with(api_key="sk-test")
    assert vault.get(SecretType.AI).status == SecretStatus.VALID
