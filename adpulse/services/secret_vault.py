"""
Secret Vault — one active integration secret per type, reversibly encoded.

Saving a secret replaces the prior one of the same type and resets its status
to UNTESTED. Credential tests update status to VALID/INVALID and persist.
"""

import logging
from typing import Optional

from adpulse.crypto import decode_secret, encode_secret
from adpulse.errors import CredentialError, DecodeError
from adpulse.meta_client import create_meta_client
from adpulse.schemas import IntegrationSecret, SecretStatus, SecretType
from adpulse.services import ai_service
from adpulse.services.repository import SECRETS
from adpulse.utils import utcnow

logger = logging.getLogger(__name__)


def mask(value: str) -> str:
    """Show only the last 4 characters of a plaintext secret."""
    if not value:
        return ""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * 8 + value[-4:]


class SecretVault:
    def __init__(self, repo, http_client=None, network=None):
        self.repo = repo
        self.http_client = http_client
        self.network = network

    def get(self, secret_type: SecretType) -> Optional[IntegrationSecret]:
        return next((s for s in self.repo.secrets if s.type == secret_type), None)

    def reveal(self, secret: Optional[IntegrationSecret]) -> str:
        """Plaintext for ``secret``; "" when absent or undecodable."""
        if secret is None:
            return ""
        try:
            return decode_secret(secret.value)
        except DecodeError as e:
            logger.error(f"Stored {secret.type.value} secret could not be decoded: {e}")
            return ""

    def reveal_type(self, secret_type: SecretType) -> str:
        return self.reveal(self.get(secret_type))

    async def store(self, secret_type: SecretType, plaintext: str) -> IntegrationSecret:
        plaintext = (plaintext or "").strip()
        if not plaintext:
            raise CredentialError(f"{secret_type.value} secret cannot be empty")
        secret = IntegrationSecret(type=secret_type, value=encode_secret(plaintext))
        others = [s for s in self.repo.secrets if s.type != secret_type]
        await self.repo.save(SECRETS, [*others, secret])
        logger.info(f"Stored {secret_type.value} secret (status reset to UNTESTED)")
        return secret

    async def mark(self, secret_type: SecretType, status: SecretStatus) -> Optional[IntegrationSecret]:
        secret = self.get(secret_type)
        if secret is None:
            return None
        updated = secret.model_copy(update={"status": status, "last_tested_at": utcnow().isoformat()})
        await self.repo.save(
            SECRETS, [updated if s.type == secret_type else s for s in self.repo.secrets]
        )
        return updated

    def describe(self) -> list[dict]:
        """Masked listing for the settings screen."""
        return [
            {
                "type": s.type.value,
                "masked": mask(self.reveal(s)),
                "status": s.status.value,
                "updated_at": s.updated_at,
                "last_tested_at": s.last_tested_at,
            }
            for s in self.repo.secrets
        ]

    async def test_facebook(self) -> dict:
        """
        Validate the stored ads-platform token against GET /me.
        Marks VALID on success; marks INVALID and raises CredentialError otherwise.
        """
        token = self.reveal_type(SecretType.FACEBOOK)
        if not token:
            raise CredentialError("No FACEBOOK token stored")

        client = create_meta_client(token, http_client=self.http_client, network=self.network)
        result = await client.test_connection()
        if result["status"] != "connected":
            await self.mark(SecretType.FACEBOOK, SecretStatus.INVALID)
            raise CredentialError(f"Facebook token rejected: {result.get('error')}")

        await self.mark(SecretType.FACEBOOK, SecretStatus.VALID)
        return result

    async def test_ai(self) -> dict:
        key = self.reveal_type(SecretType.AI)
        result = await ai_service.test_connection(api_key=key or None)
        status = SecretStatus.VALID if result.get("status") == "connected" else SecretStatus.INVALID
        await self.mark(SecretType.AI, status)
        if status == SecretStatus.INVALID:
            raise CredentialError(f"AI key rejected: {result.get('error')}")
        return result
