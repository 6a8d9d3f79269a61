"""Symmetric encryption for credential values kept at rest."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt and decrypt credential strings with a Fernet key derived from a secret.

    The secret is injected at construction; nothing here reads process
    environment.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Stored credential could not be decrypted with the configured secret."
            ) from exc
        return plaintext.decode("utf-8")

    def encrypt_json(self, payload: Dict[str, Any]) -> str:
        return self.encrypt(json.dumps(payload, separators=(",", ":"), sort_keys=True))

    def decrypt_json(self, ciphertext: str) -> Dict[str, Any]:
        return json.loads(self.decrypt(ciphertext))


__all__ = ["TokenCipherService"]
