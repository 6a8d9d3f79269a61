"""
Encrypted storage of per-client, per-provider OAuth credentials.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from practice_metrics.clients.sqlite_store import SQLiteStore
from practice_metrics.core.errors import (
    CredentialNotFoundError,
    ReauthenticationRequiredError,
)
from practice_metrics.models.credentials import (
    CredentialType,
    StoredCredential,
    TokenBundle,
)
from practice_metrics.schemas.metrics import CredentialStatus
from practice_metrics.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CredentialVault:
    """Sole reader and writer of the ``api_credentials`` table.

    Plaintext tokens exist only in arguments to :meth:`store` and in the
    :class:`StoredCredential` returned by :meth:`retrieve`.
    """

    TABLE = "api_credentials"

    def __init__(self, store: SQLiteStore, token_cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = token_cipher
        self._store.ensure_table(
            self.TABLE,
            {
                "client_id": "TEXT NOT NULL",
                "service_name": "TEXT NOT NULL",
                "credential_type": "TEXT NOT NULL",
                "encrypted_value": "TEXT NOT NULL",
                "expiration_date": "TEXT",
                "metadata_encrypted": "TEXT",
                "created_at": "TEXT NOT NULL",
                "updated_at": "TEXT NOT NULL",
            },
            unique=("client_id", "service_name", "credential_type"),
        )

    def store(
        self,
        *,
        client_id: str,
        provider: str,
        tokens: TokenBundle,
        metadata: Optional[Dict[str, Any]] = None,
        expected_access_token: Optional[str] = None,
    ) -> bool:
        """Replace every credential row for the pair in one transaction.

        With ``expected_access_token`` the write only happens when the stored
        access token still equals it. Returns whether rows were written.
        When ``metadata`` is None the previously stored metadata is kept.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._store.transaction() as conn:
            existing = self._rows_by_type(conn, client_id, provider)
            current_access = existing.get(CredentialType.ACCESS.value)

            if expected_access_token is not None:
                if current_access is None or (
                    self._decrypt(current_access["encrypted_value"])
                    != expected_access_token
                ):
                    logger.info(
                        "Skipped credential write for client %s provider %s: "
                        "access token changed since it was read",
                        client_id,
                        provider,
                    )
                    return False

            if metadata is None and current_access and current_access["metadata_encrypted"]:
                metadata_encrypted = current_access["metadata_encrypted"]
            else:
                metadata_encrypted = self._cipher.encrypt_json(metadata or {})
            created_at = current_access["created_at"] if current_access else now

            rows = [
                (
                    CredentialType.ACCESS.value,
                    self._cipher.encrypt(tokens.access_token),
                    tokens.expires_at.isoformat() if tokens.expires_at else None,
                )
            ]
            if tokens.refresh_token:
                rows.append(
                    (
                        CredentialType.REFRESH.value,
                        self._cipher.encrypt(tokens.refresh_token),
                        None,
                    )
                )

            conn.execute(
                f"DELETE FROM {self.TABLE} WHERE client_id = ? AND service_name = ?",
                (client_id, provider),
            )
            conn.executemany(
                f"""
                INSERT INTO {self.TABLE} (
                    client_id, service_name, credential_type, encrypted_value,
                    expiration_date, metadata_encrypted, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        client_id,
                        provider,
                        credential_type,
                        encrypted_value,
                        expiration_date,
                        metadata_encrypted,
                        created_at,
                        now,
                    )
                    for credential_type, encrypted_value, expiration_date in rows
                ],
            )
        logger.info("Stored %s credentials for client %s", provider, client_id)
        return True

    def retrieve(self, *, client_id: str, provider: str) -> StoredCredential:
        """Return the decrypted credential pair or raise CredentialNotFoundError."""
        rows = self._store.select_rows(
            self.TABLE, equals={"client_id": client_id, "service_name": provider}
        )
        by_type = {row["credential_type"]: row for row in rows}
        access_row = by_type.get(CredentialType.ACCESS.value)
        if access_row is None:
            raise CredentialNotFoundError(
                f"No {provider} credential stored for client {client_id}.",
                provider=provider,
            )

        refresh_row = by_type.get(CredentialType.REFRESH.value)
        expires_at = access_row["expiration_date"]
        metadata = (
            self._decrypt(access_row["metadata_encrypted"], as_json=True)
            if access_row["metadata_encrypted"]
            else {}
        )
        return StoredCredential(
            client_id=client_id,
            provider=provider,
            access_token=self._decrypt(access_row["encrypted_value"]),
            refresh_token=(
                self._decrypt(refresh_row["encrypted_value"]) if refresh_row else None
            ),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            metadata=metadata,
            updated_at=datetime.fromisoformat(access_row["updated_at"]),
        )

    def status(self, *, client_id: str, provider: str) -> CredentialStatus:
        try:
            credential = self.retrieve(client_id=client_id, provider=provider)
        except CredentialNotFoundError:
            return CredentialStatus(provider=provider, connected=False)
        usable = bool(credential.refresh_token) or not credential.is_expired()
        return CredentialStatus(
            provider=provider,
            connected=usable,
            expires_at=credential.expires_at,
            has_refresh_token=bool(credential.refresh_token),
        )

    def delete(self, *, client_id: str, provider: str) -> bool:
        with self._store.transaction() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self.TABLE} WHERE client_id = ? AND service_name = ?",
                (client_id, provider),
            )
            removed = cursor.rowcount > 0
        if removed:
            logger.info("Removed %s credentials for client %s", provider, client_id)
        return removed

    def _rows_by_type(
        self, conn: sqlite3.Connection, client_id: str, provider: str
    ) -> Dict[str, sqlite3.Row]:
        rows: List[sqlite3.Row] = conn.execute(
            f"SELECT * FROM {self.TABLE} WHERE client_id = ? AND service_name = ?",
            (client_id, provider),
        ).fetchall()
        return {row["credential_type"]: row for row in rows}

    def _decrypt(self, ciphertext: str, *, as_json: bool = False) -> Any:
        try:
            if as_json:
                return self._cipher.decrypt_json(ciphertext)
            return self._cipher.decrypt(ciphertext)
        except ValueError as exc:
            raise ReauthenticationRequiredError(
                "Stored credential is unreadable with the current encryption secret."
            ) from exc


__all__ = ["CredentialVault"]
