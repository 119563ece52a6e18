"""
Encrypted Client Storage

Persists the session (tokens, current tenant, tenant list) on the
device. Values are JSON, encrypted with Fernet; the Fernet key is
derived from STORAGE_ENCRYPTION_KEY with PBKDF2.

NOTE: A blob that fails to decrypt or parse is treated exactly like a
missing value and deleted, so a corrupted store restarts the user at
login instead of crashing the app.
"""
import base64
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from bizflow.schemas.base import WireModel
from bizflow.schemas.tenant import CurrentTenant, TenantResponse
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)

TOKENS_KEY = "auth_tokens"
CURRENT_TENANT_KEY = "current_tenant"
TENANTS_KEY = "tenants"

# Fixed salt: the same passphrase must open the store across restarts
_KDF_SALT = b"bizflow-client-storage"
_KDF_ITERATIONS = 100000


class MemoryBackend:
    """In-process backend. Nothing survives a restart."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileBackend:
    """One file per key under a directory."""

    def __init__(self, directory: str):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.enc"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        # Write-then-rename so a crash never leaves half a blob behind
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


def derive_key(passphrase: str) -> bytes:
    """Turn a passphrase into a urlsafe base64 Fernet key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class SecureStorage:
    """Fernet-encrypted JSON values over a pluggable backend."""

    def __init__(self, backend, passphrase: str):
        self._backend = backend
        self._cipher = Fernet(derive_key(passphrase))

    def get_json(self, key: str) -> Optional[Any]:
        blob = self._backend.read(key)
        if blob is None:
            return None
        try:
            raw = self._cipher.decrypt(blob.encode("utf-8"))
            return json.loads(raw.decode("utf-8"))
        except (InvalidToken, ValueError) as e:
            logger.warning(f"Discarding unreadable stored value '{key}': {type(e).__name__}")
            self._backend.delete(key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        raw = json.dumps(value).encode("utf-8")
        self._backend.write(key, self._cipher.encrypt(raw).decode("utf-8"))

    def delete(self, key: str) -> None:
        self._backend.delete(key)


class StoredTokens(WireModel):
    access_token: str
    refresh_token: Optional[str] = None


class TokenStore:
    """{accessToken, refreshToken} for the signed-in user."""

    def __init__(self, storage: SecureStorage):
        self._storage = storage

    def read(self) -> Optional[StoredTokens]:
        data = self._storage.get_json(TOKENS_KEY)
        if data is None:
            return None
        try:
            return StoredTokens.model_validate(data)
        except ValidationError:
            logger.warning("Stored tokens have an unexpected shape, clearing")
            self.clear()
            return None

    def save(self, access_token: str, refresh_token: Optional[str]) -> None:
        self._storage.set_json(
            TOKENS_KEY,
            StoredTokens(access_token=access_token, refresh_token=refresh_token).to_wire(),
        )

    def clear(self) -> None:
        self._storage.delete(TOKENS_KEY)


class TenantStore:
    """
    Current tenant selection plus the list of tenants the user can reach.

    The list is kept so the tenant picker can render before the network
    answers.
    """

    def __init__(self, storage: SecureStorage):
        self._storage = storage

    def read_current(self) -> Optional[CurrentTenant]:
        data = self._storage.get_json(CURRENT_TENANT_KEY)
        if data is None:
            return None
        try:
            return CurrentTenant.model_validate(data)
        except ValidationError:
            logger.warning("Stored tenant has an unexpected shape, clearing")
            self.clear_current()
            return None

    def read_current_id(self) -> Optional[str]:
        current = self.read_current()
        return current.id if current else None

    def save_current(self, tenant: CurrentTenant) -> bool:
        """
        Persist the current tenant and read it back.

        Returns False when the read-back does not match what was written.
        """
        self._storage.set_json(CURRENT_TENANT_KEY, tenant.to_wire())
        verified = self.read_current() == tenant
        if not verified:
            logger.error(f"Tenant selection did not persist: {tenant.id}", extra={"tenant_id": tenant.id})
        return verified

    def clear_current(self) -> None:
        self._storage.delete(CURRENT_TENANT_KEY)

    def read_tenants(self) -> List[TenantResponse]:
        data = self._storage.get_json(TENANTS_KEY)
        if not isinstance(data, list):
            return []
        try:
            return [TenantResponse.model_validate(item) for item in data]
        except ValidationError:
            logger.warning("Stored tenant list has an unexpected shape, clearing")
            self._storage.delete(TENANTS_KEY)
            return []

    def save_tenants(self, tenants: List[TenantResponse]) -> None:
        self._storage.set_json(TENANTS_KEY, [t.to_wire() for t in tenants])

    def clear(self) -> None:
        """Forget the selection and the cached list (logout)."""
        self.clear_current()
        self._storage.delete(TENANTS_KEY)
