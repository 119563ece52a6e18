"""Tests for encrypted client storage."""

from bizflow.client.storage import (
    CURRENT_TENANT_KEY,
    TOKENS_KEY,
    FileBackend,
    MemoryBackend,
    SecureStorage,
    TenantStore,
    TokenStore,
)
from bizflow.schemas.tenant import CurrentTenant

from tests.factories import make_tenant

SALON = CurrentTenant(id="t1", name="Acme Salon", slug="acme-salon", business_type="salon")


def test_values_are_encrypted_at_rest(backend, storage):
    storage.set_json("secret", {"accessToken": "plain-token"})

    blob = backend.read("secret")
    assert "plain-token" not in blob
    assert storage.get_json("secret") == {"accessToken": "plain-token"}


def test_corrupt_blob_reads_as_missing_and_is_deleted(backend, storage):
    backend.write(TOKENS_KEY, "definitely-not-fernet")

    assert storage.get_json(TOKENS_KEY) is None
    assert backend.read(TOKENS_KEY) is None


def test_wrong_passphrase_reads_as_missing(backend, storage):
    storage.set_json("k", [1, 2, 3])

    other = SecureStorage(backend, "another-passphrase")

    assert other.get_json("k") is None


class TestTokenStore:
    def test_round_trip_and_clear(self, token_store):
        token_store.save("access", "refresh")

        stored = token_store.read()
        assert (stored.access_token, stored.refresh_token) == ("access", "refresh")

        token_store.clear()
        assert token_store.read() is None

    def test_unexpected_shape_is_cleared(self, storage, token_store):
        storage.set_json(TOKENS_KEY, {"refreshToken": "r"})

        assert token_store.read() is None
        assert storage.get_json(TOKENS_KEY) is None


class TestTenantStore:
    def test_save_current_reads_back(self, tenant_store):
        assert tenant_store.save_current(SALON) is True
        assert tenant_store.read_current() == SALON
        assert tenant_store.read_current_id() == "t1"

    def test_save_current_reports_failed_persist(self, storage):
        class DroppingBackend(MemoryBackend):
            def write(self, key, value):
                pass

        store = TenantStore(SecureStorage(DroppingBackend(), "test-passphrase"))

        assert store.save_current(SALON) is False

    def test_tenant_list(self, tenant_store):
        tenants = [make_tenant("t1"), make_tenant("t2", enabled_modules=["customers"])]
        tenant_store.save_tenants(tenants)

        assert tenant_store.read_tenants() == tenants

    def test_malformed_current_is_cleared(self, storage, tenant_store):
        storage.set_json(CURRENT_TENANT_KEY, {"id": "t1"})

        assert tenant_store.read_current() is None
        assert storage.get_json(CURRENT_TENANT_KEY) is None

    def test_clear_forgets_selection_and_list(self, tenant_store):
        tenant_store.save_current(SALON)
        tenant_store.save_tenants([make_tenant("t1")])

        tenant_store.clear()

        assert tenant_store.read_current() is None
        assert tenant_store.read_tenants() == []


class TestFileBackend:
    def test_persists_across_instances(self, tmp_path):
        first = TokenStore(SecureStorage(FileBackend(str(tmp_path)), "pass"))
        first.save("access", "refresh")

        second = TokenStore(SecureStorage(FileBackend(str(tmp_path)), "pass"))

        assert second.read().access_token == "access"
        assert (tmp_path / f"{TOKENS_KEY}.enc").exists()

    def test_delete_missing_key(self, tmp_path):
        backend = FileBackend(str(tmp_path / "nested"))

        backend.delete("nothing")

        assert backend.read("nothing") is None
