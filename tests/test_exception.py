import asyncio
import pytest
from cineverse.documents import InMemoryDocumentStore
from cineverse.identity import AuthError, IdentityProvider
from cineverse.models import CatalogItem, Identity, WatchlistEntry
from cineverse.repo import InMemoryAccountRepo
from cineverse.storage import InMemoryLocalStore, LocalStoreError, WATCHLIST_KEY, load_watchlist, save_watchlist
from cineverse.sync import WatchlistSynchronizer

class BrokenLocalStore(InMemoryLocalStore):
    def __init__(self):
        super().__init__()
        self.broken = False
    def set_item(self, key, value):
        if self.broken:
            raise LocalStoreError("disk full")
        super().set_item(key, value)

def entry(i, added_at):
    return WatchlistEntry(item=CatalogItem(id=i, title=f"M{i}"), added_at=added_at)

@pytest.fixture
def remote():
    return InMemoryDocumentStore()

def test_remote_read_failure_keeps_local_and_skips_write_back(remote):
    local = InMemoryLocalStore()
    save_watchlist(local, [entry(1, 10)])
    remote.documents["u1"] = {"watchlist": [entry(2, 20).to_dict()]}
    remote.failing.add("get")
    s = WatchlistSynchronizer(local, remote)
    asyncio.run(s.on_identity_change(Identity("u1")))
    assert [e.id for e in s.watchlist] == [1]
    assert s.syncing is False and s.synced is False
    # remote copy untouched
    assert remote.upserts == []
    assert [r["id"] for r in remote.documents["u1"]["watchlist"]] == [2]

def test_remote_write_failure_during_sync_keeps_merge(remote):
    local = InMemoryLocalStore()
    save_watchlist(local, [entry(1, 10)])
    remote.documents["u1"] = {"watchlist": [entry(2, 20).to_dict()]}
    remote.failing.add("upsert")
    s = WatchlistSynchronizer(local, remote)
    asyncio.run(s.on_identity_change(Identity("u1")))
    assert [e.id for e in s.watchlist] == [2, 1]
    assert [e.id for e in load_watchlist(local)] == [2, 1]
    assert s.syncing is False and s.synced is False

def test_malformed_remote_document_ignored(remote):
    local = InMemoryLocalStore()
    save_watchlist(local, [entry(1, 10)])
    remote.documents["u1"] = {"watchlist": "oops"}
    s = WatchlistSynchronizer(local, remote)
    asyncio.run(s.on_identity_change(Identity("u1")))
    assert [r["id"] for r in remote.documents["u1"]["watchlist"]] == [1]

def test_best_effort_push_failure_reported_not_raised(remote):
    async def scenario():
        s = WatchlistSynchronizer(InMemoryLocalStore(), remote)
        await s.on_identity_change(Identity("u1"))
        remote.failing.add("upsert")
        m = s.add(CatalogItem(id=3, title="Three"))
        return s, await m.push
    s, result = asyncio.run(scenario())
    assert result.ok is False and "permission" in result.error
    assert s.is_present(3) and s.synced is False

def test_local_write_failure_leaves_memory_untouched(remote):
    local = BrokenLocalStore()
    s = WatchlistSynchronizer(local, remote)
    s.add(CatalogItem(id=1, title="One"))
    local.broken = True
    with pytest.raises(LocalStoreError):
        s.add(CatalogItem(id=2, title="Two"))
    with pytest.raises(LocalStoreError):
        s.clear()
    assert [e.id for e in s.watchlist] == [1]

def test_push_without_running_loop_is_skipped(remote):
    s = WatchlistSynchronizer(InMemoryLocalStore(), remote)
    s.identity = Identity("u1")
    m = s.add(CatalogItem(id=1, title="One"))
    assert m.action == "added" and m.push is None
    assert remote.upserts == []

def test_catalog_item_requires_id_and_title():
    with pytest.raises(ValueError):
        CatalogItem.from_dict({"title": "x"})
    with pytest.raises(ValueError):
        CatalogItem.from_dict({"id": "abc", "title": "x"})
    with pytest.raises(ValueError):
        WatchlistEntry.from_dict({"id": 1, "title": "x"})

# ---------- Identity ----------
@pytest.fixture
def provider():
    return IdentityProvider(InMemoryAccountRepo(), InMemoryLocalStore())

def test_sign_up_duplicate_email(provider):
    asyncio.run(provider.sign_up("a@example.com", "secret1"))
    with pytest.raises(AuthError) as exc:
        asyncio.run(provider.sign_up("A@Example.com", "secret2"))
    assert exc.value.code == "auth/email-already-in-use"

@pytest.mark.parametrize("email,secret,code", [
    ("not-an-email", "secret1", "auth/invalid-email"),
    ("b@example.com", "123", "auth/weak-password"),
])
def test_sign_up_invalid_input(provider, email, secret, code):
    with pytest.raises(AuthError) as exc:
        asyncio.run(provider.sign_up(email, secret))
    assert exc.value.code == code

def test_sign_in_wrong_password(provider):
    asyncio.run(provider.sign_up("c@example.com", "secret1"))
    with pytest.raises(AuthError, match="invalid email or password"):
        asyncio.run(provider.sign_in("c@example.com", "wrong-one"))
    with pytest.raises(AuthError):
        asyncio.run(provider.sign_in("nobody@example.com", "secret1"))

def test_out_of_range_numbers_read_as_unparsable():
    local = InMemoryLocalStore()
    local.set_item(WATCHLIST_KEY, '[{"id": 1e999, "title": "x", "addedAt": 1}]')
    assert load_watchlist(local) == []
    assert WatchlistSynchronizer(local, InMemoryDocumentStore()).watchlist == []
    with pytest.raises(ValueError):
        WatchlistEntry.from_dict({"id": 1, "title": "x", "addedAt": float("inf")})

def test_listener_error_during_sync_resets_syncing(remote):
    s = WatchlistSynchronizer(InMemoryLocalStore(), remote)

    def listener(entries, syncing):
        if syncing:
            raise RuntimeError("listener failed")
    s.subscribe(listener)
    with pytest.raises(RuntimeError):
        asyncio.run(s.on_identity_change(Identity("u1")))
    assert s.syncing is False
