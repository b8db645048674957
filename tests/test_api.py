import io
import json
import pytest
from run import create_app
from cineverse.catalog import load_catalog
from cineverse.documents import InMemoryDocumentStore
from cineverse.identity import IdentityProvider
from cineverse.loop import EventLoopThread
from cineverse.repo import InMemoryAccountRepo
from cineverse.service import DiscoveryService
from cineverse.storage import InMemoryLocalStore
from cineverse.sync import WatchlistSynchronizer

@pytest.fixture
def api_client():
    """Flask test client wired to in-memory stores and the bundled catalog."""
    local = InMemoryLocalStore()
    remote = InMemoryDocumentStore()
    sync = WatchlistSynchronizer(local, remote)
    identity = IdentityProvider(InMemoryAccountRepo(), local)
    svc = DiscoveryService(sync, identity, load_catalog(), EventLoopThread(timeout=5))
    app = create_app(svc)
    app.testing = True
    with app.test_client() as client:
        yield client, svc, remote
    svc.close()

ITEM = {"id": 603, "title": "The Matrix", "release_date": "1999-03-30", "vote_average": 8.2,
        "genre_ids": [28, 878], "original_language": "en"}

def test_index(api_client):
    client, svc, _ = api_client
    resp = client.get("/")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["movies"] == len(svc.list_movies()) and data["identity"] is None

def test_add_list_remove_watchlist(api_client):
    client, svc, _ = api_client
    resp = client.post("/watchlist", json=ITEM)
    assert resp.status_code == 201 and resp.get_json()["status"] == "added"
    resp = client.post("/watchlist", json=ITEM)
    assert resp.status_code == 200 and resp.get_json()["status"] == "unchanged"

    data = client.get("/watchlist").get_json()
    assert data["count"] == 1 and data["entries"][0]["title"] == "The Matrix"
    assert "addedAt" in data["entries"][0]

    resp = client.delete("/watchlist/603")
    assert resp.get_json()["status"] == "removed"
    assert client.get("/watchlist").get_json()["count"] == 0

def test_toggle_and_clear(api_client):
    client, _, _ = api_client
    assert client.post("/watchlist/toggle", json=ITEM).get_json()["status"] == "added"
    assert client.post("/watchlist/toggle", json=ITEM).get_json()["status"] == "removed"
    client.post("/watchlist/toggle", json=ITEM)
    assert client.post("/watchlist/clear").get_json()["status"] == "cleared"
    assert client.get("/watchlist").get_json()["entries"] == []

def test_add_invalid_payload_returns_400(api_client):
    client, _, _ = api_client
    resp = client.post("/watchlist", json={"title": "no id"})
    assert resp.status_code == 400 and "error" in resp.get_json()
    resp = client.post("/watchlist", data="plain text")
    assert resp.status_code == 400
    resp = client.post("/watchlist", data='{"id": 1e999, "title": "x"}', content_type="application/json")
    assert resp.status_code == 400

def test_signup_syncs_to_remote(api_client):
    client, svc, remote = api_client
    client.post("/watchlist", json=ITEM)
    resp = client.post("/auth/signup", json={"email": "neo@example.com", "password": "redpill"})
    assert resp.status_code == 201
    uid = resp.get_json()["uid"]
    assert [r["id"] for r in remote.documents[uid]["watchlist"]] == [603]
    assert client.get("/auth/me").get_json()["email"] == "neo@example.com"
    wl = client.get("/watchlist").get_json()
    assert wl["identity"] == uid and wl["synced"] is True and wl["syncing"] is False

def test_signin_wrong_password_401(api_client):
    client, _, _ = api_client
    client.post("/auth/signup", json={"email": "t@example.com", "password": "secret1"})
    client.post("/auth/signout")
    resp = client.post("/auth/signin", json={"email": "t@example.com", "password": "nope-nope"})
    assert resp.status_code == 401 and resp.get_json()["code"] == "auth/invalid-credential"
    assert client.get("/auth/me").get_json()["uid"] is None

def test_movies_and_similar(api_client):
    client, svc, _ = api_client
    items = client.get("/movies").get_json()["items"]
    assert items
    first = items[0]["id"]
    assert client.get(f"/movies/{first}").get_json()["title"] == items[0]["title"]
    similar = client.get(f"/movies/{first}/similar").get_json()["items"]
    assert len(similar) <= 6 and all(m["id"] != first for m in similar)
    assert client.get("/movies/999999999").status_code == 404

def test_add_static_movie_to_watchlist(api_client):
    client, svc, _ = api_client
    movie = svc.list_movies()[0]
    resp = client.post(f"/movies/{movie.id}/watchlist")
    assert resp.status_code == 201
    entry = client.get("/watchlist").get_json()["entries"][0]
    assert entry["id"] == movie.id and entry["vote_average"] == movie.rating

def test_recommendations_endpoint(api_client):
    client, _, _ = api_client
    resp = client.get("/recommendations?genres=Sci-Fi&min_rating=7.5&runtime=long")
    assert resp.status_code == 200
    items = resp.get_json()["items"]
    assert 0 < len(items) <= 10
    for m in items:
        assert "sci-fi" in [g.lower() for g in m["genre"]]
        assert m["rating"] >= 7.5 and m["runtime"] >= 120
    scores = [m["score"] for m in items]
    assert scores == sorted(scores, reverse=True)

@pytest.mark.parametrize("query", ["min_rating=9.5", "min_rating=3.3", "runtime=medium",
                                   "year_min=2020&year_max=2000", "min_rating=abc",
                                   "min_rating=nan"])
def test_recommendations_bad_filters(api_client, query):
    client, _, _ = api_client
    assert client.get(f"/recommendations?{query}").status_code == 400

def test_export_json_and_csv(api_client):
    client, _, _ = api_client
    client.post("/watchlist", json=ITEM)
    resp = client.get("/watchlist/export?format=json")
    assert resp.mimetype == "application/json"
    data = json.loads(resp.data.decode())
    assert data[0]["title"] == "The Matrix"
    resp = client.get("/watchlist/export?format=csv")
    assert resp.mimetype == "text/csv"
    assert b"The Matrix" in resp.data

def test_import_json_body_and_file(api_client):
    client, svc, _ = api_client
    rows = [ITEM, {"id": 13, "title": "Forrest Gump", "addedAt": 5}, {"title": "broken"}]
    resp = client.post("/watchlist/import", json=rows)
    data = resp.get_json()
    assert data["created"] == 2 and len(data["errors"]) == 1 and data["errors"][0].startswith("row 3")

    upload = io.BytesIO(json.dumps([{"id": 14, "title": "Cast Away"}]).encode())
    resp = client.post("/watchlist/import", data={"file": (upload, "list.json")},
                       content_type="multipart/form-data")
    assert resp.get_json()["created"] == 1
    assert client.get("/watchlist").get_json()["count"] == 3

def test_load_config_merges_over_defaults(tmp_path):
    from run import load_config, DEFAULT_CFG
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"port": 8080}), encoding="utf-8")
    cfg = load_config(str(p))
    assert cfg["port"] == 8080 and cfg["local_database"] == DEFAULT_CFG["local_database"]
    p.write_text("{broken", encoding="utf-8")
    assert load_config(str(p)) == DEFAULT_CFG
    assert load_config(str(tmp_path / "missing.json")) == DEFAULT_CFG
