from ledger_sync.main import app
from ledger_sync.models import JurorPoolDB, ProgramEventDB
from ledger_sync.services.rpc_client import get_rpc_client

from ledger_fixtures import SCHEMA, bond_values, data_line, invoke, pk, pool_values, transaction, vote_values


def _no_rpc():
    yield None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_admin_endpoints_require_bearer_secret(client, monkeypatch):
    assert client.post("/sync/reset").status_code == 401
    assert client.post("/sync/full", headers={"Authorization": "Bearer wrong"}).status_code == 401

    monkeypatch.delenv("ADMIN_SECRET")
    r = client.post("/sync/reset", headers={"Authorization": "Bearer "})
    assert r.status_code == 401


def test_reset_clears_mirrors(client, db, admin_headers):
    db.add(JurorPoolDB(id=pk(5), owner=pk(5), balance=1, reputation=1, slot=1))
    db.commit()

    r = client.post("/sync/reset", headers=admin_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "All tables reset"
    assert body["results"]["juror_pools"]["success"] is True
    db.expire_all()
    assert db.query(JurorPoolDB).count() == 0


def test_accounts_sync(client, ledger, db):
    ledger.accounts[pk(9)] = SCHEMA.encode_account("JurorPool", pool_values())

    r = client.post("/sync/accounts", json={"address": pk(9), "addresses": [pk(7)]})

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    first, second = body["results"]
    assert first == {"address": pk(9), "type": "juror_pool", "success": True, "key": pk(9), "skipped": False, "error": None}
    assert second["error"] == "account not found"
    assert db.get(JurorPoolDB, pk(9)).balance == 1_000


def test_accounts_sync_accepts_bare_list(client, ledger):
    ledger.accounts[pk(9)] = SCHEMA.encode_account("JurorPool", pool_values())
    r = client.post("/sync/accounts", json=[pk(9)])
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_accounts_sync_validation(client):
    assert client.post("/sync/accounts", content=b"nope").status_code == 400
    assert client.post("/sync/accounts", json={}).status_code == 400
    assert client.post("/sync/accounts", json=[pk(i) for i in range(11)]).status_code == 400

    r = client.post("/sync/accounts", json=["not-an-address"])
    assert r.status_code == 400
    assert r.json()["addresses"] == ["not-an-address"]


def test_accounts_sync_without_rpc(client):
    app.dependency_overrides[get_rpc_client] = _no_rpc
    r = client.post("/sync/accounts", json=[pk(9)])
    assert r.status_code == 503
    assert r.json() == {"error": "RPC not configured"}


def test_full_sync(client, ledger, admin_headers):
    ledger.accounts = {
        pk(10): SCHEMA.encode_account("JurorPool", pool_values()),
        pk(11): SCHEMA.encode_account("DefenderPool", {
            "owner": pk(6), "balance": 3, "maxBond": 10, "bump": 1, "createdAt": 5, "updatedAt": 6,
        }),
        pk(12): b"\x07" * 20,
    }

    r = client.post("/sync/full", headers=admin_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["accounts"] == 3
    assert body["unknown"] == 1
    assert body["results"]["juror_pool"] == {"synced": 1, "errors": 0}
    assert body["results"]["defender_pool"] == {"synced": 1, "errors": 0}


def test_events_listing(client, ledger, admin_headers):
    ledger.signatures = ["s2", "s1"]
    ledger.transactions = {
        "s1": transaction(invoke(data_line("VoteEvent", vote_values())), slot=10),
        "s2": transaction(invoke(data_line("BondAddedEvent", bond_values())), slot=20),
    }
    client.post("/sync/backfill-events", json={}, headers=admin_headers)

    r = client.get("/events")
    assert r.status_code == 200
    assert [e["id"] for e in r.json()] == ["s2:0", "s1:0"]

    r = client.get("/events", params={"event_type": "VoteEvent"})
    (vote,) = r.json()
    assert vote["actor"] == pk(3)
    assert vote["round"] == 2
    assert vote["data"]["choice"] == "forChallenger"

    assert client.get("/events", params={"limit": 0}).status_code == 422


def test_rpc_proxy_passes_through(client, ledger):
    r = client.post("/rpc", json={"jsonrpc": "2.0", "id": 7, "method": "getSlot"})

    assert r.status_code == 200
    assert r.json() == {"jsonrpc": "2.0", "id": 7, "result": ledger.slot}
    assert r.headers["X-RateLimit-Limit"] == "500"
    assert ledger.methods() == ["getSlot"]


def test_rpc_proxy_errors(client):
    assert client.post("/rpc", content=b"{").status_code == 400

    app.dependency_overrides[get_rpc_client] = _no_rpc
    assert client.post("/rpc", json={"method": "getSlot"}).status_code == 503


def test_reset_leaves_events_table_empty(client, ledger, db, admin_headers):
    ledger.signatures = ["s1"]
    ledger.transactions = {"s1": transaction(invoke(data_line("VoteEvent", vote_values())))}
    client.post("/sync/backfill-events", json={}, headers=admin_headers)
    assert db.query(ProgramEventDB).count() == 1

    client.post("/sync/reset", headers=admin_headers)
    db.expire_all()
    assert db.query(ProgramEventDB).count() == 0
