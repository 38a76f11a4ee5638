"""Builders for program logs, transactions and accounts used across the test suite."""
from __future__ import annotations

import base64
import json
from typing import Any, Dict, List, Optional

import base58
import requests
from requests.adapters import BaseAdapter

from ledger_sync.services.program_schema import load_program_schema
from ledger_sync.services.rpc_client import SolanaRpcClient

SCHEMA = load_program_schema()
PROGRAM = SCHEMA.address
OTHER_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def pk(n: int) -> str:
    """Deterministic 32-byte base58 address."""
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


def data_line(event: str, values: Dict[str, Any]) -> str:
    return "Program data: " + base64.b64encode(SCHEMA.encode_event(event, values)).decode("ascii")


def invoke(*lines: str, program: str = PROGRAM) -> List[str]:
    return [f"Program {program} invoke [1]", *lines, f"Program {program} success"]


def vote_values(**overrides: Any) -> Dict[str, Any]:
    values = {
        "subjectId": pk(1),
        "round": 2,
        "juror": pk(3),
        "choice": "forChallenger",
        "votingPower": 1_000,
        "rationaleCid": "bafyrationale",
        "timestamp": 1_700_000_000,
    }
    values.update(overrides)
    return values


def bond_values(**overrides: Any) -> Dict[str, Any]:
    values = {
        "subjectId": pk(1),
        "defender": pk(4),
        "round": 0,
        "amount": 5_000,
        "source": "pool",
        "timestamp": 1_700_000_100,
    }
    values.update(overrides)
    return values


def transaction(logs: List[str], slot: int = 100, block_time: Optional[int] = 1_700_000_000) -> Dict[str, Any]:
    return {"slot": slot, "blockTime": block_time, "meta": {"err": None, "logMessages": logs}}


class FakeLedger:
    """In-memory JSON-RPC node: signatures newest first, transactions and accounts by key."""

    def __init__(self):
        self.signatures: List[str] = []
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.accounts: Dict[str, bytes] = {}
        # address -> owning program, PROGRAM unless set
        self.owners: Dict[str, str] = {}
        self.slot = 500
        self.failing: set[str] = set()
        self.calls: List[tuple[str, list]] = []

    def _result(self, method: str, params: list) -> Any:
        if method == "getSignaturesForAddress":
            opts = params[1]
            sigs = self.signatures
            before = opts.get("before")
            if before:
                sigs = sigs[sigs.index(before) + 1 :]
            return [
                {"signature": s, "slot": self.slot, "err": None, "blockTime": 1_700_000_000}
                for s in sigs[: opts["limit"]]
            ]
        if method == "getTransaction":
            return self.transactions.get(params[0])
        if method == "getAccountInfo":
            data = self.accounts.get(params[0])
            value = None
            if data is not None:
                value = {"data": [base64.b64encode(data).decode(), "base64"], "owner": self.owners.get(params[0], PROGRAM), "lamports": 1}
            return {"context": {"slot": self.slot}, "value": value}
        if method == "getProgramAccounts":
            return {
                "context": {"slot": self.slot},
                "value": [
                    {"pubkey": addr, "account": {"data": [base64.b64encode(d).decode(), "base64"], "owner": self.owners.get(addr, PROGRAM)}}
                    for addr, d in self.accounts.items()
                ],
            }
        if method == "getSlot":
            return self.slot
        raise AssertionError(f"unexpected RPC method {method}")

    def handler(self, body: Dict[str, Any]) -> tuple[int, Any]:
        method, params = body["method"], body.get("params") or []
        self.calls.append((method, params))
        if method == "getTransaction" and params[0] in self.failing:
            return 500, {"error": "boom"}
        return 200, {"jsonrpc": "2.0", "id": body.get("id"), "result": self._result(method, params)}

    def client(self) -> SolanaRpcClient:
        return stub_client(self.handler)

    def methods(self) -> List[str]:
        return [m for m, _ in self.calls]


def pool_values(**overrides: Any) -> Dict[str, Any]:
    values = {"owner": pk(5), "balance": 1_000, "reputation": 42, "bump": 255, "createdAt": 1_700_000_000}
    values.update(overrides)
    return values


class StubAdapter(BaseAdapter):
    """Answers every request from `handler(json_body) -> (status, json_payload)`."""

    def __init__(self, handler):
        super().__init__()
        self._handler = handler

    def send(self, request, **kwargs):
        status, payload = self._handler(json.loads(request.body or b"null"))
        resp = requests.Response()
        resp.status_code = status
        resp.reason = "OK" if status < 400 else "Error"
        resp._content = json.dumps(payload).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp

    def close(self):
        pass


def stub_client(handler) -> SolanaRpcClient:
    session = requests.Session()
    session.mount("http://rpc.test", StubAdapter(handler))
    return SolanaRpcClient("http://rpc.test", session=session)
