from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from itertools import count
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlencode

import requests

from ledger_sync.config.sync_config import load_sync_config


class RpcError(RuntimeError):
    """Transport failure, non-2xx answer or a JSON-RPC `error` member."""


class RpcTimeout(RpcError):
    pass


class RpcNotConfigured(RuntimeError):
    pass


def rpc_endpoint() -> str | None:
    """SOLANA_RPC_URL with the provider key appended as `api-key`; None if unset."""
    base = os.getenv("SOLANA_RPC_URL", "").strip()
    if not base:
        return None
    key = os.getenv("SOLANA_RPC_API_KEY", "").strip()
    if not key:
        return base
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{urlencode({'api-key': key})}"


@dataclass(frozen=True)
class AccountInfo:
    address: str
    data: bytes
    slot: Optional[int]
    owner: Optional[str] = None


class SolanaRpcClient:
    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        session: requests.Session | None = None,
        commitment: str | None = None,
    ):
        cfg = load_sync_config()
        self._url = url
        self._commitment = commitment or cfg.backfill_commitment()
        self._ids = count(1)
        self._timeout = timeout if timeout is not None else cfg.rpc_timeout_seconds()
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SolanaRpcClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # --- transport ---

    def call(self, method: str, params: List[Any] | None = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            r = self._session.post(self._url, json=body, timeout=self._timeout)
            r.raise_for_status()
            payload = r.json()
        except requests.Timeout as e:
            raise RpcTimeout(f"{method}: timed out") from e
        except requests.HTTPError as e:
            raise RpcError(f"{method}: HTTP {e.response.status_code}") from e
        except (requests.RequestException, ValueError) as e:
            raise RpcError(f"{method}: {type(e).__name__}: {e}") from e

        if not isinstance(payload, dict):
            raise RpcError(f"{method}: malformed JSON-RPC response")
        if payload.get("error"):
            err = payload["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise RpcError(f"{method}: {msg}")
        return payload.get("result")

    def forward(self, raw_body: bytes, timeout: float) -> requests.Response:
        """Pass a client's JSON-RPC body through unchanged (the /rpc proxy)."""
        try:
            return self._session.post(self._url, data=raw_body, timeout=timeout)
        except requests.Timeout as e:
            raise RpcTimeout("proxy request timed out") from e
        except requests.RequestException as e:
            raise RpcError(f"proxy request failed: {type(e).__name__}") from e

    # --- methods used by the sync layer ---

    def get_signatures_for_address(
        self, address: str, *, limit: int, before: str | None = None
    ) -> List[Dict[str, Any]]:
        opts: Dict[str, Any] = {"limit": int(limit), "commitment": self._commitment}
        if before:
            opts["before"] = before
        result = self.call("getSignaturesForAddress", [address, opts])
        return list(result or [])

    def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self._commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    def get_account_info(self, address: str) -> Optional[AccountInfo]:
        result = self.call("getAccountInfo", [address, {"encoding": "base64", "commitment": self._commitment}])
        if not isinstance(result, dict):
            return None
        value = result.get("value")
        if not value:
            return None
        slot = (result.get("context") or {}).get("slot")
        return AccountInfo(address=address, data=_account_bytes(value), slot=slot, owner=value.get("owner"))

    def get_program_accounts(self, program: str) -> List[AccountInfo]:
        result = self.call(
            "getProgramAccounts",
            [program, {"encoding": "base64", "commitment": self._commitment, "withContext": True}],
        )
        slot = None
        items = result
        if isinstance(result, dict):
            slot = (result.get("context") or {}).get("slot")
            items = result.get("value")

        out: List[AccountInfo] = []
        for item in items or []:
            account = item.get("account") or {}
            out.append(
                AccountInfo(
                    address=str(item.get("pubkey")),
                    data=_account_bytes(account),
                    slot=slot,
                    owner=account.get("owner"),
                )
            )
        return out


def _account_bytes(value: Dict[str, Any]) -> bytes:
    data = value.get("data")
    # ["<base64>", "base64"]
    if isinstance(data, list) and data:
        return base64.b64decode(data[0])
    if isinstance(data, str):
        return base64.b64decode(data)
    raise RpcError("account data is not base64 encoded")


def client_from_env() -> SolanaRpcClient:
    url = rpc_endpoint()
    if url is None:
        raise RpcNotConfigured("SOLANA_RPC_URL is not set")
    return SolanaRpcClient(url)


def get_rpc_client() -> Iterator[Optional[SolanaRpcClient]]:
    """Route dependency; yields None when no RPC endpoint is configured."""
    url = rpc_endpoint()
    if url is None:
        yield None
        return
    client = SolanaRpcClient(url)
    try:
        yield client
    finally:
        client.close()
