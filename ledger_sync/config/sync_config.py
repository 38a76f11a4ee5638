from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "sync.yaml"

DEFAULT_RESET_TABLES = [
    "program_events",
    "juror_records",
    "challenger_records",
    "defender_records",
    "disputes",
    "escrows",
    "subjects",
    "juror_pools",
    "challenger_pools",
    "defender_pools",
]


@dataclass(frozen=True)
class RateLimitClass:
    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class SyncConfig:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        sec = self.raw.get(name, {}) if isinstance(self.raw, dict) else {}
        return sec if isinstance(sec, dict) else {}

    # --- rate limits ---

    def rate_limit_classes(self) -> Dict[str, RateLimitClass]:
        out: Dict[str, RateLimitClass] = {}
        for name, spec in self._section("rate_limits").items():
            if not isinstance(spec, dict):
                continue
            out[name] = RateLimitClass(
                name=name,
                limit=int(spec.get("limit", 60)),
                window_seconds=int(spec.get("window_seconds", 60)),
            )
        return out

    def rate_limit_cache_capacity(self) -> int:
        return int(self.raw.get("rate_limit_cache_capacity", 10000))

    # --- backfill ---

    def backfill_batch_size(self) -> int:
        return max(1, int(self._section("backfill").get("batch_size", 100)))

    def backfill_max_signatures(self) -> int:
        return max(1, int(self._section("backfill").get("max_signatures", 1000)))

    def backfill_delay_seconds(self) -> float:
        return int(self._section("backfill").get("delay_ms", 100)) / 1000.0

    def backfill_commitment(self) -> str:
        return str(self._section("backfill").get("commitment", "confirmed"))

    # --- rpc / store ---

    def rpc_timeout_seconds(self) -> float:
        return float(self._section("rpc").get("timeout_seconds", 30))

    def rpc_proxy_timeout_seconds(self) -> float:
        return float(self._section("rpc").get("proxy_timeout_seconds", 55))

    def store_statement_timeout_ms(self) -> int:
        return int(self._section("store").get("statement_timeout_ms", 15000))

    # --- reconcile / reset ---

    def reconcile_max_addresses(self) -> int:
        return int(self._section("reconcile").get("max_addresses", 10))

    def reset_tables(self) -> List[str]:
        tables = self._section("reset").get("tables")
        if not tables:
            return list(DEFAULT_RESET_TABLES)
        return [str(t) for t in tables]

    # --- scheduler ---

    def scheduler_enabled(self) -> bool:
        # Env wins so the job can be switched off locally without touching yaml.
        env = os.getenv("SCHEDULER_ENABLED")
        if env is not None:
            return env.strip().lower() in ("1", "true", "yes", "on")
        return bool(self._section("scheduler").get("enabled", False))

    def scheduler_backfill_interval_minutes(self) -> int:
        return int(self._section("scheduler").get("backfill_interval_minutes", 5))

    def scheduler_backfill_limit(self) -> int:
        return int(self._section("scheduler").get("backfill_limit", 200))


_cached: Optional[SyncConfig] = None


def load_sync_config(path: Path | None = None) -> SyncConfig:
    global _cached
    if _cached is not None and path is None:
        return _cached

    env_path = os.getenv("SYNC_CONFIG_PATH", "").strip()
    p = path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    cfg = SyncConfig(raw=data)
    if path is None:
        _cached = cfg
    return cfg
