"""
gateway.py -- Two-tier persistence: local JSON cache and remote REST store.

Responsibility:
- Local tier: synchronous JSON files, written first and unconditionally
- Remote tier: async httpx calls against a PostgREST-style endpoint, one
  attempt each, bounded by an explicit timeout
- Read contract: remote first, then local, then "no data" (None)
- Remote write failures are logged, returned as RemoteFailure and kept in
  an outbox (latest payload per key) until flush_outbox() or the next
  successful write for the same key. The outbox is mirrored to the local
  tier so a later process can flush it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from planner import config
from planner.models import (
    Ack,
    BaseDataset,
    DataOrigin,
    LessonPlan,
    RemoteFailure,
    RemoteWriteResult,
)

logger = logging.getLogger(__name__)

# Logical dataset names (local file stems / outbox keys).
DATASET_LESSONS: str = "lesson-data"
DATASET_PLANS: str = "lesson-plans"
DATASET_EYFS: str = "eyfs-statements"
DATASET_EYFS_FLAT: str = "eyfs-statements-flat"
DATASET_EYFS_STRUCTURED: str = "eyfs-standards"
DATASET_OUTBOX: str = "sync-outbox"

# Remote tables, one row per sheet.
REMOTE_TABLES: dict[str, str] = {
    DATASET_LESSONS: "lessons",
    DATASET_EYFS: "eyfs_statements",
}

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


# ---------------------------------------------------------------------------
# Local tier
# ---------------------------------------------------------------------------

class LocalStore:
    """JSON files under one directory, one file per (dataset, sheet)."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, dataset: str, sheet: Optional[str] = None) -> Path:
        name = f"{dataset}-{sheet}" if sheet else dataset
        if not _SAFE_NAME.match(name):
            raise ValueError(f"Unsafe storage key: {name!r}")
        return self.root / f"{name}.json"

    def read(self, dataset: str, sheet: Optional[str] = None) -> Any:
        """Stored payload, or None when absent or unreadable."""
        path = self.path_for(dataset, sheet)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", path, exc)
            return None

    def write(self, dataset: str, sheet: Optional[str], payload: Any) -> Path:
        path = self.path_for(dataset, sheet)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
        logger.debug("Wrote %s", path)
        return path

    def delete(self, dataset: str, sheet: Optional[str] = None) -> bool:
        path = self.path_for(dataset, sheet)
        if path.exists():
            path.unlink()
            return True
        return False

    def export_all(self) -> dict[str, Any]:
        """Every stored payload keyed by file stem."""
        bundle: dict[str, Any] = {}
        for path in sorted(self.root.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    bundle[path.stem] = json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Skipping unreadable cache file %s in export: %s", path, exc)
        return bundle

    def import_all(self, bundle: dict[str, Any]) -> int:
        """Write every entry of an export bundle back; returns entries written."""
        written = 0
        for stem, payload in bundle.items():
            if not _SAFE_NAME.match(stem):
                logger.warning("Skipping unsafe bundle key: %r", stem)
                continue
            self.write(stem, None, payload)
            written += 1
        logger.info("Restored %d cache entries into %s", written, self.root)
        return written


# ---------------------------------------------------------------------------
# Remote tier
# ---------------------------------------------------------------------------

class RemoteStore:
    """Row-per-sheet tables behind a PostgREST-style REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = config.REMOTE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=timeout, transport=transport,
        )

    async def fetch(self, table: str, sheet: str) -> Optional[dict[str, Any]]:
        """The row for sheet, or None when there is none. Raises httpx errors."""
        resp = await self.client.get(f"/{table}", params={"sheet": f"eq.{sheet}", "select": "*"})
        resp.raise_for_status()
        body = resp.json()
        if isinstance(body, list):
            return body[0] if body else None
        if isinstance(body, dict):
            return body or None
        raise ValueError(f"Unexpected {table} payload type: {type(body).__name__}")

    async def upsert(self, table: str, sheet: str, payload: dict[str, Any]) -> None:
        row = {
            "sheet": sheet,
            **payload,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        resp = await self.client.post(
            f"/{table}",
            params={"on_conflict": "sheet"},
            json=[row],
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        resp.raise_for_status()

    async def aclose(self) -> None:
        await self.client.aclose()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class PersistenceGateway:
    """Local tier plus optional remote tier, with the fallback and write rules."""

    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore] = None,
        timeout: float = config.REMOTE_TIMEOUT_SECONDS,
    ) -> None:
        self.local = local
        self.remote = remote
        self.timeout = timeout
        self.outbox: dict[tuple[str, str], dict[str, Any]] = self._load_outbox()
        if self.outbox:
            logger.info("Resuming with %d unsynced remote writes", len(self.outbox))

    @classmethod
    def from_config(cls) -> PersistenceGateway:
        remote = None
        if config.REMOTE_URL:
            remote = RemoteStore(config.REMOTE_URL, config.REMOTE_KEY, config.REMOTE_TIMEOUT_SECONDS)
        else:
            logger.info("PLANNER_REMOTE_URL not set -- running on the local tier only")
        return cls(LocalStore(config.CACHE_DIR), remote, config.REMOTE_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        if self.remote is not None:
            await self.remote.aclose()

    # -- outbox -----------------------------------------------------------------

    def _load_outbox(self) -> dict[tuple[str, str], dict[str, Any]]:
        stored = self.local.read(DATASET_OUTBOX)
        if not isinstance(stored, list):
            return {}
        outbox: dict[tuple[str, str], dict[str, Any]] = {}
        for idx, entry in enumerate(stored):
            if (
                not isinstance(entry, dict)
                or entry.get("dataset") not in REMOTE_TABLES
                or not isinstance(entry.get("sheet"), str)
                or not isinstance(entry.get("payload"), dict)
            ):
                logger.warning("Skipping malformed outbox entry at index %d", idx)
                continue
            outbox[(entry["sheet"], entry["dataset"])] = entry["payload"]
        return outbox

    def _save_outbox(self) -> None:
        if not self.outbox:
            self.local.delete(DATASET_OUTBOX)
            return
        entries = [
            {"sheet": sheet, "dataset": dataset, "payload": payload}
            for (sheet, dataset), payload in self.outbox.items()
        ]
        self.local.write(DATASET_OUTBOX, None, entries)

    # -- generic primitives -------------------------------------------------

    def read_local(self, dataset: str, sheet: Optional[str] = None) -> Any:
        return self.local.read(dataset, sheet)

    def write_local(self, dataset: str, sheet: Optional[str], payload: Any) -> None:
        self.local.write(dataset, sheet, payload)

    async def fetch_remote(self, dataset: str, sheet: str) -> Optional[dict[str, Any]]:
        """Remote row for (dataset, sheet); None on any failure or no row."""
        if self.remote is None:
            return None
        table = REMOTE_TABLES[dataset]
        try:
            return await asyncio.wait_for(self.remote.fetch(table, sheet), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Remote fetch of %s/%s timed out after %.1fs", table, sheet, self.timeout)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Remote returned %d for %s/%s: %s",
                exc.response.status_code, table, sheet, exc.response.text[:200],
            )
        except httpx.RequestError as exc:
            logger.warning("Failed to reach remote for %s/%s: %s", table, sheet, exc)
        except ValueError as exc:
            logger.warning("Malformed remote payload for %s/%s: %s", table, sheet, exc)
        return None

    async def push_remote(self, dataset: str, sheet: str, payload: dict[str, Any]) -> RemoteWriteResult:
        """One remote upsert attempt. Never raises."""
        key = (sheet, dataset)
        if self.remote is None:
            return RemoteFailure(sheet=sheet, dataset=dataset, error="remote store not configured")
        table = REMOTE_TABLES[dataset]
        try:
            await asyncio.wait_for(self.remote.upsert(table, sheet, payload), self.timeout)
        except asyncio.TimeoutError:
            error = f"timed out after {self.timeout:.1f}s"
        except httpx.HTTPStatusError as exc:
            error = f"HTTP {exc.response.status_code}"
        except httpx.RequestError as exc:
            error = f"request failed: {exc}"
        else:
            if self.outbox.pop(key, None) is not None:
                self._save_outbox()
            logger.info("Saved %s for %s to remote", dataset, sheet)
            return Ack(sheet=sheet, dataset=dataset)

        self.outbox[key] = payload
        self._save_outbox()
        logger.error("Failed to save %s for %s to remote (%s); kept in outbox", dataset, sheet, error)
        return RemoteFailure(sheet=sheet, dataset=dataset, error=error)

    async def flush_outbox(self) -> list[RemoteWriteResult]:
        """Retry every pending remote write once."""
        pending = list(self.outbox.items())
        if pending:
            logger.info("Flushing %d pending remote writes", len(pending))
        results: list[RemoteWriteResult] = []
        for (sheet, dataset), payload in pending:
            results.append(await self.push_remote(dataset, sheet, payload))
        return results

    # -- base dataset ---------------------------------------------------------

    async def read_base(self, sheet: str) -> tuple[Optional[BaseDataset], Optional[DataOrigin]]:
        """
        Remote, else local, else (None, None).

        While a remote write for this sheet is pending in the outbox the local
        tier holds the newer copy, so the remote read is skipped.
        """
        row = None
        if (sheet, DATASET_LESSONS) in self.outbox:
            logger.info("Unsynced local changes for %s; reading local cache", sheet)
        else:
            row = await self.fetch_remote(DATASET_LESSONS, sheet)
        if row:
            try:
                dataset = BaseDataset.model_validate(row)
            except ValidationError as exc:
                logger.warning("Remote %s data for %s failed validation: %s", DATASET_LESSONS, sheet, exc)
            else:
                if not dataset.is_empty():
                    logger.info("Loaded %s data from remote", sheet)
                    return dataset, DataOrigin.REMOTE
        elif self.remote is not None:
            logger.warning("Remote data fetch failed or empty for %s, trying local cache", sheet)

        stored = self.read_local(DATASET_LESSONS, sheet)
        if stored:
            try:
                dataset = BaseDataset.model_validate(stored)
            except ValidationError as exc:
                logger.warning("Local %s data for %s failed validation: %s", DATASET_LESSONS, sheet, exc)
            else:
                logger.info("Loaded %s data from local cache", sheet)
                return dataset, DataOrigin.LOCAL

        logger.info("No stored data for %s", sheet)
        return None, None

    async def save_base(self, sheet: str, dataset: BaseDataset) -> RemoteWriteResult:
        """Local first and unconditionally, then one remote attempt."""
        payload = dataset.to_wire()
        self.write_local(DATASET_LESSONS, sheet, payload)
        logger.info("Saved %s data to local cache", sheet)
        return await self.push_remote(DATASET_LESSONS, sheet, payload)

    # -- plans (local tier only) ------------------------------------------------

    def _read_plan_payloads(self) -> list[dict[str, Any]]:
        stored = self.read_local(DATASET_PLANS)
        return stored if isinstance(stored, list) else []

    def load_plans(self, sheet: Optional[str] = None) -> list[LessonPlan]:
        """All stored plans, or those of one class. Invalid entries are skipped."""
        plans: list[LessonPlan] = []
        for idx, item in enumerate(self._read_plan_payloads()):
            try:
                plan = LessonPlan.model_validate(item)
            except ValidationError as exc:
                logger.warning("Skipping malformed plan at index %d: %s", idx, exc)
                continue
            if sheet is None or plan.class_name == sheet:
                plans.append(plan)
        return plans

    def upsert_plan(self, plan: LessonPlan) -> bool:
        """Replace the plan with the same id, or append. True if it was new."""
        payloads = self._read_plan_payloads()
        wire = plan.to_wire()
        for idx, item in enumerate(payloads):
            if isinstance(item, dict) and item.get("id") == plan.id:
                payloads[idx] = wire
                self.write_local(DATASET_PLANS, None, payloads)
                return False
        payloads.append(wire)
        self.write_local(DATASET_PLANS, None, payloads)
        return True

    def delete_plan(self, plan_id: str) -> bool:
        payloads = self._read_plan_payloads()
        kept = [item for item in payloads if not (isinstance(item, dict) and item.get("id") == plan_id)]
        if len(kept) == len(payloads):
            return False
        self.write_local(DATASET_PLANS, None, kept)
        return True
