# tests/conftest.py
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from planner.gateway import LocalStore, PersistenceGateway, RemoteStore
from planner.parser import HEADER

REMOTE_URL = "http://remote.test/rest/v1"


def sheet_row(lesson: str, category: str, name: str, minutes: str = "3", **extra: str) -> list[str]:
    """One activity row in sheet column order."""
    return [
        lesson,
        category,
        name,
        extra.get("description", ""),
        extra.get("level", "All"),
        minutes,
        extra.get("video", ""),
        extra.get("music", ""),
        extra.get("backing", ""),
        extra.get("resource", ""),
        extra.get("unit", ""),
    ]


@pytest.fixture
def make_row() -> Callable[..., list[str]]:
    return sheet_row


@pytest.fixture
def scenario_rows() -> list[list[str]]:
    """Header plus a Welcome row and a carried-forward Goodbye row."""
    return [
        HEADER,
        ["1", "Welcome", "Hello", "Hi there", "All", "3", "", "", "", "", ""],
        ["", "Goodbye", "Bye", "See you", "All", "2", "", "", "", "", ""],
    ]


@pytest.fixture
def three_lesson_rows() -> list[list[str]]:
    return [
        HEADER,
        sheet_row("1", "Welcome", "Hello Song", "3"),
        sheet_row("1", "Goodbye", "Goodbye Song", "2"),
        sheet_row("2", "Welcome", "Morning Song", "3"),
        sheet_row("2", "Rhythm Sticks", "Tap and Stop", "5"),
        sheet_row("3", "Kodaly Songs", "Cobbler Cobbler", "4"),
        sheet_row("3", "Goodbye", "See You Soon", "2"),
    ]


@pytest.fixture
def local_store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "cache")


@pytest.fixture
def gateway(local_store) -> PersistenceGateway:
    """Local tier only."""
    return PersistenceGateway(local_store)


class FakeRemote:
    """
    In-memory PostgREST table set served through httpx.MockTransport.

    `fail` makes every request return 500; `delays` maps a sheet to seconds
    slept before answering reads for it.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail = False
        self.delays: dict[str, float] = {}
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"message": "boom"})

        table = request.url.path.rsplit("/", 1)[-1]
        rows = self.tables.setdefault(table, {})
        if request.method == "GET":
            sheet = request.url.params.get("sheet", "").removeprefix("eq.")
            delay = self.delays.get(sheet, 0)
            if delay:
                await asyncio.sleep(delay)
            row = rows.get(sheet)
            return httpx.Response(200, json=[row] if row else [])
        if request.method == "POST":
            for row in json.loads(request.content):
                rows[row["sheet"]] = row
            return httpx.Response(201)
        return httpx.Response(405)

    def store(self, timeout: float = 5.0) -> RemoteStore:
        return RemoteStore(
            REMOTE_URL, api_key="test-key", timeout=timeout, transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def remote_gateway(local_store, fake_remote) -> PersistenceGateway:
    """Local tier plus the in-memory remote."""
    return PersistenceGateway(local_store, fake_remote.store(), timeout=5.0)


@pytest.fixture
def make_gateway(local_store) -> Callable[..., PersistenceGateway]:
    """Gateway whose remote answers with the given handler."""

    def _make(handler: Callable[[httpx.Request], Any], timeout: float = 5.0) -> PersistenceGateway:
        remote = RemoteStore(REMOTE_URL, timeout=timeout, transport=httpx.MockTransport(handler))
        return PersistenceGateway(local_store, remote, timeout=timeout)

    return _make
