"""
curriculum.py -- Per-class catalog of EYFS curriculum statements.

Statements are "Area: Detail" strings. The catalog is kept flat and is also
persisted in structured form (area -> details) for the standards editor.
Loading follows the gateway's read contract and falls back to the built-in
catalog below.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from planner.gateway import (
    DATASET_EYFS,
    DATASET_EYFS_FLAT,
    DATASET_EYFS_STRUCTURED,
    PersistenceGateway,
)
from planner.models import RemoteWriteResult

logger = logging.getLogger(__name__)

DEFAULT_EYFS_STATEMENTS: list[str] = [
    "Communication and Language: 🎧 Listens carefully to rhymes and songs",
    "Communication and Language: 🎧 Enjoys singing and making sounds",
    "Communication and Language: 🎧 Joins in with familiar songs and rhymes",
    "Communication and Language: 🎧 Understands and responds to simple questions or instructions",
    "Communication and Language: 🗣️ Uses talk to express ideas and feelings",
    "Listening, Attention and Understanding: 🎧 Listens with increased attention to sounds",
    "Listening, Attention and Understanding: 🎧 Responds to what they hear with relevant actions",
    "Listening, Attention and Understanding: 🎧 Follows directions with two or more steps",
    "Listening, Attention and Understanding: 🎧 Understands simple concepts such as in, on, under",
    "Speaking: 🗣️ Begins to use longer sentences",
    "Speaking: 🗣️ Retells events or experiences in sequence",
    "Speaking: 🗣️ Uses new vocabulary in different contexts",
    "Speaking: 🗣️ Talks about what they are doing or making",
    "Personal, Social and Emotional Development: 🧠 Shows confidence to try new activities",
    "Personal, Social and Emotional Development: 🧠 Takes turns and shares with others",
    "Personal, Social and Emotional Development: 🧠 Expresses own feelings and considers others'",
    "Personal, Social and Emotional Development: 🧠 Shows resilience and perseverance",
    "Physical Development: 🕺 Moves energetically, e.g., running, jumping, dancing",
    "Physical Development: 🕺 Uses large and small motor skills for coordinated movement",
    "Physical Development: 🕺 Moves with control and coordination",
    "Physical Development: 🕺 Shows strength, balance and coordination",
    "Expressive Arts and Design: 🎨 Creates collaboratively, sharing ideas and resources",
    "Expressive Arts and Design: 🎨 Explores the sounds of instruments",
    "Expressive Arts and Design: 🎨 Sings a range of well-known nursery rhymes and songs",
    "Expressive Arts and Design: 🎨 Performs songs, rhymes, poems and stories with others",
    "Expressive Arts and Design: 🎨 Responds imaginatively to music and dance",
    "Expressive Arts and Design: 🎨 Develops storylines in pretend play",
]


def split_statement(statement: str) -> tuple[str, str]:
    """Split on the first colon. A statement without one is its own detail."""
    area, sep, detail = statement.partition(":")
    if not sep:
        return statement.strip(), statement.strip()
    return area.strip(), detail.strip()


def structure_statements(statements: Iterable[str]) -> dict[str, list[str]]:
    """Group details under their area, keeping first-seen order of both."""
    structured: dict[str, list[str]] = {}
    for statement in statements:
        area, detail = split_statement(statement)
        structured.setdefault(area, []).append(detail)
    return structured


def flatten_statements(structured: dict[str, list[str]]) -> list[str]:
    return [f"{area}: {detail}" for area, details in structured.items() for detail in details]


class CurriculumTagStore:
    """The active class's flat statement catalog."""

    def __init__(self, gateway: PersistenceGateway, sheet: str) -> None:
        self.gateway = gateway
        self.sheet = sheet
        self.statements: list[str] = list(DEFAULT_EYFS_STATEMENTS)

    @property
    def structured(self) -> dict[str, list[str]]:
        return structure_statements(self.statements)

    async def load(self, sheet: Optional[str] = None) -> list[str]:
        """Remote, then local flat, then local structured, then the defaults."""
        if sheet is not None:
            self.sheet = sheet

        row = await self.gateway.fetch_remote(DATASET_EYFS, self.sheet)
        if row and isinstance(row.get("allStatements"), list) and row["allStatements"]:
            self.statements = [str(s) for s in row["allStatements"]]
            logger.info("Loaded %d EYFS statements for %s from remote", len(self.statements), self.sheet)
            return self.statements

        flat = self.gateway.read_local(DATASET_EYFS_FLAT, self.sheet)
        if isinstance(flat, list) and flat:
            self.statements = [str(s) for s in flat]
            logger.info("Loaded %d EYFS statements for %s from local cache", len(self.statements), self.sheet)
            return self.statements

        structured = self.gateway.read_local(DATASET_EYFS_STRUCTURED, self.sheet)
        if isinstance(structured, dict) and structured:
            try:
                statements = flatten_statements(
                    {str(area): [str(d) for d in details] for area, details in structured.items()}
                )
            except TypeError as exc:
                logger.error("Error parsing saved EYFS standards for %s: %s", self.sheet, exc)
            else:
                if statements:
                    self.statements = statements
                    return self.statements

        logger.info("Using default EYFS statements for %s", self.sheet)
        self.statements = list(DEFAULT_EYFS_STATEMENTS)
        return self.statements

    async def replace_all(self, statements: Iterable[str]) -> RemoteWriteResult:
        self.statements = [s for s in statements if s and s.strip()]
        return await self._save()

    async def add_statement(self, statement: str) -> RemoteWriteResult:
        if statement not in self.statements:
            self.statements.append(statement)
        return await self._save()

    async def remove_statement(self, statement: str) -> RemoteWriteResult:
        self.statements = [s for s in self.statements if s != statement]
        return await self._save()

    async def _save(self) -> RemoteWriteResult:
        structured = self.structured
        self.gateway.write_local(DATASET_EYFS_FLAT, self.sheet, self.statements)
        self.gateway.write_local(DATASET_EYFS_STRUCTURED, self.sheet, structured)
        return await self.gateway.push_remote(
            DATASET_EYFS,
            self.sheet,
            {"allStatements": self.statements, "structuredStatements": structured},
        )
