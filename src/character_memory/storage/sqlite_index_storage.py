# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
SQLite vector index storage.

One row per owner entity holds that entity's whole index snapshot. Saves
are single-statement upserts, so an interrupted save leaves the previous
snapshot intact and is simply retried wholesale.
"""

import json
import logging
import os
import sqlite3
from datetime import datetime

import aiosqlite
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import IndexStorageError
from ..models.vector import VectorIndexSnapshot
from .base import IndexStorage

logger = logging.getLogger(__name__)


class SQLiteIndexStorage(IndexStorage):
    """Async SQLite store for per-owner vector index snapshots."""

    def __init__(self, db_path: str, save_retry_attempts: int = 3):
        """
        Initialize vector index storage.

        Args:
            db_path: Path to SQLite database file
            save_retry_attempts: Attempts for a save hitting a transient
                ``OperationalError`` (e.g. "database is locked")
        """
        self.db_path = str(db_path)
        self.save_retry_attempts = save_retry_attempts
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize database schema if not exists."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS vector_indices (
                    owner_entity_id TEXT PRIMARY KEY,
                    version INTEGER NOT NULL,
                    dimensions INTEGER,
                    entries_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )
            await db.commit()

        self._initialized = True
        logger.info(f"Vector index database initialized at {self.db_path}")

    async def load(self, owner_entity_id: str) -> VectorIndexSnapshot | None:
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    """
                    SELECT version, dimensions, entries_json, created_at, updated_at
                    FROM vector_indices
                    WHERE owner_entity_id = ?
                """,
                    (owner_entity_id,),
                )
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise IndexStorageError(f"Failed to load vector index: {e}", owner_entity_id) from e

        if row is None:
            return None

        return VectorIndexSnapshot(
            owner_entity_id=owner_entity_id,
            version=row[0],
            dimensions=row[1],
            entries=json.loads(row[2]),
            created_at=datetime.fromisoformat(row[3]),
            updated_at=datetime.fromisoformat(row[4]),
        )

    async def save(self, owner_entity_id: str, snapshot: VectorIndexSnapshot) -> None:
        if not self._initialized:
            await self.initialize()

        entries_json = json.dumps([entry.model_dump(mode="json") for entry in snapshot.entries])
        params = (
            owner_entity_id,
            snapshot.version,
            snapshot.dimensions,
            entries_json,
            snapshot.created_at.isoformat(),
            snapshot.updated_at.isoformat(),
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.save_retry_attempts),
                wait=wait_exponential(multiplier=0.05, max=1.0),
                retry=retry_if_exception_type(sqlite3.OperationalError),
                reraise=True,
            ):
                with attempt:
                    await self._upsert(params)
        except sqlite3.Error as e:
            raise IndexStorageError(f"Failed to save vector index: {e}", owner_entity_id) from e

    async def _upsert(self, params: tuple) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO vector_indices
                (owner_entity_id, version, dimensions, entries_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(owner_entity_id) DO UPDATE SET
                    version = excluded.version,
                    dimensions = excluded.dimensions,
                    entries_json = excluded.entries_json,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
            """,
                params,
            )
            await db.commit()

    async def delete(self, owner_entity_id: str) -> bool:
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("DELETE FROM vector_indices WHERE owner_entity_id = ?", (owner_entity_id,))
                await db.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise IndexStorageError(f"Failed to delete vector index: {e}", owner_entity_id) from e

    async def list_owner_ids(self) -> list[str]:
        if not self._initialized:
            await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT owner_entity_id FROM vector_indices ORDER BY owner_entity_id")
            return [row[0] for row in await cursor.fetchall()]

    async def close(self) -> None:
        # aiosqlite connections are opened per operation, nothing to close
        pass
