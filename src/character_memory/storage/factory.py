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
Vector index storage factory.

Creates and initializes the backend selected by ``VectorIndexSettings.backend``.
"""

import logging

from ..config import VectorIndexSettings
from .base import IndexStorage
from .memory_index_storage import InMemoryIndexStorage
from .sqlite_index_storage import SQLiteIndexStorage

logger = logging.getLogger(__name__)


async def create_index_storage(settings: VectorIndexSettings | None = None) -> IndexStorage:
    """
    Create and initialize the configured vector index storage backend.

    Args:
        settings: Vector index settings (defaults to the global settings)

    Returns:
        Initialized IndexStorage instance
    """
    if settings is None:
        from ..config import settings as global_settings

        settings = global_settings.vector

    if settings.backend == "memory":
        storage: IndexStorage = InMemoryIndexStorage()
        logger.info("Using in-memory vector index storage (indices are not persisted)")
    else:
        storage = SQLiteIndexStorage(str(settings.sqlite_path), save_retry_attempts=settings.save_retry_attempts)
        logger.info(f"Using SQLite vector index storage: {settings.sqlite_path}")

    await storage.initialize()
    return storage
