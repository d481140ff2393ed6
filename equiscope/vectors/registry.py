"""Lifecycle of per-race vector stores: lazy open, caching and reclamation."""

import asyncio
import logging
import shutil
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

from equiscope.config import paris_today
from equiscope.racing.guid import RaceGuid
from equiscope.vectors.embeddings import Embedder
from equiscope.vectors.store import RaceVectorStore

logger = logging.getLogger(__name__)


class VectorStoreRegistry:
    """Owns every open RaceVectorStore of the process.

    One instance is created by the application lifespan; tests build their
    own against a temporary directory.
    """

    def __init__(self, root: Path, embedder: Embedder):
        self.root = Path(root)
        self.embedder = embedder
        self._stores: dict[str, RaceVectorStore] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._stores)

    def is_cached(self, guid: str) -> bool:
        return str(RaceGuid.parse(guid).store_path(self.root)) in self._stores

    async def get_store(self, guid: str) -> RaceVectorStore:
        """Return the open store for a race, opening it on first use.

        Raises:
            InvalidRaceIdError: if ``guid`` is malformed.
        """
        path = RaceGuid.parse(guid).store_path(self.root)
        key = str(path)

        store = self._stores.get(key)
        if store is not None:
            return store

        async with self._lock:
            # Another caller may have opened it while we waited
            store = self._stores.get(key)
            if store is None:
                store = RaceVectorStore(path, self.embedder, race_guid=guid)
                await store.init()
                self._stores[key] = store
                logger.info(f"Opened vector store for {guid} at {path}")
        return store

    async def evict(self, guid: str) -> None:
        """Close and forget the cached store of a race, if any."""
        key = str(RaceGuid.parse(guid).store_path(self.root))
        async with self._lock:
            store = self._stores.pop(key, None)
        if store is not None:
            await store.close()

    async def cleanup(self, retention_days: int = 1, today: Optional[date] = None) -> int:
        """Delete the stores of races older than the retention window.

        A race dated exactly ``today - retention_days`` is kept; anything
        strictly older is removed from disk and from the cache.

        Returns:
            Number of race stores deleted.
        """
        today = today or paris_today()
        cutoff = today - timedelta(days=retention_days)

        if not self.root.exists():
            return 0

        removed = 0
        for date_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            try:
                folder_date = datetime.strptime(date_dir.name, "%Y-%m-%d").date()
            except ValueError:
                logger.debug(f"Skipping non-date folder {date_dir}")
                continue
            if folder_date >= cutoff:
                continue

            for race_dir in sorted(date_dir.glob("R*/C*")):
                if not race_dir.is_dir():
                    continue
                await self._close_path(race_dir)
                try:
                    shutil.rmtree(race_dir)
                    removed += 1
                    logger.info(f"Removed vector store {race_dir}")
                except OSError as e:
                    logger.error(f"Failed to remove {race_dir}: {e}")

            _prune_empty(date_dir)

        if removed:
            logger.info(f"Vector cleanup removed {removed} race stores older than {cutoff}")
        return removed

    async def _close_path(self, race_dir: Path) -> None:
        prefix = str(race_dir)
        async with self._lock:
            keys = [k for k in self._stores if str(Path(k).parent) == prefix]
            stores = [self._stores.pop(k) for k in keys]
        for store in stores:
            await store.close()

    async def close_all(self) -> None:
        async with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
        for store in stores:
            await store.close()
        logger.info(f"Closed {len(stores)} vector stores")


def _prune_empty(date_dir: Path) -> None:
    """Remove empty meeting folders, then the date folder if nothing is left."""
    for meeting_dir in date_dir.iterdir():
        if meeting_dir.is_dir() and not any(meeting_dir.iterdir()):
            meeting_dir.rmdir()
    if not any(date_dir.iterdir()):
        date_dir.rmdir()
