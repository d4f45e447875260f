"""
Translation Cache Store

Single-file JSON cache of translation records keyed by TranslationKey.
The file is read once, lazily; afterwards the in-memory copy is the source
of truth and the file is only written.
"""
import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional

import aiofiles
from loguru import logger

from .models import TranslationCacheFile, TranslationKey, TranslationRecord, TranslationStatus


class TranslationCacheStore:
    """
    Persistent translation cache.

    - All loads and mutations are serialized by one asyncio.Lock
    - Every mutation rewrites the whole file (temp file + rename)
    - A corrupt file is archived next to itself and replaced by an empty cache
    - A failed write is logged; the in-memory state stays authoritative
    """

    def __init__(self, cache_path: Path, log=None):
        self.cache_path = Path(cache_path)
        self._log = log or logger.bind(component="cache_store")
        self._lock = asyncio.Lock()
        self._cache = TranslationCacheFile()
        self._loaded = False

    async def try_get(self, key: TranslationKey) -> Optional[TranslationRecord]:
        async with self._lock:
            await self._ensure_loaded()
            return self._cache.records.get(key.cache_key)

    async def get_batch(self, keys: Iterable[TranslationKey]) -> Dict[str, TranslationRecord]:
        """Records for the keys that are present, keyed by cache_key"""
        async with self._lock:
            await self._ensure_loaded()
            results: Dict[str, TranslationRecord] = {}
            for key in keys:
                record = self._cache.records.get(key.cache_key)
                if record is not None:
                    results[key.cache_key] = record
            return results

    async def upsert(self, record: TranslationRecord) -> None:
        async with self._lock:
            await self._ensure_loaded()
            self._cache.records[record.key.cache_key] = record
            await self._save()

    async def upsert_many(self, records: Iterable[TranslationRecord]) -> None:
        async with self._lock:
            await self._ensure_loaded()
            for record in records:
                self._cache.records[record.key.cache_key] = record
            await self._save()

    async def delete_all(self) -> None:
        """Drop every record and remove the backing file"""
        async with self._lock:
            self._cache = TranslationCacheFile()
            self._loaded = True
            try:
                self.cache_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                self._log.error(f"Failed to delete translation cache {self.cache_path}: {e}")
            self._log.info("Translation cache cleared")

    async def count(self) -> int:
        async with self._lock:
            await self._ensure_loaded()
            return len(self._cache.records)

    async def stats(self) -> Dict[str, int]:
        """Record counts: total plus one entry per status"""
        async with self._lock:
            await self._ensure_loaded()
            counts = {"total": len(self._cache.records)}
            for status in TranslationStatus:
                counts[status.value.lower()] = sum(
                    1 for r in self._cache.records.values() if r.status == status
                )
            return counts

    # ==================== Persistence ====================

    async def _ensure_loaded(self) -> None:
        # Caller holds the lock
        if self._loaded:
            return

        if not self.cache_path.exists():
            self._cache = TranslationCacheFile()
            self._loaded = True
            return

        try:
            async with aiofiles.open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            self._cache = TranslationCacheFile.from_dict(data)
            self._log.info(f"Loaded {len(self._cache.records)} cached translations from {self.cache_path}")
        except Exception as e:
            backup_path = self._archive_broken_file()
            self._log.warning(f"Translation cache unreadable ({e}), archived to {backup_path}")
            self._cache = TranslationCacheFile()
        self._loaded = True

    def _archive_broken_file(self) -> Optional[Path]:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        backup_path = self.cache_path.with_name(f"{self.cache_path.name}.broken_{stamp}")
        try:
            os.replace(self.cache_path, backup_path)
            return backup_path
        except OSError as e:
            self._log.error(f"Failed to archive broken translation cache: {e}")
            return None

    async def _save(self) -> None:
        # Caller holds the lock
        tmp_path = self.cache_path.with_name(self.cache_path.name + ".tmp")
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(self._cache.to_dict(), ensure_ascii=False)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            self._log.error(f"Failed to save translation cache {self.cache_path}: {e}")
