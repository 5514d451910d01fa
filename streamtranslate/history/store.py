"""
Application Data Storage Module

Persists the single application document (history, languages, selected
language, AI settings) as one JSON file. The document is read wholesale and
written wholesale on every change.

Key Components:
- AppDataStore: Protocol with load/save/update
- JsonFileStore: aiofiles-backed file store with cross-process locking
- InMemoryStore: same protocol without a file, for tests and dry runs

Missing, blank or corrupt files load as the default document. Writes go to a
temporary file that atomically replaces the target.
"""
from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Protocol

import aiofiles
import structlog
from filelock import FileLock, Timeout
from pydantic import ValidationError

from streamtranslate.history.models import TranslationAppData

logger = structlog.get_logger(__name__)

DocumentUpdate = Callable[[TranslationAppData], TranslationAppData]


@asynccontextmanager
async def async_file_lock(file_lock: FileLock) -> AsyncGenerator[None]:
    """
    Hold ``file_lock`` for the duration of the block without blocking the loop.

    Raises:
        TimeoutError: If the lock cannot be acquired within its timeout
    """
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, file_lock.acquire)
    except Timeout as e:
        raise TimeoutError(
            f"Failed to acquire file lock {file_lock.lock_file} "
            f"within {file_lock.timeout}s"
        ) from e

    try:
        yield
    finally:
        await loop.run_in_executor(None, file_lock.release)


class AppDataStore(Protocol):
    """Interface for loading and saving the application document."""

    async def load(self) -> TranslationAppData:
        """Return the stored document, or the default one if none exists."""
        ...

    async def save(self, data: TranslationAppData) -> None:
        """Replace the stored document with ``data``."""
        ...

    async def update(self, fn: DocumentUpdate) -> TranslationAppData:
        """
        Read the document, apply ``fn`` and write the result back as one step.
        Returns the written document.
        """
        ...


class JsonFileStore(AppDataStore):
    """
    JSON document store using aiofiles with cross-process file locking.

    An asyncio.Lock serializes coroutines in this process; a FileLock next to
    the document serializes processes. ``fsync_enabled`` forces each write to
    disk before the rename.
    """

    def __init__(
        self,
        path: str = "translation_app_data.json",
        *,
        lock_timeout: float = 30.0,
        fsync_enabled: bool = True,
    ):
        self.path = path
        self.fsync_enabled = fsync_enabled
        self._lock = asyncio.Lock()
        self._file_lock = FileLock(
            f"{path}.lock", timeout=lock_timeout, thread_local=False
        )

    async def load(self) -> TranslationAppData:
        async with self._lock, async_file_lock(self._file_lock):
            return await self._read()

    async def save(self, data: TranslationAppData) -> None:
        async with self._lock, async_file_lock(self._file_lock):
            await self._write(data)

    async def update(self, fn: DocumentUpdate) -> TranslationAppData:
        async with self._lock, async_file_lock(self._file_lock):
            updated = fn(await self._read())
            await self._write(updated)
            return updated

    async def _read(self) -> TranslationAppData:
        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return TranslationAppData()
        except UnicodeDecodeError as e:
            logger.warning(
                "Unreadable app data, using defaults",
                path=self.path,
                error=str(e),
            )
            return TranslationAppData()

        if not content.strip():
            return TranslationAppData()

        try:
            return TranslationAppData.model_validate_json(content)
        except ValidationError as e:
            logger.warning(
                "Unreadable app data, using defaults",
                path=self.path,
                error_count=e.error_count(),
            )
            return TranslationAppData()

    async def _write(self, data: TranslationAppData) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        tmp_path = f"{self.path}.tmp"
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(data.model_dump_json(by_alias=True, indent=2))
            await f.flush()
            if self.fsync_enabled:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, os.fsync, f.fileno())
        os.replace(tmp_path, self.path)


class InMemoryStore(AppDataStore):
    """Keeps the document in memory; every call hands out a deep copy."""

    def __init__(self, data: TranslationAppData | None = None):
        self._data = data.model_copy(deep=True) if data else TranslationAppData()
        self._lock = asyncio.Lock()
        self.save_count = 0

    async def load(self) -> TranslationAppData:
        async with self._lock:
            return self._data.model_copy(deep=True)

    async def save(self, data: TranslationAppData) -> None:
        async with self._lock:
            self._data = data.model_copy(deep=True)
            self.save_count += 1

    async def update(self, fn: DocumentUpdate) -> TranslationAppData:
        async with self._lock:
            self._data = fn(self._data.model_copy(deep=True))
            self.save_count += 1
            return self._data.model_copy(deep=True)
