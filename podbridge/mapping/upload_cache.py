# podbridge/mapping/upload_cache.py
# =============================
# Printful file-id cache: source URL -> file id
# - One JSON file, shared by every worker process
# - Writes: lock, reload, merge, temp file + rename
# - Entries are never evicted (artwork URLs are content-stable)
# =============================

import asyncio
import errno
import fcntl
import json
import logging
import os
import re
import shutil
import tempfile
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from podbridge.errors import CacheFailure

logger = logging.getLogger("uvicorn.error")

SCHEMA_VERSION = 1
SAVE_RETRIES = 5
SAVE_RETRY_DELAY_SECS = 0.15
BACKUP_SUFFIX = ".corrupt.bak"


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


# -------------------------------------------------
# Low-level load/save with auto-fix
# -------------------------------------------------
def _try_repair_json(text: str) -> Optional[dict]:
    """
    Best-effort fixer for a partially written file:
    strip NULs / BOM, drop trailing commas, truncate to the last closing brace.
    """
    cleaned = text.replace("\x00", "").lstrip("\ufeff")

    try:
        return json.loads(cleaned)
    except JSONDecodeError:
        pass

    cleaned2 = re.sub(r",(\s*[}\]])", r"\1", cleaned)
    try:
        return json.loads(cleaned2)
    except JSONDecodeError:
        pass

    cut = cleaned.rfind("}")
    while cut != -1:
        try:
            return json.loads(cleaned[: cut + 1])
        except JSONDecodeError:
            cut = cleaned.rfind("}", 0, cut)

    return None


def _atomic_write(path: Path, payload: dict):
    directory = str(path.parent)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(payload, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def load_cache_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    text = path.read_text(encoding="utf-8", errors="replace")
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except JSONDecodeError:
        data = _try_repair_json(text)
        if data is None:
            raise
        shutil.copy2(path, str(path) + BACKUP_SUFFIX)
        logger.warning("[upload-cache] Repaired corrupt cache file %s", path)
        _atomic_write(path, data)

    if not isinstance(data, dict):
        return {}
    # flat {url: id} files from before the schema header
    if "schema_version" not in data:
        data = {"files": {u: {"file_id": fid, "uploaded_at": None} for u, fid in data.items()}}
    return data.get("files") or {}


class UploadCache:
    """
    get_or_upload(url, uploader) returns a cached file id or calls `uploader(url)`
    once, stores the result and returns it. Failed uploads are never stored.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = Path(str(self.path) + ".lock")
        self._mutex = threading.Lock()
        self._inflight: Dict[str, asyncio.Lock] = {}

    @contextmanager
    def _locked(self):
        with self._mutex, open(self._lock_path, "a+") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def get(self, source_url: str) -> Optional[Any]:
        entry = load_cache_raw(self.path).get(source_url)
        return entry.get("file_id") if entry else None

    def put(self, source_url: str, file_id: Any):
        for _ in range(SAVE_RETRIES):
            try:
                with self._locked():
                    files = load_cache_raw(self.path)
                    files[source_url] = {"file_id": file_id, "uploaded_at": now_iso()}
                    _atomic_write(
                        self.path,
                        {"schema_version": SCHEMA_VERSION, "generated_at": now_iso(), "files": files},
                    )
                return
            except OSError as e:
                if e.errno in (errno.EAGAIN, errno.EBUSY):
                    time.sleep(SAVE_RETRY_DELAY_SECS)
                    continue
                raise
        raise RuntimeError("Failed to save upload cache after retries")

    def clear(self, source_url: Optional[str] = None):
        """Manual invalidation; with no URL, drops every entry."""
        with self._locked():
            files = load_cache_raw(self.path) if source_url else {}
            files.pop(source_url, None)
            _atomic_write(self.path, {"schema_version": SCHEMA_VERSION, "generated_at": now_iso(), "files": files})

    def __len__(self) -> int:
        return len(load_cache_raw(self.path))

    async def _read(self, source_url: str) -> Optional[Any]:
        try:
            return await asyncio.to_thread(self.get, source_url)
        except (OSError, ValueError) as e:
            logger.error("[upload-cache] cannot read %s: %s", self.path, e)
            raise CacheFailure(f"Upload cache {self.path} is unreadable: {e}") from e

    async def get_or_upload(self, source_url: str, uploader: Callable[[str], Awaitable[Any]]) -> Any:
        """
        An unreadable cache fails the call with CacheFailure before anything is uploaded.
        A cache write that fails after a successful upload is logged and the new id is still returned.
        """
        cached = await self._read(source_url)
        if cached is not None:
            logger.info("[upload-cache] hit %s -> %s", source_url, cached)
            return cached

        # one upload per URL inside this process; waiters re-read the cache
        lock = self._inflight.setdefault(source_url, asyncio.Lock())
        try:
            async with lock:
                cached = await self._read(source_url)
                if cached is not None:
                    return cached
                file_id = await uploader(source_url)
                try:
                    await asyncio.to_thread(self.put, source_url, file_id)
                except (OSError, ValueError, RuntimeError) as e:
                    logger.error("[upload-cache] could not store %s -> %s: %s", source_url, file_id, e)
                    return file_id
        finally:
            if not lock.locked():
                self._inflight.pop(source_url, None)
        logger.info("[upload-cache] stored %s -> %s", source_url, file_id)
        return file_id
