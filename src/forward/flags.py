"""Expiring keyed flags with an atomic set-if-absent.

Two backends:

- :class:`MemoryFlagStore` for a single process (dict guarded by a mutex).
- :class:`FileFlagStore` for several processes sharing a state directory.
  Each flag is one file whose body is the expiry as epoch seconds. The
  body is written to a private temp file first and published with
  ``os.link``, which fails if the flag already exists, so only one writer
  can win and a flag file is never visible without its expiry. Expired
  flags are overwritten in place by whichever contender holds the flag's
  ``.reclaim`` marker.
"""

from __future__ import annotations

import logging
import math
import os
import re
import threading
import time
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class FlagStore(Protocol):
    """Keyed flags that disappear after a TTL."""

    def add(self, key: str, ttl: float) -> bool:
        """Set *key* only if absent (or expired). Returns True if this call set it."""
        ...

    def set(self, key: str, ttl: float) -> None:
        """Set *key* unconditionally, replacing any previous expiry."""
        ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...

    def purge(self) -> int:
        """Drop every flag. Returns how many were removed."""
        ...


class MemoryFlagStore:
    """In-process flag store."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[str, float] = {}
        self._mutex = threading.Lock()

    def _live(self, key: str, now: float) -> bool:
        expires = self._expiry.get(key)
        if expires is None:
            return False
        if expires <= now:
            del self._expiry[key]
            return False
        return True

    def add(self, key: str, ttl: float) -> bool:
        with self._mutex:
            now = self._clock()
            if self._live(key, now):
                return False
            self._expiry[key] = now + ttl
            return True

    def set(self, key: str, ttl: float) -> None:
        with self._mutex:
            self._expiry[key] = self._clock() + ttl

    def exists(self, key: str) -> bool:
        with self._mutex:
            return self._live(key, self._clock())

    def delete(self, key: str) -> None:
        with self._mutex:
            self._expiry.pop(key, None)

    def purge(self) -> int:
        with self._mutex:
            count = len(self._expiry)
            self._expiry.clear()
            return count


class FileFlagStore:
    """Flag store backed by one file per flag in *directory*."""

    SUFFIX = ".flag"
    # An unreadable flag younger than this is taken to be mid-write by
    # another writer and counts as held.
    WRITE_GRACE = 5.0

    def __init__(self, directory: Path, clock=time.time) -> None:
        self._dir = directory
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self._dir / f"{_SAFE_KEY_RE.sub('_', key)}{self.SUFFIX}"

    def _private(self, path: Path, kind: str) -> Path:
        return path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.{kind}")

    def _read_expiry(self, path: Path) -> float | None:
        try:
            return float(path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            return self._unreadable_expiry(path)

    def _age(self, path: Path) -> float | None:
        """Seconds since *path* was last written, or None if it is gone."""
        try:
            return time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _unreadable_expiry(self, path: Path) -> float | None:
        try:
            age = self._age(path)
        except OSError:
            return 0.0
        if age is None:
            return None
        if age < self.WRITE_GRACE:
            return math.inf
        # Left behind by a writer that died mid-write.
        return 0.0

    def _create(self, path: Path, expires: float) -> bool:
        tmp = self._private(path, "tmp")
        tmp.write_text(f"{expires:.3f}", encoding="utf-8")
        try:
            os.link(tmp, path)
        except FileExistsError:
            return False
        finally:
            tmp.unlink(missing_ok=True)
        return True

    def add(self, key: str, ttl: float) -> bool:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        now = self._clock()
        if self._create(path, now + ttl):
            return True
        expires = self._read_expiry(path)
        if expires is not None and expires > now:
            return False
        return self._reclaim(path, now, ttl)

    def _reclaim(self, path: Path, now: float, ttl: float) -> bool:
        """Replace an expired flag in place; one contender at a time."""
        marker = path.with_name(f"{path.name}.reclaim")
        if not self._create(marker, now):
            age = self._age(marker)
            if age is not None and age >= self.WRITE_GRACE:
                logger.debug("Removing abandoned reclaim marker %s", marker)
                marker.unlink(missing_ok=True)
            return False
        try:
            expires = self._read_expiry(path)
            if expires is None:
                return self._create(path, now + ttl)
            if expires > now:
                return False
            logger.debug("Reclaiming expired flag %s", path.name)
            self._write(path, now + ttl)
            return True
        finally:
            marker.unlink(missing_ok=True)

    def _write(self, path: Path, expires: float) -> None:
        tmp = self._private(path, "tmp")
        tmp.write_text(f"{expires:.3f}", encoding="utf-8")
        os.replace(tmp, path)

    def set(self, key: str, ttl: float) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        self._write(self._path(key), self._clock() + ttl)

    def exists(self, key: str) -> bool:
        # Expired files stay in place; add() reclaims them.
        expires = self._read_expiry(self._path(key))
        return expires is not None and expires > self._clock()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def purge(self) -> int:
        if not self._dir.exists():
            return 0
        count = 0
        for path in self._dir.glob(f"*{self.SUFFIX}"):
            path.unlink(missing_ok=True)
            count += 1
        return count
