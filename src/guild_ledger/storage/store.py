"""File-backed JSON record store.

Overview
--------
The whole economy lives in one JSON document on disk::

    {
      "<guildID>": {
        "<memberID>": {"money": 0, "bank": 0, "inventory": [], ...},
        "shop": [ ... ],
        "settings": { ... }
      }
    }

:class:`RecordStore` is the single source of truth for that document.  It is
constructed once per storage path and injected into every engine component;
there is no module-level store.

Critical section
----------------
Every mutating engine operation runs inside :meth:`RecordStore.transaction`,
which holds the store's re-entrant lock for the entire read-modify-write span:

1. Acquire the lock.
2. Read and parse the document once (the snapshot).
3. Yield the snapshot to the caller, who transforms it in memory.
4. Write the whole document back once, atomically.
5. Release the lock.

If the body raises, nothing is written and the previous file is untouched.
If the body leaves the snapshot equal to what was read, the write is skipped.

Reads that do not mutate call :meth:`RecordStore.load`, which takes the lock
only around the file read so they never observe a half-replaced file.

Atomic writes
-------------
:meth:`RecordStore.save` serializes into a sibling temporary file and moves it
over the storage file with :func:`os.replace`.  A crash mid-write leaves either
the old or the new document, never a truncated one.

Health watcher
--------------
:meth:`RecordStore.start_watcher` starts a daemon thread that calls
:meth:`RecordStore.check_health` every ``update_countdown_ms``.  A vanished
file is recreated as ``{}``; an unparseable file is logged and handed to the
optional ``on_corrupt`` callback.  The watcher takes the same lock as
mutations, so it never interleaves with an in-flight write.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from guild_ledger.errors import (
    CorruptStorageError,
    InvalidArgumentError,
    StorageError,
    StorageOperationContext,
    StorageWriteError,
)
from guild_ledger.storage.schema import validate_document

logger = logging.getLogger(__name__)

Document = dict[str, Any]
CorruptionCallback = Callable[[CorruptStorageError], None]

_EMPTY_DOCUMENT_TEXT = "{}"


class RecordStore:
    """Whole-document JSON storage with a per-document critical section.

    Args:
        path: Location of the JSON document.  Created as ``{}`` on first
            access when absent.
        update_countdown_ms: Interval between health checks run by the
            background watcher.
        on_corrupt: Optional callback invoked by the watcher with the
            :exc:`~guild_ledger.errors.CorruptStorageError` it detected.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        update_countdown_ms: int = 1000,
        on_corrupt: CorruptionCallback | None = None,
    ) -> None:
        if update_countdown_ms <= 0:
            raise InvalidArgumentError(
                f"update_countdown_ms must be positive. Received: {update_countdown_ms!r}"
            )
        self._path = Path(path)
        self._update_countdown_ms = update_countdown_ms
        self._on_corrupt = on_corrupt
        # Re-entrant so a component already inside a transaction can call
        # load() for a helper read without deadlocking.
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._watcher: threading.Thread | None = None

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> Document:
        """Read and parse the full document.

        Returns:
            A fresh dict; mutating it does not affect the file.

        Raises:
            CorruptStorageError: If the file is not UTF-8 JSON holding an
                object with the economy document layout.
            StorageError: If the file cannot be read at all.
        """
        with self._lock:
            doc, _ = self._read_locked("store.load")
            return doc

    def all(self) -> Document:
        """Alias of :meth:`load` used by read paths."""
        return self.load()

    def save(self, doc: Document) -> None:
        """Overwrite the file with ``doc`` completely and atomically.

        Raises:
            InvalidArgumentError: If ``doc`` is not a dict.
            StorageWriteError: If serialization or the file replace fails.
        """
        with self._lock:
            self._write_locked(doc, "store.save")

    @contextmanager
    def transaction(self, operation: str = "store.transaction") -> Iterator[Document]:
        """Run one read-modify-write cycle under the store lock.

        Args:
            operation: Label used in log lines and storage error contexts.

        Yields:
            The snapshot to transform in place.
        """
        with self._lock:
            doc, original_text = self._read_locked(operation)
            yield doc
            if _canonical(doc) == original_text:
                logger.debug("%s: snapshot unchanged; write skipped", operation)
                return
            self._write_locked(doc, operation)
            logger.debug("%s: committed to %s", operation, self._path.name)

    def check_health(self) -> None:
        """Verify the file exists and parses; recreate it when it vanished.

        Raises:
            CorruptStorageError: If the file exists but is not valid.
        """
        with self._lock:
            if not self._path.exists():
                logger.warning("Storage file %s was removed; created another one.", self._path)
                self._write_locked({}, "store.check_health")
                return
            self._read_locked("store.check_health")

    # ------------------------------------------------------------------
    # Health watcher
    # ------------------------------------------------------------------

    def start_watcher(self) -> None:
        """Start the background health-check thread (idempotent)."""
        if self._watcher is not None and self._watcher.is_alive():
            return
        self._stop_event.clear()
        self._watcher = threading.Thread(
            target=self._watch,
            name=f"guild-ledger-watcher:{self._path.name}",
            daemon=True,
        )
        self._watcher.start()
        logger.info(
            "Storage watcher started for %s (every %d ms)",
            self._path,
            self._update_countdown_ms,
        )

    def stop_watcher(self, timeout: float | None = 5.0) -> None:
        """Signal the watcher to stop and wait for it to exit."""
        self._stop_event.set()
        watcher = self._watcher
        if watcher is not None:
            watcher.join(timeout)
            logger.info("Storage watcher stopped for %s", self._path)
        self._watcher = None

    @property
    def watcher_running(self) -> bool:
        return self._watcher is not None and self._watcher.is_alive()

    def _watch(self) -> None:
        interval = self._update_countdown_ms / 1000.0
        while not self._stop_event.wait(interval):
            try:
                self.check_health()
            except CorruptStorageError as exc:
                logger.error("Storage health check failed: %s", exc)
                if self._on_corrupt is not None:
                    try:
                        self._on_corrupt(exc)
                    except Exception:
                        logger.exception("on_corrupt callback raised")
            except Exception:
                logger.exception("Storage health check could not complete")

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _read_locked(self, operation: str) -> tuple[Document, str]:
        """Return the parsed document and its canonical serialization."""
        if not self._path.exists():
            logger.info("Failed to find the storage file; created %s", self._path)
            self._write_locked({}, operation)
            return {}, _EMPTY_DOCUMENT_TEXT

        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise StorageError(
                context=StorageOperationContext(operation, f"cannot read {self._path}: {exc}"),
                cause=exc,
            ) from exc

        try:
            doc = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            # UnicodeDecodeError and JSONDecodeError both land here.
            raise CorruptStorageError(
                context=StorageOperationContext(
                    operation, f"storage file {self._path} contains wrong data: {exc}"
                ),
                cause=exc,
            ) from exc

        if not isinstance(doc, dict):
            raise CorruptStorageError(
                context=StorageOperationContext(
                    operation,
                    f"storage file {self._path} must hold a JSON object, "
                    f"found {type(doc).__name__}",
                )
            )

        try:
            validate_document(doc)
        except ValueError as exc:
            raise CorruptStorageError(
                context=StorageOperationContext(
                    operation,
                    f"storage file {self._path} does not match the document layout: {exc}",
                ),
                cause=exc,
            ) from exc
        return doc, _canonical(doc)

    def _write_locked(self, doc: Document, operation: str) -> None:
        if not isinstance(doc, dict):
            raise InvalidArgumentError(
                f"document must be a dict. Received type: {type(doc).__name__}"
            )
        try:
            text = json.dumps(doc, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(
                context=StorageOperationContext(operation, f"document is not serializable: {exc}"),
                cause=exc,
            ) from exc

        tmp = self._path.with_name(f".{self._path.name}.{uuid.uuid4().hex}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
            os.replace(tmp, self._path)
        except OSError as exc:
            raise StorageWriteError(
                context=StorageOperationContext(operation, f"cannot write {self._path}: {exc}"),
                cause=exc,
            ) from exc
        finally:
            tmp.unlink(missing_ok=True)


def _canonical(doc: Document) -> str:
    """Deterministic serialization used to detect unchanged snapshots."""
    try:
        return json.dumps(doc, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        # Unserializable snapshots always count as changed; the write path
        # reports the real error.
        return ""
