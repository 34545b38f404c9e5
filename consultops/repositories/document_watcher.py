"""
Document Watcher.

Daemon thread that turns point reads into a push-style document feed for
the live profile subscription.  The watcher polls one document at a fixed
interval and calls ``on_snapshot`` with the first observed state and then
only when the document's data changes or the document disappears.

Lifecycle mirrors the other background workers: ``start()`` spawns the
thread, ``cancel()`` signals it and waits briefly for it to exit.
Consecutive read failures back off exponentially up to ``max_interval_s``.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from consultops.logger import StructuredLogger
from consultops.models.enums import ProfileCollection
from consultops.models.profile_record import ProfileDocument
from consultops.ports import DocumentSnapshot, ProfileStoreError, SnapshotCallback

_UNSET: object = object()


class DocumentWatcher:
    """Polls a single profile document and pushes snapshots on change.

    Parameters
    ----------
    collection, record_id:
        The watched document.
    fetch:
        Zero-argument callable returning the current document or ``None``.
        May raise :class:`ProfileStoreError`.
    on_snapshot:
        Callback invoked on the watcher thread.
    interval_s:
        Base polling interval.
    max_interval_s:
        Ceiling for the failure backoff.
    logger:
        Structured logger.
    """

    _JOIN_TIMEOUT_S: float = 5.0

    def __init__(
        self,
        collection: ProfileCollection,
        record_id: str,
        fetch: Callable[[], Optional[ProfileDocument]],
        on_snapshot: SnapshotCallback,
        interval_s: float,
        max_interval_s: float,
        logger: StructuredLogger,
    ) -> None:
        self._collection = collection
        self._record_id = record_id
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._interval_s = interval_s
        self._max_interval_s = max(max_interval_s, interval_s)
        self._logger = logger
        self._stop_event: threading.Event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._consecutive_failures: int = 0
        self._last_data: Any = _UNSET

    def start(self) -> None:
        """Start polling.  Calling ``start()`` twice is a no-op."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"DocumentWatcher-{self._collection}-{self._record_id}",
            daemon=True,
        )
        self._thread.start()
        self._logger.debug(
            "Document watcher started for %s/%s.", self._collection, self._record_id,
        )

    def cancel(self) -> None:
        """Stop polling.  Safe to call repeatedly and from the callback."""
        self._stop_event.set()
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=self._JOIN_TIMEOUT_S)
        if thread.is_alive():
            self._logger.warning(
                "Document watcher for %s/%s did not stop within %.0f s.",
                self._collection, self._record_id, self._JOIN_TIMEOUT_S,
            )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                self._poll_once()
                if self._stop_event.wait(timeout=self._backoff_interval()):
                    break
        except Exception:
            self._logger.error(
                "Document watcher for %s/%s terminated due to unhandled exception.",
                self._collection, self._record_id,
                exc_info=True,
            )

    def _poll_once(self) -> None:
        try:
            document = self._fetch()
        except ProfileStoreError as exc:
            self._consecutive_failures += 1
            self._logger.warning(
                "Document watcher read failed for %s/%s (%d in a row): %s",
                self._collection, self._record_id, self._consecutive_failures, exc,
            )
            return

        self._consecutive_failures = 0
        data = document.data if document is not None else None
        if data == self._last_data:
            return
        self._last_data = data

        if self._stop_event.is_set():
            return
        self._on_snapshot(DocumentSnapshot(self._collection, self._record_id, document))

    def _backoff_interval(self) -> float:
        if self._consecutive_failures == 0:
            return self._interval_s
        backoff = self._interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, self._max_interval_s)
