"""Qt-facing asynchronous wrapper around the bounded decoder.

Decoding stays synchronous; this class only schedules it on a thread pool
and reports results through a Qt signal, dropping results that a newer
request for the same source has superseded.
"""

import contextlib
import os
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

from PySide6.QtCore import QObject, Signal

from .config import DecodeOptions
from .decoder import DecodedImage, try_decode_bounded
from .errors import DecodeError
from .logger import get_logger
from .sources import ImageSource

_logger = get_logger("loader")

DecodeFn = Callable[[ImageSource, int, int, DecodeOptions | None], tuple[DecodedImage | None, DecodeError | None]]


class BoundedLoader(QObject):
    """Schedule bounded decodes off the calling thread.

    The decode_fn has the shape of ``try_decode_bounded``:
    (source, max_width, max_height, options) -> (image|None, error|None)
    """

    image_decoded = Signal(str, object, object)  # source key, DecodedImage, error

    def __init__(
        self,
        decode_fn: DecodeFn = try_decode_bounded,
        options: DecodeOptions | None = None,
        max_workers: int | None = None,
    ):
        super().__init__()
        self._decode_fn = decode_fn
        self._options = options
        workers = max_workers or max(2, min(4, (os.cpu_count() or 2)))
        self.pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bounded-decode")
        self._pending: set[str] = set()
        self._ignored: set[str] = set()
        self._next_id = 1
        self._latest_id: dict[str, int] = {}
        self._latest_params: dict[str, tuple[int, int]] = {}
        self._inflight: dict[str, int] = {}
        self._lock = threading.Lock()
        _logger.debug("BoundedLoader init: workers=%s", workers)

    def _run(self, source: ImageSource, max_width: int, max_height: int):
        return self._decode_fn(source, max_width, max_height, self._options)

    def _on_finished(self, key: str, req_id: int, future: Future) -> None:
        if future.cancelled():
            with self._lock:
                self._settle(key, req_id)
            _logger.debug("decode_finished cancelled: key=%s id=%s", key, req_id)
            return
        try:
            image, error = future.result()
        except Exception as e:
            # decode_fn broke its contract; still report instead of leaving the key pending
            _logger.exception("decode future failed: key=%s", key)
            image, error = None, e
        with self._lock:
            latest = self._latest_id.get(key)
            self._settle(key, req_id)
            if key in self._ignored:
                _logger.debug("decode_finished ignored: key=%s id=%s (in ignored)", key, req_id)
                return
            if latest is not None and req_id != latest:
                _logger.debug("decode_finished stale: key=%s id=%s latest=%s (dropped)", key, req_id, latest)
                return
        size = (image.width, image.height) if image is not None else None
        _logger.debug("decode_finished emit: key=%s id=%s size=%s err=%s", key, req_id, size, error)
        self.image_decoded.emit(key, image, error)

    def _settle(self, key: str, req_id: int) -> None:
        # Caller holds self._lock. Per-key state lives only while a request for the key is in flight.
        remaining = self._inflight.get(key, 1) - 1
        if self._latest_id.get(key) == req_id:
            self._pending.discard(key)
            self._latest_params.pop(key, None)
        if remaining > 0:
            self._inflight[key] = remaining
            return
        self._inflight.pop(key, None)
        self._latest_id.pop(key, None)
    def request_load(self, source: ImageSource, max_width: int, max_height: int) -> Future | None:
        key = source.key
        params = (max_width, max_height)
        with self._lock:
            if key in self._ignored:
                _logger.debug("request_load skip(ignored): key=%s", key)
                return None

            # If an identical request is already pending, do not queue another.
            if key in self._pending and self._latest_params.get(key) == params:
                _logger.debug("request_load dedupe(pending): key=%s bounds=%s", key, params)
                return None

            # A re-request with new bounds supersedes the pending one; its result is dropped as stale.
            self._pending.add(key)
            req_id = self._next_id
            self._next_id += 1
            self._latest_id[key] = req_id
            self._latest_params[key] = params
            self._inflight[key] = self._inflight.get(key, 0) + 1
            pending_count = len(self._pending)
        _logger.debug("request_load queued: key=%s id=%s bounds=%s pending=%s", key, req_id, params, pending_count)
        future = self.pool.submit(self._run, source, max_width, max_height)
        future.add_done_callback(partial(self._on_finished, key, req_id))
        return future

    def ignore(self, key: str) -> None:
        with self._lock:
            self._ignored.add(key)
            self._pending.discard(key)
            self._latest_id.pop(key, None)
            self._latest_params.pop(key, None)

    def unignore(self, key: str) -> None:
        with self._lock:
            self._ignored.discard(key)

    def clear_pending(self) -> None:
        """Forget all pending requests; their results will still be emitted if they finish."""
        with self._lock:
            self._pending.clear()
            self._ignored.clear()
            self._latest_id.clear()
            self._latest_params.clear()
            self._inflight.clear()

    def shutdown(self) -> None:
        with contextlib.suppress(RuntimeError):
            self.pool.shutdown(wait=False, cancel_futures=True)
