# variant_tagger/services/work_queue.py
import queue
import threading
from typing import Iterable, Optional

from .. import config
from ..utils.logger import debug, info, warn, error
from .catalog import list_variant_ids, EnumerationResult
from .cooldown import CooldownStore
from .sync import reconcile_many


class VariantQueue:
    """Pending variant ids, drained in fixed-size batches by one background thread.

    put() never blocks. Each tick takes at most batch_size ids.
    """

    def __init__(self, store: dict, cooldown: CooldownStore,
                 batch_size: int = config.QUEUE_BATCH_SIZE,
                 interval_sec: float = config.QUEUE_INTERVAL_SEC,
                 throttle_sec: float = config.THROTTLE_SEC):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.cooldown = cooldown
        self.batch_size = batch_size
        self.interval_sec = interval_sec
        self.throttle_sec = throttle_sec
        self._pending: queue.SimpleQueue = queue.SimpleQueue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # outcome of the most recent full-catalog enumeration, None until one runs
        self.last_full_sync: Optional[dict] = None

    def put(self, variant_ids: Iterable[str]) -> int:
        n = 0
        for vid in variant_ids:
            if vid:
                self._pending.put_nowait(str(vid))
                n += 1
        if n:
            debug(f"enqueued {n} ids ({self.pending()} pending)", "queue")
        return n

    def pending(self) -> int:
        return self._pending.qsize()

    def take_batch(self) -> list[str]:
        batch = []
        while len(batch) < self.batch_size:
            try:
                batch.append(self._pending.get_nowait())
            except queue.Empty:
                break
        return batch

    def drain_once(self) -> Optional[dict]:
        batch = self.take_batch()
        if not batch:
            return None
        info(f"processing batch of {len(batch)} ({self.pending()} still pending)", "queue")
        summary = reconcile_many(self.store, batch, self.cooldown,
                                 throttle_sec=self.throttle_sec, cancel=self._stop)
        info(f"batch done: {summary}", "queue")
        return summary

    # -----------------------------------------------------
    # consumer thread
    # -----------------------------------------------------

    def _run(self):
        info(f"consumer started (batch={self.batch_size}, every {self.interval_sec}s)", "queue")
        while not self._stop.is_set():
            try:
                self.drain_once()
            except Exception as e:
                error(f"consumer tick failed: {e}", "queue")
            self._stop.wait(self.interval_sec)
        info("consumer stopped", "queue")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="variant-queue", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)

    @property
    def stopping(self) -> threading.Event:
        return self._stop

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


# =========================================================
# Full sync
# =========================================================

def enqueue_full_sync(store: dict, work: VariantQueue,
                      cancel: Optional[threading.Event] = None) -> EnumerationResult:
    result = list_variant_ids(store, page_size=config.PAGE_SIZE, cancel=cancel, on_page=work.put)
    work.last_full_sync = {
        "queued": len(result),
        "pages": result.pages,
        "enumeration": "complete" if result.complete else "partial",
    }
    if not result.complete:
        warn(f"full sync queued a partial catalog: {len(result)} ids after {result.pages} pages", "bulk")
    else:
        info(f"full sync queued {len(result)} ids", "bulk")
    return result


def start_full_sync_scheduler(store: dict, work: VariantQueue,
                              interval_sec: float = config.FULL_SYNC_INTERVAL_SEC) -> Optional[threading.Thread]:
    """Periodic full-catalog pass into the queue. interval_sec <= 0 disables it."""
    if interval_sec <= 0:
        return None

    def loop():
        stop = work.stopping
        while not stop.wait(interval_sec):
            try:
                enqueue_full_sync(store, work, cancel=stop)
            except Exception as e:
                error(f"scheduled full sync failed: {e}", "bulk")

    t = threading.Thread(target=loop, name="full-sync", daemon=True)
    t.start()
    info(f"full sync scheduled every {interval_sec}s", "bulk")
    return t
