from __future__ import annotations

import threading
from typing import Dict

from tunebridge.launcher import TransferBatch

# In-memory registry; each batch owns its own JobStore.
BATCHES: Dict[str, TransferBatch] = {}
MAX_CONCURRENT_BATCHES = 6
CLEANUP_AFTER_SECONDS = 60 * 60  # 1 hour after a batch ends
# Held across the capacity check and registration of a new batch.
LOCK = threading.RLock()


def active_batch_count() -> int:
    with LOCK:
        return sum(1 for b in BATCHES.values() if b.is_active())


def register_batch(batch: TransferBatch) -> None:
    with LOCK:
        BATCHES[batch.id] = batch
    t = threading.Thread(target=_evict_when_done, args=(batch,), daemon=True)
    t.start()


def _evict(batch_id: str) -> None:
    with LOCK:
        BATCHES.pop(batch_id, None)


def _evict_when_done(batch: TransferBatch) -> None:
    batch.wait()
    t = threading.Timer(CLEANUP_AFTER_SECONDS, _evict, args=(batch.id,))
    t.daemon = True
    t.start()
