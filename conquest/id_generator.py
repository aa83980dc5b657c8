import threading
import time

EPOCH_MS = 1_672_531_200_000  # 2023-01-01T00:00:00Z
NODE_BITS = 10
SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << NODE_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class SnowflakeGenerator:
    """Generates unique, strictly increasing 63-bit ids.

    Layout: ``timestamp(ms since EPOCH_MS) | node id | sequence``.
    The sequence keeps counting across milliseconds instead of restarting at 0,
    so the low bits (and therefore ``id % shard_count``) stay evenly spread.
    When it wraps to 0 inside one millisecond the generator waits for the next
    millisecond, so a wrapped sequence always sits under a larger timestamp.
    """

    def __init__(self, node_id: int, clock=time.time):
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node_id must be between 0 and {MAX_NODE_ID}")
        self.node_id = node_id
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000) - EPOCH_MS

    def generate(self) -> int:
        with self._lock:
            # clock moved backwards; keep ids monotonic
            now_ms = max(self._now_ms(), self._last_ms)
            sequence = (self._sequence + 1) & SEQUENCE_MASK
            if sequence == 0 and now_ms == self._last_ms:
                while now_ms <= self._last_ms:
                    now_ms = self._now_ms()

            self._last_ms = now_ms
            self._sequence = sequence
            return (now_ms << (NODE_BITS + SEQUENCE_BITS)) | (self.node_id << SEQUENCE_BITS) | sequence
