"""
Time-sortable 64-bit identifier allocator.

Layout (most significant first): 41 bits of milliseconds since a custom
epoch, 5 datacenter bits, 5 worker bits, 12 sequence bits. Identifiers are
allocated in-process before any row is written, so creators never race on
storage-assigned keys and ids sort roughly by creation time.
"""
import threading
import time

from cipherpost.config import settings

WORKER_ID_BITS = 5
DATACENTER_ID_BITS = 5
SEQUENCE_BITS = 12

MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
DATACENTER_ID_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS + DATACENTER_ID_BITS


class SnowflakeGenerator:
    """Thread-safe snowflake id generator."""

    def __init__(self, worker_id: int, datacenter_id: int, epoch_ms: int):
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise ValueError(f"worker_id must be between 0 and {MAX_WORKER_ID}")
        if not 0 <= datacenter_id <= MAX_DATACENTER_ID:
            raise ValueError(f"datacenter_id must be between 0 and {MAX_DATACENTER_ID}")

        self.worker_id = worker_id
        self.datacenter_id = datacenter_id
        self.epoch_ms = epoch_ms
        self._sequence = 0
        self._last_timestamp = -1
        self._lock = threading.Lock()

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000

    def _wait_next_ms(self, last_timestamp: int) -> int:
        timestamp = self._now_ms()
        while timestamp <= last_timestamp:
            timestamp = self._now_ms()
        return timestamp

    def generate(self) -> int:
        """Allocate the next identifier."""
        with self._lock:
            timestamp = self._now_ms()

            # Clock moved backwards: keep issuing from the last seen millisecond
            if timestamp < self._last_timestamp:
                timestamp = self._last_timestamp

            if timestamp == self._last_timestamp:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    timestamp = self._wait_next_ms(self._last_timestamp)
            else:
                self._sequence = 0

            self._last_timestamp = timestamp

            return (
                ((timestamp - self.epoch_ms) << TIMESTAMP_SHIFT)
                | (self.datacenter_id << DATACENTER_ID_SHIFT)
                | (self.worker_id << WORKER_ID_SHIFT)
                | self._sequence
            )


# Global generator instance
id_generator = SnowflakeGenerator(
    worker_id=settings.id_worker_id,
    datacenter_id=settings.id_datacenter_id,
    epoch_ms=settings.id_epoch_ms,
)


def next_id() -> int:
    """Allocate an identifier from the global generator."""
    return id_generator.generate()
