"""
Time-ordered 64-bit id generator.

Layout: 41 bits of milliseconds since EPOCH_MS, 10 bits of worker id,
12 bits of per-millisecond sequence. Ids fit a signed BIGINT column.
"""
import threading
import time

from app.config import settings

EPOCH_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z

_WORKER_BITS = 10
_SEQUENCE_BITS = 12
_MAX_WORKER = (1 << _WORKER_BITS) - 1
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1


class SnowflakeGenerator:
    def __init__(self, worker_id: int) -> None:
        if not 0 <= worker_id <= _MAX_WORKER:
            raise ValueError(f"worker_id must be between 0 and {_MAX_WORKER}")
        self.worker_id = worker_id
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    def next_id(self) -> int:
        with self._lock:
            now = self._now_ms()
            if now < self._last_ms:
                # clock moved backwards; keep issuing from the last timestamp
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now
            return (
                ((now - EPOCH_MS) << (_WORKER_BITS + _SEQUENCE_BITS))
                | (self.worker_id << _SEQUENCE_BITS)
                | self._sequence
            )


_generator = SnowflakeGenerator(settings.SNOWFLAKE_WORKER_ID)


def next_id() -> int:
    return _generator.next_id()
