"""Bandwidth limiting for upload streams.

The limit is applied to the bytes read from the source stream, so it holds
for any transport that pulls data through ``read()``.
"""

import re
import threading
import time
from typing import BinaryIO, Callable, Optional

from s3_archiver.errors import ConfigError

_RATE_PATTERN = re.compile(
    r'^\s*(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[kmgt])?\s*(?:b(?:ps|/s)?|ps|/s)?\s*$',
    re.IGNORECASE,
)

_MULTIPLIERS = {
    None: 1,
    'k': 1024,
    'm': 1024 ** 2,
    'g': 1024 ** 3,
    't': 1024 ** 4,
}


def parse_rate(text: str) -> int:
    """Parse a human rate such as ``2Mb/s`` into bytes per second.

    Unit letters are 1024-based and case-insensitive. A trailing ``b``/``B``
    and ``/s`` or ``ps`` are accepted and do not change the value, so
    ``2Mb/s``, ``2MB/s`` and ``2M`` are all 2 MiB/s.
    """
    match = _RATE_PATTERN.match(str(text))
    if not match:
        raise ConfigError(f"Invalid bandwidth '{text}' (expected e.g. 2Mb/s, 512K, 1048576)")

    unit = match.group('unit')
    multiplier = _MULTIPLIERS[unit.lower() if unit else None]
    rate = int(float(match.group('number')) * multiplier)
    if rate <= 0:
        raise ConfigError(f"Bandwidth must be positive: '{text}'")
    return rate


class TokenBucket:
    """Token bucket measured in bytes.

    Starts empty so that the very first bytes are already paced. ``consume``
    blocks until enough tokens have accumulated.
    """

    # Float slack when comparing token counts after a computed sleep
    _EPSILON = 1e-3

    def __init__(self, rate: float, capacity: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = float(rate)
        self.capacity = float(capacity) if capacity else max(1.0, self.rate / 4)
        self._clock = clock
        self._sleep = sleep
        self._tokens = 0.0
        self._last = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last = now

    def consume(self, amount: int) -> None:
        remaining = float(amount)
        while remaining > 0:
            chunk = min(remaining, self.capacity)
            with self._lock:
                self._refill()
                if self._tokens + self._EPSILON >= chunk:
                    self._tokens -= chunk
                    remaining -= chunk
                    continue
                wait = (chunk - self._tokens) / self.rate
            self._sleep(wait)


class ThrottledReader:
    """File-like wrapper that paces ``read()`` through a TokenBucket.

    Reads honour the requested size (short only at EOF) but pull from the
    underlying file in pieces no larger than the bucket capacity, so a
    single large read is spread evenly over time.
    """

    def __init__(self, fileobj: BinaryIO, bucket: TokenBucket,
                 callback: Optional[Callable[[int], None]] = None):
        self._fileobj = fileobj
        self._bucket = bucket
        self._callback = callback
        self._piece = max(1, int(bucket.capacity))
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        chunks = []
        remaining = size if size is not None and size >= 0 else None
        while remaining is None or remaining > 0:
            want = self._piece if remaining is None else min(self._piece, remaining)
            data = self._fileobj.read(want)
            if not data:
                break
            self._bucket.consume(len(data))
            self.bytes_read += len(data)
            if self._callback:
                self._callback(len(data))
            chunks.append(data)
            if remaining is not None:
                remaining -= len(data)
        return b''.join(chunks)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._fileobj.seek(offset, whence)

    def tell(self) -> int:
        return self._fileobj.tell()

    def seekable(self) -> bool:
        return self._fileobj.seekable()

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        self._fileobj.close()
