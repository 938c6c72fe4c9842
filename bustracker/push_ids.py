"""
Push-style ids for location records

Ids are 20 characters: 8 encode the creation time in milliseconds and 12 are
random. The alphabet is in ASCII order, so ids sort lexicographically in
insertion order. Two ids created in the same millisecond reuse the random
part incremented by one.
"""

import random
import threading
import time
from typing import List, Optional

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

_lock = threading.Lock()
_last_push_time = 0
_last_rand_chars: List[int] = [0] * 12


def generate_push_id(now_ms: Optional[int] = None) -> str:
    """Return a new unique, insertion-ordered id"""
    global _last_push_time

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if not 0 <= now_ms < 64 ** 8:
        raise ValueError("timestamp out of range for push id")

    with _lock:
        duplicate_time = now_ms <= _last_push_time
        if duplicate_time:
            # clock did not advance: keep the last timestamp so ordering holds
            now_ms = _last_push_time
        _last_push_time = now_ms

        time_chars = []
        remaining = now_ms
        for _ in range(8):
            time_chars.append(PUSH_CHARS[remaining % 64])
            remaining //= 64
        time_chars.reverse()

        if not duplicate_time:
            for i in range(12):
                _last_rand_chars[i] = random.randrange(64)
        else:
            i = 11
            while i >= 0 and _last_rand_chars[i] == 63:
                _last_rand_chars[i] = 0
                i -= 1
            if i < 0:
                raise RuntimeError("push id space exhausted for this millisecond")
            _last_rand_chars[i] += 1

        return "".join(time_chars) + "".join(PUSH_CHARS[c] for c in _last_rand_chars)
