"""Seeded random streams, one per generation attempt.

Attempt ``k`` always draws from the stream named ``attempt_domain(k)``,
derived from the request's master seed. A restart therefore does not depend
on how much randomness earlier attempts consumed, and attempts run on other
threads reproduce the grid they would give when run in order.

Usage:
    from tilewave.util.rng import RNGProvider, attempt_domain

    provider = RNGProvider(master_seed=42)
    attempt_rng = provider.get(attempt_domain(3))
    index = attempt_rng.choices(range(len(weights)), weights=weights)[0]
"""

from __future__ import annotations

import zlib
from random import Random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tilewave.types import RandomSeed


def attempt_domain(attempt: int) -> str:
    """Return the stream name used by generation attempt ``attempt``."""
    return f"solver.attempt.{attempt}"


class RNGProvider:
    """Hands out one ``Random`` per named stream.

    Streams are created on first use and cached, so asking twice for a name
    continues the same sequence. Without a master seed every stream is
    seeded from system entropy.
    """

    def __init__(self, master_seed: RandomSeed = None) -> None:
        self._master_seed = master_seed
        self._streams: dict[str, Random] = {}

    def get(self, domain: str) -> Random:
        rng = self._streams.get(domain)
        if rng is None:
            if self._master_seed is None:
                rng = Random()
            else:
                # crc32 rather than hash(): str hashes change with PYTHONHASHSEED
                rng = Random(zlib.crc32(f"{self._master_seed}:{domain}".encode()))
            self._streams[domain] = rng
        return rng
