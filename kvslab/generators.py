"""Pseudo-random generators used to pick keys for workloads."""

from __future__ import annotations

import math
import random
from typing import Callable, Optional

RAND_MAX = 2**31 - 1
_MASK64 = (1 << 64) - 1

ZIPFIAN_CONSTANT = 0.99


class Xorshf96:
    """The xorshf96 generator (period 2**96 - 1) on 64-bit words."""

    def __init__(self, x: int = 123456789, y: int = 362436069, z: int = 521288629):
        self._x = x & _MASK64
        self._y = y & _MASK64
        self._z = z & _MASK64

    def next(self) -> int:
        x = self._x
        x ^= (x << 16) & _MASK64
        x ^= x >> 5
        x ^= (x << 1) & _MASK64
        t = x
        self._x = self._y
        self._y = self._z
        self._z = t ^ self._x ^ self._y
        return self._z

    def __iter__(self):
        return self

    def __next__(self) -> int:
        return self.next()


def zeta(n: int, theta: float) -> float:
    """Sum of 1 / i**theta for i in 1..n."""
    total = 0.0
    for i in range(1, n + 1):
        total += 1 / (i ** theta)
    return total


class KeyGenerator:
    """Per-thread random key source: Zipf, uniform and production-like draws."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)
        self._items = 0
        self._base = 0
        self._theta = ZIPFIAN_CONSTANT
        self._alpha = 0.0
        self._zetan = 0.0
        self._eta = 0.0
        self._zeta2theta = 0.0
        self._count_for_zeta = 0

    def _rand(self) -> int:
        return self._rng.getrandbits(31)

    def init_zipf(self, low: int, high: int) -> None:
        """Prepare Zipf and uniform draws over the range [low, high]."""
        if high < low:
            raise ValueError(f"empty range [{low}, {high}]")
        self._items = high - low + 1
        self._base = low
        self._theta = ZIPFIAN_CONSTANT
        self._zeta2theta = zeta(2, self._theta)
        self._count_for_zeta = 2
        self._alpha = 1.0 / (1.0 - self._theta)
        self._zetan = zeta(self._items, self._theta)
        self._count_for_zeta = self._items
        numerator = 1 - (2.0 / self._items) ** (1 - self._theta)
        try:
            self._eta = numerator / (1 - self._zeta2theta / self._zetan)
        except ZeroDivisionError:
            # Only two items: every draw is resolved before eta is needed.
            self._eta = math.nan
        self.zipf_next()

    def _require_init(self) -> None:
        if self._items <= 0:
            raise RuntimeError("init_zipf must be called first")

    def _next_long(self, item_count: int) -> int:
        if item_count > self._count_for_zeta:
            extra = 0.0
            for i in range(self._count_for_zeta + 1, item_count + 1):
                extra += 1 / (i ** self._theta)
            self._zetan += extra
            self._count_for_zeta = item_count
            self._eta = (1 - (2.0 / self._items) ** (1 - self._theta)) / (
                1 - self._zeta2theta / self._zetan
            )

        u = (self._rand() % RAND_MAX) / RAND_MAX
        uz = u * self._zetan
        if uz < 1.0:
            return self._base
        if uz < 1.0 + 0.5 ** self._theta:
            return self._base + 1
        return self._base + int(
            item_count * (self._eta * u - self._eta + 1) ** self._alpha
        )

    def zipf_next(self) -> int:
        self._require_init()
        return self._next_long(self._items)

    def uniform_next(self) -> int:
        self._require_init()
        return self._rand() % self._items

    def bogus_rand(self) -> int:
        return self._rand() % 1000

    def production_random1(self) -> int:
        rand_key = self._rand()
        prob = self._rand() % 10000
        if prob < 13:
            return rand_key % 144000000
        if prob < 8130:
            return 144000000 + rand_key % (314400000 - 144000000)
        if prob < 9444:
            return 314400000 + rand_key % (450000000 - 314400000)
        if prob < 9742:
            return 450000000 + rand_key % (480000000 - 450000000)
        if prob < 9920:
            return 480000000 + rand_key % (490000000 - 480000000)
        return 490000000 + rand_key % (500000000 - 490000000)

    def production_random2(self) -> int:
        rand_key = self._rand()
        prob = self._rand() % 10000
        bands = (
            (103487, 0, 47016400),
            (570480, 47016400, 259179450),
            (849982, 259179450, 386162550),
            (930511, 386162550, 422748200),
            (973234, 422748200, 442158000),
            (986958, 442158000, 448392900),
        )
        for limit, low, high in bands:
            if prob < limit:
                return low + rand_key % (high - low)
        return 448392900 + rand_key % (500000000 - 448392900)


_NAMES = {
    KeyGenerator.zipf_next: "Zipf",
    KeyGenerator.uniform_next: "Uniform",
    KeyGenerator.bogus_rand: "Cached",
    KeyGenerator.production_random1: "Production1",
    KeyGenerator.production_random2: "Production2",
}


def get_function_name(f: Callable[[], int]) -> str:
    """Human-readable name of a key generator method."""
    return _NAMES.get(getattr(f, "__func__", f), "Unknown random")