"""Random end-of-response markers for the command channel."""

from __future__ import annotations

import logging
import math
import os
import random
import string
import time

logger = logging.getLogger(__name__)

DEFAULT_LENGTH = 128
DEFAULT_ALPHABET = string.ascii_lowercase


class DelimiterGenerator:
    """Produces a fresh high-entropy marker string on every call.

    Markers are drawn from the OS entropy source via ``random.SystemRandom``.
    If that source is unavailable the generator falls back to a
    ``random.Random`` seeded from the clock and pid, which still varies
    between sessions but is predictable to anyone who knows both.
    """

    def __init__(self, length: int = DEFAULT_LENGTH, alphabet: str = DEFAULT_ALPHABET) -> None:
        if length < 1:
            raise ValueError("Delimiter length must be positive")
        if len(set(alphabet)) < 2:
            raise ValueError("Delimiter alphabet needs at least two distinct characters")
        self._length = length
        self._alphabet = alphabet
        self._rng: random.Random = random.SystemRandom()
        self._fallback = False

    @property
    def length(self) -> int:
        return self._length

    @property
    def alphabet(self) -> str:
        return self._alphabet

    @property
    def using_fallback(self) -> bool:
        return self._fallback

    def generate(self) -> str:
        """Return a new marker of ``length`` characters from ``alphabet``."""
        try:
            return "".join(self._rng.choices(self._alphabet, k=self._length))
        except NotImplementedError:
            # os.urandom is missing on this platform
            self._use_fallback()
            return "".join(self._rng.choices(self._alphabet, k=self._length))

    def line(self) -> str:
        """Return a new marker terminated by a newline."""
        return self.generate() + "\n"

    def collision_probability(self, count: int) -> float:
        """Birthday bound on a duplicate among ``count`` generated markers."""
        if count < 2:
            return 0.0
        log_space = self._length * math.log(len(set(self._alphabet)))
        pairs = count * (count - 1) / 2
        # -expm1(-x) stays accurate for the tiny values real alphabets give
        return -math.expm1(-pairs * math.exp(-log_space))

    def _use_fallback(self) -> None:
        seed = time.time_ns() ^ (os.getpid() << 32)
        self._rng = random.Random(seed)
        self._fallback = True
        logger.warning(
            "OS entropy source unavailable, delimiters now use a time-seeded "
            "generator with reduced unpredictability"
        )
