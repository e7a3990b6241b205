# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# random_streams.py
# -----------------------------------------------------------------------------
# Purpose:
#   Independent, reproducible random streams for one simulation run
#   (arrivals, and one per service stage).
#
# Design notes:
#   - Each stream is its own random.Random seeded from (seed, name), so adding
#     a stage or changing one stage's draws leaves the other streams intact.
#   - seed=None gives OS-entropy streams (non-reproducible runs).
#
# Usage:
#   streams = RandomStreams(seed=7); rng = streams.get("arrivals")
# -----------------------------------------------------------------------------

from __future__ import annotations
import random
from typing import Dict, Optional


class RandomStreams:
    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._streams: Dict[str, random.Random] = {}

    def get(self, name: str) -> random.Random:
        rng = self._streams.get(name)
        if rng is None:
            rng = random.Random(None if self.seed is None else f"{self.seed}:{name}")
            self._streams[name] = rng
        return rng
