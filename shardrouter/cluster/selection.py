"""
Replica Selection Strategies

Decides which replica serves a read. The router takes a selector at
construction time so tests can swap in a deterministic one.
"""

import random
import threading
from collections import defaultdict
from typing import Dict, Optional, Sequence

from ..errors import ConfigurationError


class ReplicaSelector:
    """Base class: pick an index into a non-empty replica list."""

    name = ""

    def select(self, partition_id: int, replicas: Sequence) -> int:
        raise NotImplementedError


class RandomReplicaSelector(ReplicaSelector):
    """Uniform random choice. Pass a seeded random.Random for reproducible runs."""

    name = "random"

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.Lock()

    def select(self, partition_id: int, replicas: Sequence) -> int:
        with self._lock:
            return self._rng.randrange(len(replicas))


class RoundRobinReplicaSelector(ReplicaSelector):
    """Cycles through each partition's replicas with its own counter."""

    name = "round_robin"

    def __init__(self):
        self._counters: Dict[int, int] = defaultdict(int)
        self._lock = threading.Lock()

    def select(self, partition_id: int, replicas: Sequence) -> int:
        with self._lock:
            index = self._counters[partition_id] % len(replicas)
            self._counters[partition_id] = index + 1
            return index


class FirstReplicaSelector(ReplicaSelector):
    """Always the first declared replica."""

    name = "first"

    def select(self, partition_id: int, replicas: Sequence) -> int:
        return 0


_SELECTORS = {
    RandomReplicaSelector.name: RandomReplicaSelector,
    RoundRobinReplicaSelector.name: RoundRobinReplicaSelector,
    FirstReplicaSelector.name: FirstReplicaSelector,
}


def get_selector(name: str) -> ReplicaSelector:
    """
    Build a selector by name ("random", "round_robin" or "first").

    Raises:
        ConfigurationError: unknown name
    """
    try:
        return _SELECTORS[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"unknown replica selection {name!r}; expected one of {sorted(_SELECTORS)}"
        ) from None
