"""Bounded LRU cache of successful pipeline results."""

from __future__ import annotations

import copy
import logging
from collections import OrderedDict
from typing import Hashable

import config
from .types import PipelineResult

logger = logging.getLogger(__name__)


class ResultCache:
    """Keeps the most recently used results; the oldest entry is evicted first.

    Stored results and the results handed out are deep copies, so callers
    can mutate what they get without affecting later hits.
    """

    def __init__(self, capacity: int = config.RESULT_CACHE_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, PipelineResult] = OrderedDict()

    def get(self, key: Hashable) -> PipelineResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(entry)

    def put(self, key: Hashable, result: PipelineResult) -> None:
        self._entries[key] = copy.deepcopy(result)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cached result %s", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
