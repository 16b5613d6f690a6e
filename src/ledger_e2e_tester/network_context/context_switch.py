"""Process-wide network context with guarded, self-restoring switches."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TypeVar

from .chain_ids import ChainId, Dialect

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ContextSetting:
    """Active dialect and chain identifier."""

    dialect: Dialect
    chain_id: ChainId


class NetworkContext:
    """Holds the single active context; only switched while the guard is held.

    The guard stays held for the whole switched window, so overlapping
    switches from different threads are serialized rather than interleaved.
    """

    def __init__(self, initial: ContextSetting) -> None:
        self._current = initial
        self._guard = threading.RLock()

    @property
    def current(self) -> ContextSetting:
        return self._current

    @contextmanager
    def activated(self, dialect: Dialect, chain_id: ChainId) -> Iterator[ContextSetting]:
        """Activate a context for the duration of the block and restore the previous one."""
        with self._guard:
            previous = self._current
            self._current = ContextSetting(dialect=dialect, chain_id=chain_id)
            if self._current != previous:
                _LOGGER.debug(
                    "Switched network context from %s (chain id %d) to %s (chain id %d)",
                    previous.dialect.value,
                    previous.chain_id.value,
                    dialect.value,
                    chain_id.value,
                )
            try:
                yield self._current
            finally:
                self._current = previous

    def with_context(
        self,
        dialect: Dialect,
        chain_id: ChainId,
        operation: Callable[[ContextSetting], T],
    ) -> T:
        """Run `operation` under the requested context; the prior context is always restored."""
        with self.activated(dialect, chain_id) as active:
            return operation(active)
