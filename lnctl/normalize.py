"""Logarithmic min-max scaling of channel capacities."""

from __future__ import annotations

import math
from typing import Any, Callable, Iterable


class NormalizationError(ValueError):
    """Raised when a normalizer cannot be built for an edge set."""


class InvalidCapacityError(NormalizationError):
    """Raised for a capacity whose logarithm is undefined."""

    def __init__(self, capacity: Any) -> None:
        super().__init__(f"channel capacity must be a positive number of satoshis, got {capacity!r}")
        self.capacity = capacity


def _log_capacity(capacity: Any) -> float:
    if isinstance(capacity, bool) or not isinstance(capacity, (int, float)) or capacity <= 0:
        raise InvalidCapacityError(capacity)
    return math.log2(capacity)


def build_normalizer(edges: Iterable[Any], scale_factor: float) -> Callable[[int], float]:
    """Return a function mapping a capacity onto ``[0, scale_factor]``.

    Capacities span several orders of magnitude, so they are compared by
    their base 2 logarithm. ``edges`` may hold objects with a ``capacity``
    attribute or bare capacities. The bounds are taken from ``edges`` once;
    the returned function accepts any positive capacity. When every edge has
    the same capacity the function returns ``scale_factor / 2``.
    """

    log_min = math.inf
    log_max = -math.inf
    for edge in edges:
        z = _log_capacity(getattr(edge, "capacity", edge))
        log_min = min(log_min, z)
        log_max = max(log_max, z)

    if log_min == math.inf:
        raise NormalizationError("cannot normalize capacities of an empty edge set")

    spread = log_max - log_min
    if spread == 0:
        midpoint = scale_factor / 2

        def normalize_flat(capacity: int) -> float:
            _log_capacity(capacity)
            return midpoint

        return normalize_flat

    def normalize(capacity: int) -> float:
        return (_log_capacity(capacity) - log_min) / spread * scale_factor

    return normalize
