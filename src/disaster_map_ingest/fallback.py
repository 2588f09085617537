"""Ordered fallback chains over strategies sharing a ``(value) -> result | None`` shape."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

_log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Strategy(Generic[T, R]):
    name: str
    run: Callable[[T], R | None]


@dataclass(frozen=True)
class StrategyHit(Generic[R]):
    name: str
    value: R


def first_result(strategies: Iterable[Strategy[T, R]], value: T) -> StrategyHit[R] | None:
    """Run strategies in order and return the first non-empty result.

    A strategy that raises is logged and treated as a miss, so one failing
    backend never hides the strategies after it.
    """
    for strategy in strategies:
        try:
            result = strategy.run(value)
        except Exception as exc:
            _log.warning("Strategy %s failed: %s", strategy.name, exc)
            continue
        if result is None:
            continue
        if isinstance(result, str) and not result.strip():
            continue
        return StrategyHit(name=strategy.name, value=result)
    return None
