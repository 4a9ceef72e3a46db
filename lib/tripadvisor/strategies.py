"""Prioritized strategy lists.

A strategy is a named async function ``(handle) -> Optional[value]``. Lists
are tried in their fixed order and the first accepted value wins; earlier
entries encode higher confidence, so the order must never be shuffled.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, Tuple, TypeVar

from loguru import logger


T = TypeVar('T')


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    fn: Callable[[Any], Awaitable[Optional[T]]]

    async def __call__(self, handle: Any) -> Optional[T]:
        return await self.fn(handle)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


async def first_success(
    strategies: Sequence[Strategy[T]],
    handle: Any,
    accept: Callable[[T], bool] = _is_present,
) -> Tuple[Optional[T], Optional[str]]:
    """Run strategies in order and return (value, strategy_name) of the first hit.

    A strategy that raises counts as a miss. Returns (None, None) if all miss.
    """
    for strategy in strategies:
        try:
            value = await strategy(handle)
        except Exception as e:
            logger.debug(f"Strategy {strategy.name} failed: {e}")
            continue
        if value is not None and accept(value):
            return value, strategy.name
    return None, None
