"""
Fractional ordering for issues within a board column.

Issues carry a float ``order``; a move lands halfway between its new
neighbours so only the moving row is written. When two neighbours are
too close to split, the column is renumbered to ``(i + 1) * 1000``.
"""
from __future__ import annotations

ORDER_STEP = 1000.0


def neighbours(orders: list[float], to_index: int) -> tuple[float | None, float | None]:
    """Orders of the items that will sit before and after position `to_index`."""
    before = orders[to_index - 1] if 0 < to_index <= len(orders) else None
    after = orders[to_index] if 0 <= to_index < len(orders) else None
    return before, after


def order_between(before: float | None, after: float | None) -> float | None:
    """New order between two neighbours, or None when the gap is exhausted."""
    if before is None and after is None:
        return ORDER_STEP
    if before is None:
        return after - ORDER_STEP
    if after is None:
        return before + ORDER_STEP
    if after - before > 1:
        return (after + before) / 2
    return None


def reindexed(count: int) -> list[float]:
    return [(i + 1) * ORDER_STEP for i in range(count)]


def order_for_index(orders: list[float], to_index: int) -> tuple[float, list[float] | None]:
    """
    Return ``(new_order, renumbered)`` for inserting at `to_index` into a
    column whose other items are sorted by `orders`.

    ``renumbered`` is None when the existing items keep their orders;
    otherwise it holds their new orders, in the same sequence.
    """
    to_index = max(0, min(to_index, len(orders)))
    new_order = order_between(*neighbours(orders, to_index))
    if new_order is not None:
        return new_order, None
    renumbered = reindexed(len(orders))
    before, after = neighbours(renumbered, to_index)
    # A fresh 1000 step always leaves room for a midpoint.
    return order_between(before, after) or ORDER_STEP, renumbered
