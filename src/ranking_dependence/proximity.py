"""
Window co-occurrence counting.

A document of length L has ``L - n + 1`` windows of ``n`` consecutive token
slots (or a single window when L < n). These functions count the windows
holding an occurrence of both terms. Counting is vectorised over window start
offsets with ``np.searchsorted``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ProximityCounter(Protocol):
    def count_ordered(
        self,
        positions_a: NDArray[np.int64],
        positions_b: NDArray[np.int64],
        window: int,
        doc_length: int,
    ) -> int: ...

    def count_unordered(
        self,
        positions_a: NDArray[np.int64],
        positions_b: NDArray[np.int64],
        window: int,
        doc_length: int,
    ) -> int: ...


def number_of_windows(window: int, doc_length: int) -> int:
    return 1 if doc_length < window else doc_length - window + 1


def _window_starts(window: int, doc_length: int) -> NDArray[np.int64]:
    return np.arange(number_of_windows(window, doc_length), dtype=np.int64)


def _occurs_in_window(
    positions: NDArray[np.int64], starts: NDArray[np.int64], window: int
) -> NDArray[np.bool_]:
    # Number of positions in [start, start + window) is non-zero
    lo = np.searchsorted(positions, starts, side="left")
    hi = np.searchsorted(positions, starts + window, side="left")
    return hi > lo


def count_unordered_windows(
    positions_a: NDArray[np.int64],
    positions_b: NDArray[np.int64],
    window: int,
    doc_length: int,
) -> int:
    """Windows containing at least one occurrence of each term, in any order."""
    positions_a = np.asarray(positions_a, dtype=np.int64)
    positions_b = np.asarray(positions_b, dtype=np.int64)
    if positions_a.size == 0 or positions_b.size == 0:
        return 0
    starts = _window_starts(window, doc_length)
    both = _occurs_in_window(positions_a, starts, window) & _occurs_in_window(
        positions_b, starts, window
    )
    return int(np.count_nonzero(both))


def count_ordered_windows(
    positions_a: NDArray[np.int64],
    positions_b: NDArray[np.int64],
    window: int,
    doc_length: int,
) -> int:
    """
    Windows where an occurrence of term a precedes an occurrence of term b.

    For each window, the earliest a at or after the window start is compared
    with the latest b before the window end; the window matches when both lie
    inside it and the a comes first.
    """
    positions_a = np.asarray(positions_a, dtype=np.int64)
    positions_b = np.asarray(positions_b, dtype=np.int64)
    if positions_a.size == 0 or positions_b.size == 0:
        return 0
    starts = _window_starts(window, doc_length)
    ends = starts + window

    idx_a = np.searchsorted(positions_a, starts, side="left")
    has_a = idx_a < positions_a.size
    first_a = np.where(has_a, positions_a[np.minimum(idx_a, positions_a.size - 1)], ends)

    idx_b = np.searchsorted(positions_b, ends, side="left") - 1
    has_b = idx_b >= 0
    last_b = np.where(has_b, positions_b[np.maximum(idx_b, 0)], starts - 1)

    matches = has_a & has_b & (first_a < ends) & (last_b >= starts) & (first_a < last_b)
    return int(np.count_nonzero(matches))


class WindowCounter:
    """Default proximity counter backed by the window functions above."""

    def count_ordered(self, positions_a, positions_b, window, doc_length) -> int:
        return count_ordered_windows(positions_a, positions_b, window, doc_length)

    def count_unordered(self, positions_a, positions_b, window, doc_length) -> int:
        return count_unordered_windows(positions_a, positions_b, window, doc_length)
