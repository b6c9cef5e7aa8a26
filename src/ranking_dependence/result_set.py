"""Mutable result set: parallel docid / score / occurrence arrays."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ResultSet:
    """
    Candidate documents for one query.

    The three arrays are modified in place by score modifiers; they always
    have the same length and docids are unique.
    """

    def __init__(
        self,
        docids: NDArray[np.int64],
        scores: NDArray[np.float64],
        occurrences: NDArray[np.int16] | None = None,
    ):
        self.docids = np.asarray(docids, dtype=np.int64)
        self.scores = np.asarray(scores, dtype=np.float64)
        if occurrences is None:
            occurrences = np.zeros(len(self.docids), dtype=np.int16)
        self.occurrences = np.asarray(occurrences, dtype=np.int16)
        if not len(self.docids) == len(self.scores) == len(self.occurrences):
            raise ValueError("docids, scores and occurrences must have the same length")
        if len(np.unique(self.docids)) != len(self.docids):
            raise ValueError("docids must be unique")

    @classmethod
    def from_scores(cls, docids: Sequence[int], scores: Sequence[float]) -> ResultSet:
        return cls(np.array(docids, dtype=np.int64), np.array(scores, dtype=np.float64))

    def __len__(self) -> int:
        return len(self.docids)

    def _reorder(self, order: NDArray[np.int64]) -> None:
        # Assign through [:] so views held by callers see the new order
        self.docids[:] = self.docids[order]
        self.scores[:] = self.scores[order]
        self.occurrences[:] = self.occurrences[order]

    def sort_by_docid(self) -> None:
        """Sort all three arrays ascending by docid."""
        self._reorder(np.argsort(self.docids, kind="stable"))

    def sort_by_score(self) -> None:
        """Sort all three arrays by descending score (ties keep docid order)."""
        self._reorder(np.argsort(-self.scores, kind="stable"))

    def score_of(self, docid: int) -> float:
        idx = np.flatnonzero(self.docids == docid)
        if idx.size == 0:
            raise KeyError(docid)
        return float(self.scores[idx[0]])

    def __repr__(self) -> str:
        return f"ResultSet(size={len(self)})"
