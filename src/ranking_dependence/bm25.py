"""
Classic BM25 first-stage ranking over a PositionalIndex.

Produces the candidate ResultSet that dependence modifiers re-score.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

import numpy as np

from ranking_dependence.result_set import ResultSet

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ranking_dependence.index import PositionalIndex


class BM25:
    """
    Classic BM25 ranking class using a PositionalIndex.

    Args:
        index: Index supplying term frequencies and document lengths.
        k1 (float): Term frequency saturation parameter.
        b (float): Length normalization parameter.
    """

    def __init__(self, index: PositionalIndex, k1: float = 1.5, b: float = 0.75):
        self.k1 = k1
        self.b = b
        self.index = index
        dl = index.doc_lengths.astype(np.float64)
        avg_dl = index.collection_statistics.average_document_length or 1e-9
        self._doc_norm = 1.0 - b + b * (dl / avg_dl)

    def idf(self, term: str) -> float:
        """
        Classic BM25 IDF:
            idf(t) = log((N - df(t) + 0.5) / (df(t) + 0.5) + 1)
        """
        entry = self.index.lexicon_entry(term)
        if entry is None:
            return 0.0
        df = entry.document_frequency
        return float(np.log((self.index.N - df + 0.5) / (df + 0.5) + 1.0))

    def score_all(self, query: list[str]) -> NDArray[np.float64]:
        """BM25 scores of every document; repeated query terms count once per repeat."""
        scores = np.zeros(self.index.N, dtype=np.float64)
        for term, qtf in Counter(query).items():
            docids, tf = self.index.term_frequencies(term)
            if len(docids) == 0:
                continue
            tf = tf.astype(np.float64)
            numerator = tf * (self.k1 + 1)
            denominator = tf + self.k1 * self._doc_norm[docids]
            scores[docids] += qtf * self.idf(term) * (numerator / np.maximum(denominator, 1e-9))
        return scores

    def rank(self, query: list[str], top_k: int | None = None) -> tuple[np.ndarray, np.ndarray]:
        scores = self.score_all(query)
        sorted_indices = np.argsort(-scores, kind="stable")
        scores_sorted = scores[sorted_indices]
        if top_k is not None:
            sorted_indices = sorted_indices[:top_k]
            scores_sorted = scores_sorted[:top_k]
        return sorted_indices, scores_sorted

    def retrieve(self, query: list[str], top_k: int | None = None) -> ResultSet:
        """Documents matching at least one query term, best first, as a ResultSet."""
        ranked, ranked_scores = self.rank(query)
        keep = ranked_scores > 0.0
        order, order_scores = ranked[keep], ranked_scores[keep]
        if top_k is not None:
            order, order_scores = order[:top_k], order_scores[:top_k]
        occurrences = np.zeros(len(order), dtype=np.int16)
        for term in set(query):
            docids, _ = self.index.term_frequencies(term)
            occurrences += np.isin(order, docids).astype(np.int16)
        return ResultSet(order, order_scores, occurrences)
