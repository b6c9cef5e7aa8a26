"""
Dependence scoring functions.

A scoring function answers one question: how surprising is it to see this
many matching windows for a term pair in a document of this length? The
modifier injects one of these and calls ``score(matching_windows, doc_length)``
for every scored pair.

Available functions:
    NormalisedCount               - windows / document length
    BinomialRandomness            - pBiL, DFR binomial randomness per document
    NormalisedBinomialRandomness  - pBiL2, binomial randomness with Normalisation 2
    DirichletMRF                  - Markov random field, Dirichlet smoothed
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from itertools import combinations
from typing import TYPE_CHECKING

import numpy as np
from scipy.special import gammaln, xlogy

from ranking_dependence.config import read_float_setting
from ranking_dependence.postings import EOL
from ranking_dependence.proximity import number_of_windows

if TYPE_CHECKING:
    from ranking_dependence.index import PostingListManager
    from ranking_dependence.proximity import ProximityCounter

logger = logging.getLogger(__name__)

LN2 = math.log(2.0)

DEFAULT_MRF_MU = 4000.0
DEFAULT_PBIL2_C = 1.0


@dataclass(frozen=True)
class DependenceContext:
    """Collection-level values a scoring function may need during one pass."""

    ngram_length: int
    avg_doc_len: float = 0.0
    num_tokens: int = 0
    num_documents: int = 0


class DependenceScoringFunction(ABC):
    """
    Base class for scoring functions.

    ``prepare`` is called once per pass before any ``score`` call. The
    postings manager and counter are given so functions that need global
    pair statistics can reopen the query's posting lists.
    """

    def __init__(self) -> None:
        self.context: DependenceContext | None = None

    @property
    def name(self) -> str:
        return type(self).__name__

    def prepare(
        self,
        context: DependenceContext,
        postings: PostingListManager | None = None,
        counter: ProximityCounter | None = None,
        sequential: bool = True,
    ) -> None:
        self.context = context

    def _require_context(self) -> DependenceContext:
        if self.context is None:
            raise RuntimeError(f"{self.name}.prepare() must be called before score()")
        return self.context

    @abstractmethod
    def score(self, matching_windows: int, doc_length: int) -> float: ...


class NormalisedCount(DependenceScoringFunction):
    """Fraction of the document's length covered by matching windows."""

    def score(self, matching_windows: int, doc_length: int) -> float:
        if doc_length <= 0:
            return 0.0
        return matching_windows / doc_length


def _binomial_informativeness(tf: float, background: float) -> float:
    """-log2 of the binomial probability of tf successes in background trials, with the Laplace after-effect."""
    background = np.float64(background)
    with np.errstate(divide="ignore", invalid="ignore"):
        p = 1.0 / background
        q = 1.0 - p
        log_binomial = (
            gammaln(background + 1.0) - gammaln(tf + 1.0) - gammaln(background - tf + 1.0)
            + xlogy(tf, p)
            + xlogy(background - tf, q)
        )
    return float(-log_binomial / LN2 / (1.0 + tf))


class BinomialRandomness(DependenceScoringFunction):
    """
    pBiL: binomial randomness model over the windows of the document itself.

    With N windows in the document and p = 1/N, the score is the
    informative content of seeing ``tf`` matching windows, normalised by
    ``1 + tf``. Documents without matching windows contribute nothing.
    """

    def score(self, matching_windows: int, doc_length: int) -> float:
        context = self._require_context()
        if matching_windows == 0:
            return 0.0
        windows = float(number_of_windows(context.ngram_length, doc_length))
        return _binomial_informativeness(float(matching_windows), windows)


class NormalisedBinomialRandomness(DependenceScoringFunction):
    """
    pBiL2: binomial randomness with DFR Normalisation 2.

    The window count is rescaled to the average document length,
    tfn = tf * log2(1 + c * avg_doc_len / N), and the collection average
    length is used as the binomial background.
    """

    def __init__(self, c: float | None = None) -> None:
        super().__init__()
        self.c = read_float_setting("PROXIMITY_PBIL2_C", DEFAULT_PBIL2_C) if c is None else c

    def score(self, matching_windows: int, doc_length: int) -> float:
        context = self._require_context()
        if matching_windows == 0:
            return 0.0
        windows = number_of_windows(context.ngram_length, doc_length)
        # avg_doc_len goes negative when the window is longer than most documents
        with np.errstate(divide="ignore", invalid="ignore"):
            tfn = matching_windows * np.log2(1.0 + self.c * context.avg_doc_len / windows)
        return _binomial_informativeness(tfn, context.avg_doc_len)


class DirichletMRF(DependenceScoringFunction):
    """
    Markov random field dependence with Dirichlet smoothing.

    The collection frequency of the window features is estimated in
    ``prepare`` by reopening the query's posting lists and counting matching
    windows over every document, averaged over the scored pairs.
    """

    def __init__(self, mu: float | None = None) -> None:
        super().__init__()
        self.mu = read_float_setting("PROXIMITY_MRF_MU", DEFAULT_MRF_MU) if mu is None else mu
        self.cf = 1.0

    def prepare(self, context, postings=None, counter=None, sequential=True) -> None:
        super().prepare(context, postings, counter, sequential)
        self.cf = 1.0
        if postings is None or counter is None or len(postings) < 2:
            return
        n = len(postings)
        pairs = [(i, i + 1) for i in range(n - 1)] if sequential else list(combinations(range(n), 2))
        totals = [
            self._pair_frequency(postings, counter, i, j, context.ngram_length, sequential)
            for i, j in pairs
        ]
        self.cf = max(sum(totals) / len(totals), 1.0)
        logger.debug("%s collection frequency estimate %.2f over %d pairs", self.name, self.cf, len(pairs))

    @staticmethod
    def _pair_frequency(postings, counter, i, j, window, sequential) -> int:
        a = postings.reopen(i)
        b = postings.reopen(j)
        try:
            total = 0
            docid_a, docid_b = a.next(), b.next()
            while docid_a != EOL and docid_b != EOL:
                if docid_a < docid_b:
                    docid_a = a.next()
                elif docid_b < docid_a:
                    docid_b = b.next()
                else:
                    count = counter.count_ordered if sequential else counter.count_unordered
                    total += count(a.positions, b.positions, window, a.doc_length)
                    docid_a, docid_b = a.next(), b.next()
            return total
        finally:
            a.close()
            b.close()

    def score(self, matching_windows: int, doc_length: int) -> float:
        context = self._require_context()
        collection_probability = self.cf / max(context.num_tokens, 1)
        return math.log2(1.0 + matching_windows / (self.mu * collection_probability)) + math.log2(
            self.mu / (doc_length + self.mu)
        )
