"""
Term dependence (proximity) score modifier.

Document scores are boosted by how often pairs of query terms occur close
together, approximating the dependence between query terms. Sequential
dependence (SD) scores adjacent query terms in query order; full dependence
(FD) scores every pair of query terms regardless of order.

The pass is document-at-a-time: the result set is sorted by docid and every
term's posting stream is advanced in lock-step with it, so each posting is
read at most once.

Final score of each document:

    score = w_t * original_score + sum over scored pairs of
            w_o (SD) or w_u (FD) * combine(qtw_i, qtw_j) * f(windows, doc_length)

where ``f`` is the injected DependenceScoringFunction.

The pass is applied once per result set. Running it twice applies w_t twice.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import TYPE_CHECKING

import numpy as np

from ranking_dependence.combination import combine, is_valid_fnid
from ranking_dependence.config import DependenceConfig, DependencyMode
from ranking_dependence.errors import ConfigurationError, MissingPositionDataError
from ranking_dependence.index import PositionalIndex, PostingListManager
from ranking_dependence.postings import EOL, PostingLike
from ranking_dependence.proximity import ProximityCounter, WindowCounter
from ranking_dependence.scoring import DependenceContext, DependenceScoringFunction

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ranking_dependence.result_set import ResultSet
    from ranking_dependence.terms import MatchingQueryTerms

logger = logging.getLogger(__name__)


class DependenceStatus(Enum):
    SKIPPED = "skipped"
    PARTIAL = "partial"
    APPLIED = "applied"


@dataclass
class DependenceOutcome:
    """
    What one pass did to the result set.

    SKIPPED: scores untouched. PARTIAL: an error aborted the pass after
    scores may have been changed. APPLIED: the pass ran to completion.
    """

    status: DependenceStatus
    altered: int = 0
    error: Exception | None = None

    @property
    def modified(self) -> bool:
        return self.status is not DependenceStatus.SKIPPED


class DependenceScoreModifier:
    """
    Re-scores a result set with SD or FD term dependence.

    Args:
        scoring_function: Maps (matching windows, document length) to a score.
        config: Fixed settings. When None, settings are re-read from the
            environment on every call.
        counter: Proximity counter; defaults to WindowCounter.
    """

    def __init__(
        self,
        scoring_function: DependenceScoringFunction,
        config: DependenceConfig | None = None,
        counter: ProximityCounter | None = None,
    ):
        self.scoring_function = scoring_function
        self.config = config
        self.counter = counter if counter is not None else WindowCounter()

    @property
    def name(self) -> str:
        return f"{type(self).__name__}[{self.scoring_function.name}]"

    def _current_config(self) -> DependenceConfig:
        return self.config if self.config is not None else DependenceConfig.from_env()

    def modify_scores(self, index: PositionalIndex, terms: MatchingQueryTerms, result_set: ResultSet) -> bool:
        """
        Apply the dependence pass to ``result_set`` in place.

        Returns False only if there are fewer than two real query terms or the
        dependency type is not set; True otherwise, even if an error cut the
        pass short (see ``run`` for the detailed outcome).
        """
        return self.run(index, terms, result_set).modified

    def run(self, index: PositionalIndex, terms: MatchingQueryTerms, result_set: ResultSet) -> DependenceOutcome:
        try:
            config = self._current_config()
        except ConfigurationError:
            logger.exception("Invalid proximity configuration for %s", self.name)
            return DependenceOutcome(DependenceStatus.SKIPPED)

        logger.info("%s ngramlength=%d", self.name, config.ngram_length)
        if not is_valid_fnid(config.qtw_fnid):
            logger.error("Wrong function id %d specified for %s", config.qtw_fnid, self.name)

        outcome = DependenceOutcome(DependenceStatus.APPLIED)
        try:
            with PostingListManager(index, terms.filtered(), config.split_synonyms) as plm:
                if len(plm) < 2:
                    return DependenceOutcome(DependenceStatus.SKIPPED)
                for term in plm.terms:
                    logger.debug("phrase term: %s", term)
                if config.dependency is DependencyMode.UNSET:
                    logger.error("proximity dependency type not set. Set it to either FD or SD")
                    return DependenceOutcome(DependenceStatus.SKIPPED)
                self._do_dependency(index, plm, result_set, config, outcome)
        except MissingPositionDataError as e:
            logger.error("Error in %s %s -- does your index have positions enabled?", self.name, e, exc_info=True)
            outcome.status, outcome.error = DependenceStatus.PARTIAL, e
        except Exception as e:
            logger.exception("Error in %s: %s", self.name, e)
            outcome.status, outcome.error = DependenceStatus.PARTIAL, e
        return outcome

    def _do_dependency(
        self,
        index: PositionalIndex,
        plm: PostingListManager,
        result_set: ResultSet,
        config: DependenceConfig,
        outcome: DependenceOutcome,
    ) -> None:
        """Merge-join the sorted result set with every posting stream."""
        streams = plm.streams
        try:
            finished = [stream.next() == EOL for stream in streams]

            stats = index.collection_statistics
            context = DependenceContext(
                ngram_length=config.ngram_length,
                avg_doc_len=stats.average_ngram_document_length(config.ngram_length),
                num_tokens=stats.num_tokens,
                num_documents=stats.num_documents,
            )
            self.scoring_function.prepare(context, plm, self.counter, config.sequential)

            # Postings are read forward only, so documents must be visited in docid order
            result_set.sort_by_docid()
            docids = result_set.docids
            scores = result_set.scores

            all_zero = not np.any(scores != 0.0)
            scores *= config.w_t

            ok_to_use = np.zeros(len(streams), dtype=bool)
            for k in range(len(docids)):
                # Assumes a non-positive score means the document is not relevant
                if not all_zero and scores[k] <= 0.0:
                    continue
                target = int(docids[k])
                for i, stream in enumerate(streams):
                    ok_to_use[i] = False
                    if finished[i]:
                        continue
                    docid = stream.docid
                    while docid < target:
                        docid = stream.next()
                    if docid == EOL:
                        finished[i] = True
                        continue
                    ok_to_use[i] = docid == target

                if np.count_nonzero(ok_to_use) < 2:
                    continue
                outcome.altered += 1
                scores[k] += self._calculate_dependence(streams, ok_to_use, plm.weights, config)
        finally:
            for stream in streams:
                stream.close()
        logger.info("%s altered scores for %d documents", self.name, outcome.altered)

    def _calculate_dependence(
        self,
        postings: Sequence[PostingLike],
        ok_to_use: NDArray[np.bool_],
        weights: Sequence[float],
        config: DependenceConfig,
    ) -> float:
        """Dependence score of the current document over its usable term pairs."""
        n = len(postings)
        final_score = 0.0
        if config.sequential:
            for i in range(n - 1):
                if not (ok_to_use[i] and ok_to_use[i + 1]):
                    continue
                phrase_weight = combine(weights[i], weights[i + 1], config.qtw_fnid)
                s = self._score_pair(True, i, postings[i], i + 1, postings[i + 1], config.ngram_length)
                final_score += s * phrase_weight * config.w_o
        else:
            for i, j in combinations(range(n), 2):
                if not (ok_to_use[i] and ok_to_use[j]):
                    continue
                phrase_weight = combine(weights[i], weights[j], config.qtw_fnid)
                s = self._score_pair(False, i, postings[i], j, postings[j], config.ngram_length)
                final_score += s * phrase_weight * config.w_u
        return final_score

    def _score_pair(self, ordered: bool, i: int, a: PostingLike, j: int, b: PostingLike, window: int) -> float:
        doc_length = a.doc_length
        count = self.counter.count_ordered if ordered else self.counter.count_unordered
        matching = count(a.positions, b.positions, window, doc_length)
        s = self.scoring_function.score(matching, doc_length)
        if not math.isfinite(s):
            logger.warning(
                "%s returned %s for document %d %d,%d pf=%d l=%d",
                self.scoring_function.name, s, a.docid, i, j, matching, doc_length,
            )
        return s

    def score(self, postings: Sequence[PostingLike]) -> float:
        """
        Score one document from one posting per query term.

        Always sequential over adjacent terms and without query term weights.
        The scoring function is rebound to a bare context, so nothing from an
        earlier pass carries over. Returns ``w_o`` times the summed pair scores.
        """
        config = self._current_config()
        self.scoring_function.prepare(DependenceContext(ngram_length=config.ngram_length))
        total = 0.0
        for i in range(len(postings) - 1):
            total += self._score_pair(True, i, postings[i], i + 1, postings[i + 1], config.ngram_length)
        return config.w_o * total
