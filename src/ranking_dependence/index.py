"""
In-memory positional index.

Serves the three things the dependence pass consumes from an index: posting
streams (with token positions), lexicon entries and collection statistics.
Built from tokenized documents, the same way the ranking corpora are.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING

import numpy as np

from ranking_dependence.postings import PostingStream
from ranking_dependence.terms import MatchingQueryTerms, TermKind

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def tokenize(text: str) -> list[str]:
    """Tokenizes the input text into a list of terms."""
    return re.findall(r"\w+", text.lower())


@dataclass(frozen=True)
class CollectionStatistics:
    num_documents: int
    num_tokens: int

    @property
    def average_document_length(self) -> float:
        return self.num_tokens / self.num_documents if self.num_documents else 0.0

    def average_ngram_document_length(self, ngram_length: int) -> float:
        """
        Average number of n-gram windows per document.

        Each document loses ``ngram_length - 1`` slots to window padding, so
        this is smaller than the plain mean length for n > 1.
        """
        if not self.num_documents:
            return 0.0
        return (self.num_tokens - self.num_documents * (ngram_length - 1)) / self.num_documents


@dataclass(frozen=True)
class LexiconEntry:
    term: str
    term_id: int
    document_frequency: int
    collection_frequency: int


class PositionalIndex:
    """
    Inverted index over tokenized documents, recording token positions.

    Args:
        documents: Tokenized documents; the document id is the list index.
        ids: Optional external ids for the documents.
        positions: Record token positions. An index built without them
            still ranks, but cannot feed proximity scoring.
    """

    def __init__(
        self,
        documents: list[list[str]],
        ids: list[str] | None = None,
        positions: bool = True,
    ):
        self.ids = ids or [str(i) for i in range(len(documents))]
        self._id_to_idx = {doc_id: i for i, doc_id in enumerate(self.ids)}
        self.N = len(documents)
        self.has_positions = positions
        self.doc_lengths = np.array([len(doc) for doc in documents], dtype=np.int64)

        docs_by_term: dict[str, list[int]] = defaultdict(list)
        positions_by_term: dict[str, list[list[int]]] = defaultdict(list)
        for doc_idx, doc in enumerate(documents):
            term_positions: dict[str, list[int]] = defaultdict(list)
            for pos, term in enumerate(doc):
                term_positions[term].append(pos)
            for term, plist in term_positions.items():
                docs_by_term[term].append(doc_idx)
                positions_by_term[term].append(plist)

        self._vocab = {term: idx for idx, term in enumerate(docs_by_term)}
        self._docids: dict[str, NDArray[np.int64]] = {
            term: np.array(doc_ids, dtype=np.int64) for term, doc_ids in docs_by_term.items()
        }
        self._tfs: dict[str, NDArray[np.int64]] = {
            term: np.array([len(p) for p in plists], dtype=np.int64)
            for term, plists in positions_by_term.items()
        }
        self._cf = {term: int(tfs.sum()) for term, tfs in self._tfs.items()}
        self._positions: dict[str, list[NDArray[np.int64]]] | None = None
        if positions:
            self._positions = {
                term: [np.array(p, dtype=np.int64) for p in plists]
                for term, plists in positions_by_term.items()
            }

    def __len__(self) -> int:
        return self.N

    @classmethod
    def from_texts(
        cls, texts: Iterable[str], ids: list[str] | None = None, positions: bool = True
    ) -> PositionalIndex:
        return cls([tokenize(text) for text in texts], ids, positions)

    @classmethod
    def from_huggingface_dataset(cls, dataset, positions: bool = True) -> PositionalIndex:
        ids = [doc["id"] for doc in dataset]
        documents = [tokenize(doc["content"]) for doc in dataset]
        return cls(documents, ids, positions)

    @cached_property
    def collection_statistics(self) -> CollectionStatistics:
        return CollectionStatistics(self.N, int(self.doc_lengths.sum()))

    @property
    def vocabulary_size(self) -> int:
        return len(self._vocab)

    def id_to_idx(self, ids: list[str]) -> list[int]:
        return [self._id_to_idx[i] for i in ids if i in self._id_to_idx]

    def lexicon_entry(self, term: str) -> LexiconEntry | None:
        term_id = self._vocab.get(term)
        if term_id is None:
            return None
        return LexiconEntry(term, term_id, len(self._docids[term]), self._cf[term])

    def term_frequencies(self, term: str) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
        """Docids containing ``term`` and the term frequency in each."""
        docids = self._docids.get(term)
        if docids is None:
            empty = np.array([], dtype=np.int64)
            return empty, empty
        return docids, self._tfs[term]

    def postings(self, term: str) -> PostingStream | None:
        """Open a fresh stream over ``term``'s postings, or None if it is not indexed."""
        docids = self._docids.get(term)
        if docids is None:
            return None
        positions = self._positions[term] if self._positions is not None else None
        return PostingStream(term, docids, self.doc_lengths[docids], positions)

    def synonym_postings(self, alternatives: Iterable[str], name: str | None = None) -> PostingStream | None:
        """
        Open one stream that treats several terms as the same term.

        Documents are the union of the alternatives' documents and positions
        are merged per document.
        """
        found = [t for t in dict.fromkeys(alternatives) if t in self._docids]
        if not found:
            return None
        name = name or "|".join(found)
        docids = np.unique(np.concatenate([self._docids[t] for t in found]))
        if self._positions is None:
            return PostingStream(name, docids, self.doc_lengths[docids], None)

        merged: dict[int, list[NDArray[np.int64]]] = defaultdict(list)
        for term in found:
            for doc_idx, plist in zip(self._docids[term].tolist(), self._positions[term]):
                merged[doc_idx].append(plist)
        positions = [np.unique(np.concatenate(merged[int(d)])) for d in docids]
        return PostingStream(name, docids, self.doc_lengths[docids], positions)


class PostingListManager:
    """
    Opens the posting streams for the terms of one query.

    Terms missing from the lexicon are dropped. Synonym groups are either
    split into one stream per alternative (each carrying the group weight) or
    merged into a single stream. Usable as a context manager; every opened
    stream is closed on exit.
    """

    def __init__(self, index: PositionalIndex, terms: MatchingQueryTerms, split_synonyms: bool = True):
        self.index = index
        self.split_synonyms = split_synonyms
        self.terms: list[str] = []
        self.weights: list[float] = []
        self.streams: list[PostingStream] = []
        self._openers: list[Callable[[], PostingStream | None]] = []
        try:
            for term in terms:
                if term.kind is TermKind.SYNONYM and split_synonyms:
                    for alt in term.alternatives:
                        self._add(alt, term.weight, lambda alt=alt: index.postings(alt))
                elif term.kind is TermKind.SYNONYM:
                    self._add(
                        term.text,
                        term.weight,
                        lambda term=term: index.synonym_postings(term.alternatives, term.text),
                    )
                else:
                    self._add(term.text, term.weight, lambda text=term.text: index.postings(text))
        except Exception:
            self.close()
            raise

    def _add(self, text: str, weight: float, opener: Callable[[], PostingStream | None]) -> None:
        stream = opener()
        if stream is None:
            logger.debug("term %r not found in lexicon", text)
            return
        if text in self.terms:
            i = self.terms.index(text)
            self.weights[i] += weight
            stream.close()
            return
        self.terms.append(text)
        self.weights.append(weight)
        self.streams.append(stream)
        self._openers.append(opener)

    def __len__(self) -> int:
        return len(self.terms)

    def reopen(self, i: int) -> PostingStream:
        """Open a new, unpositioned stream for phrase term i, independent of ``streams[i]``."""
        stream = self._openers[i]()
        if stream is None:
            raise KeyError(self.terms[i])
        return stream

    def close(self) -> None:
        for stream in self.streams:
            stream.close()

    def __enter__(self) -> PostingListManager:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
