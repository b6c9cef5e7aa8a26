"""
Forward-only posting streams.

A stream walks one term's postings in ascending document id order. It starts
unpositioned; the first ``next()`` loads the first posting (or returns EOL for
an empty list). Streams never rewind.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from ranking_dependence.errors import MissingPositionDataError

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Greater than every real document id, so "docid < target" loops stop on it.
EOL = sys.maxsize


class PostingLike(Protocol):
    """What the dependence scorer needs from a posting."""

    @property
    def docid(self) -> int: ...

    @property
    def positions(self) -> NDArray[np.int64]: ...

    @property
    def doc_length(self) -> int: ...


@dataclass(frozen=True)
class Posting:
    """A (docid, positions, document length) snapshot for one term in one document."""

    docid: int
    positions: NDArray[np.int64]
    doc_length: int

    @classmethod
    def of(cls, docid: int, positions: Sequence[int], doc_length: int) -> Posting:
        return cls(docid, np.asarray(positions, dtype=np.int64), doc_length)


class PostingStream:
    """
    Iterates the postings of a single term.

    Args:
        term: Term the postings belong to (used in error messages).
        docids: Ascending document ids.
        doc_lengths: Token length of each document in ``docids``.
        positions: Token positions per document, or None when the index was
            built without positions.
    """

    def __init__(
        self,
        term: str,
        docids: NDArray[np.int64],
        doc_lengths: NDArray[np.int64],
        positions: list[NDArray[np.int64]] | None,
    ):
        if len(docids) != len(doc_lengths):
            raise ValueError("docids and doc_lengths must have the same length")
        if positions is not None and len(positions) != len(docids):
            raise ValueError("positions must have one entry per document")
        self.term = term
        self._docids = docids
        self._doc_lengths = doc_lengths
        self._positions = positions
        self._cursor = -1
        self.closed = False

    def __len__(self) -> int:
        return len(self._docids)

    @property
    def docid(self) -> int:
        if self._cursor < 0:
            return -1
        if self._cursor >= len(self._docids):
            return EOL
        return int(self._docids[self._cursor])

    def _require_current(self) -> int:
        if not 0 <= self._cursor < len(self._docids):
            raise ValueError(f"stream for {self.term!r} is not positioned on a document")
        return self._cursor

    @property
    def doc_length(self) -> int:
        return int(self._doc_lengths[self._require_current()])

    @property
    def positions(self) -> NDArray[np.int64]:
        if self._positions is None:
            raise MissingPositionDataError(self.term)
        return self._positions[self._require_current()]

    def next(self) -> int:
        """Move to the next posting and return its docid, or EOL."""
        if self.closed:
            raise ValueError(f"stream for {self.term!r} is closed")
        if self._cursor < len(self._docids):
            self._cursor += 1
        return self.docid

    def posting(self) -> Posting:
        return Posting(self.docid, self.positions, self.doc_length)

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"PostingStream({self.term!r}, df={len(self)}, docid={self.docid})"

