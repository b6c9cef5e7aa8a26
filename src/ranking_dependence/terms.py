"""
Query terms and the term/weight source for dependence scoring.

Proximity scoring only looks at real query terms. Pseudo-terms that an
earlier stage materialised (#1, #uw8, #ow2 style window operators) are
removed before postings are opened.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from enum import Enum

PSEUDO_TERM_PATTERN = re.compile(r"^.*#(\d|uw\d|ow\d).*")


class TermKind(Enum):
    BASE = "base"
    SYNONYM = "synonym"
    WINDOW = "window"
    ORDERED_WINDOW = "ordered_window"
    UNORDERED_WINDOW = "unordered_window"


_PSEUDO_KINDS = frozenset(
    {TermKind.WINDOW, TermKind.ORDERED_WINDOW, TermKind.UNORDERED_WINDOW}
)


@dataclass(frozen=True)
class QueryTerm:
    """
    A single query term.

    Attributes:
        text: Term string as it appears in the lexicon (or the operator text).
        weight: Query term weight (QTW).
        kind: Whether this is a plain term, a synonym group or a window term.
        alternatives: Member terms of a synonym group.
    """

    text: str
    weight: float = 1.0
    kind: TermKind = TermKind.BASE
    alternatives: tuple[str, ...] = ()

    @classmethod
    def synonym(cls, alternatives: Iterable[str], weight: float = 1.0) -> QueryTerm:
        alts = tuple(alternatives)
        return cls(f"#syn({' '.join(alts)})", weight, TermKind.SYNONYM, alts)


def is_pseudo_term(term: QueryTerm) -> bool:
    """True for window/ordered-window/unordered-window terms."""
    if term.kind in _PSEUDO_KINDS:
        return True
    return PSEUDO_TERM_PATTERN.match(term.text) is not None


class MatchingQueryTerms:
    """
    Ordered, de-duplicated query terms with their weights.

    Adding a term that is already present accumulates its weight onto the
    first occurrence, the same way repeated query tokens count as extra
    query term frequency.
    """

    def __init__(self, terms: Iterable[QueryTerm] = (), query_id: str | None = None):
        self.query_id = query_id
        self._terms: dict[str, QueryTerm] = {}
        for term in terms:
            self.add(term)

    @classmethod
    def from_tokens(cls, tokens: Iterable[str], query_id: str | None = None) -> MatchingQueryTerms:
        return cls((QueryTerm(token) for token in tokens), query_id=query_id)

    def add(self, term: QueryTerm) -> None:
        existing = self._terms.get(term.text)
        if existing is None:
            self._terms[term.text] = term
        else:
            self._terms[term.text] = replace(existing, weight=existing.weight + term.weight)

    def filtered(self) -> MatchingQueryTerms:
        """Copy without pseudo-terms, keeping the query id."""
        return MatchingQueryTerms(
            (t for t in self._terms.values() if not is_pseudo_term(t)),
            query_id=self.query_id,
        )

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self) -> Iterator[QueryTerm]:
        return iter(self._terms.values())

    def __repr__(self) -> str:
        inner = ", ".join(f"{t.text}^{t.weight:g}" for t in self._terms.values())
        return f"MatchingQueryTerms(query_id={self.query_id!r}, [{inner}])"
